"""Tasks API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.api.auth.dependencies import get_current_user
from taskhive.api.notifications.dependencies import Dispatcher, IdempotencyKey
from taskhive.api.tasks.schemas import TaskAssign, TaskCreate, TaskOut, TaskStatusUpdate
from taskhive.db import Project, Task, User, get_db
from taskhive.db.repositories import ProjectRepository, UserRepository, WorkspaceRepository
from taskhive.notifications import NotificationEvent, NotificationType, ResolutionContext
from taskhive.security.permissions import WorkspaceRole, check_workspace_role

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tasks"])


async def _get_project_for(
    db: AsyncSession, project_id: str, user: User, minimum_role: WorkspaceRole
) -> Project:
    """Load a project and check the user's role in its workspace."""
    project = await ProjectRepository(db).get_by_id(project_id)
    if project is None or not await check_workspace_role(
        db, project.workspace_id, user.id, WorkspaceRole.VIEWER
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    if not await check_workspace_role(db, project.workspace_id, user.id, minimum_role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return project


async def _get_task_for(db: AsyncSession, task_id: str, user: User) -> tuple[Task, Project]:
    """Load a task the user may edit, with its project."""
    task = await ProjectRepository(db).get_task(task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    project = await _get_project_for(db, task.project_id, user, WorkspaceRole.MEMBER)
    return task, project


async def _check_assignees(db: AsyncSession, workspace_id: str, user_ids: list[str]) -> None:
    member_ids = set(await WorkspaceRepository(db).member_ids(workspace_id))
    outsiders = [uid for uid in user_ids if uid not in member_ids]
    if outsiders:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Not workspace members: {', '.join(outsiders)}",
        )


def _task_meta(task: Task, project: Project, actor: User, **extra) -> dict:
    meta = {
        "task_title": task.title,
        "project_name": project.name,
        "actor_name": actor.display_name or actor.username,
    }
    meta.update(extra)
    return meta


@router.get("/projects/{project_id}/tasks", response_model=list[TaskOut])
async def list_tasks(
    project_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List the tasks of a project, newest first."""
    await _get_project_for(db, project_id, current_user, WorkspaceRole.VIEWER)
    return await ProjectRepository(db).list_tasks(project_id)


@router.post(
    "/projects/{project_id}/tasks",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    project_id: str,
    task_data: TaskCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Dispatcher,
    idempotency_key: IdempotencyKey = None,
):
    """Create a task.

    Assignees get ``task_assigned``. An unassigned task notifies the
    workspace owners and admins with ``task_created``.
    """
    project = await _get_project_for(db, project_id, current_user, WorkspaceRole.MEMBER)

    assignee_ids = list(dict.fromkeys(uid for uid in task_data.assignee_ids if uid))
    await _check_assignees(db, project.workspace_id, assignee_ids)

    task = await ProjectRepository(db).create_task(
        project,
        title=task_data.title,
        created_by=current_user.id,
        description=task_data.description,
        assignee_id=assignee_ids[0] if assignee_ids else None,
        due_at=task_data.due_at,
    )

    context = ResolutionContext(
        target_ids=assignee_ids,
        workspace_id=project.workspace_id,
        project_id=project.id,
        task_id=task.id,
    )
    if assignee_ids:
        event = NotificationEvent(
            type=NotificationType.TASK_ASSIGNED,
            context=context,
            meta=_task_meta(task, project, current_user),
            idempotency_key=idempotency_key,
        )
    else:
        event = NotificationEvent(
            type=NotificationType.TASK_CREATED,
            context=context,
            meta=_task_meta(task, project, current_user),
            idempotency_key=idempotency_key,
        )

    await dispatcher.emit(event)
    await db.commit()
    await dispatcher.flush_realtime()

    logger.info("Task %s created in project %s", task.id, project.id)
    return task


@router.put("/tasks/{task_id}/assignee", response_model=TaskOut)
async def assign_task(
    task_id: str,
    data: TaskAssign,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Dispatcher,
    idempotency_key: IdempotencyKey = None,
):
    """Assign a task. The new assignee gets ``task_assigned``."""
    task, project = await _get_task_for(db, task_id, current_user)

    if data.assignee_id:
        if await UserRepository(db).get_by_id(data.assignee_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        await _check_assignees(db, project.workspace_id, [data.assignee_id])

    previous = task.assignee_id
    await ProjectRepository(db).set_assignee(task, data.assignee_id)

    if data.assignee_id and data.assignee_id != previous:
        await dispatcher.emit(
            NotificationEvent(
                type=NotificationType.TASK_ASSIGNED,
                context=ResolutionContext(
                    target_ids=[data.assignee_id],
                    workspace_id=project.workspace_id,
                    project_id=project.id,
                    task_id=task.id,
                ),
                meta=_task_meta(task, project, current_user),
                idempotency_key=idempotency_key,
            )
        )

    await db.commit()
    await dispatcher.flush_realtime()
    return task


@router.patch("/tasks/{task_id}/status", response_model=TaskOut)
async def update_task_status(
    task_id: str,
    data: TaskStatusUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Dispatcher,
    idempotency_key: IdempotencyKey = None,
):
    """Change a task's status. The assignee and creator get ``task_update``."""
    task, project = await _get_task_for(db, task_id, current_user)

    if task.status == data.status:
        return task

    await ProjectRepository(db).set_status(task, data.status)

    await dispatcher.emit(
        NotificationEvent(
            type=NotificationType.TASK_UPDATE,
            context=ResolutionContext(
                workspace_id=project.workspace_id,
                project_id=project.id,
                task_id=task.id,
                assignee_id=task.assignee_id,
                creator_id=task.created_by,
            ),
            meta=_task_meta(task, project, current_user, status=data.status),
            idempotency_key=idempotency_key,
        )
    )
    await db.commit()
    await dispatcher.flush_realtime()
    return task
