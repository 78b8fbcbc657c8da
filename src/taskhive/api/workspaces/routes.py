"""Workspaces API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.api.auth.dependencies import get_current_user
from taskhive.api.notifications.dependencies import Dispatcher, IdempotencyKey
from taskhive.api.workspaces.schemas import (
    AddMemberRequest,
    ProjectCreate,
    ProjectOut,
    WorkspaceCreate,
    WorkspaceDetail,
    WorkspaceMemberInfo,
    WorkspaceSummary,
)
from taskhive.db import User, get_db
from taskhive.db.repositories import ProjectRepository, UserRepository, WorkspaceRepository
from taskhive.notifications import NotificationEvent, NotificationType, ResolutionContext
from taskhive.security.permissions import WorkspaceRole, check_workspace_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["Workspaces"])


def _display_name(user: User) -> str:
    return user.display_name or user.username


@router.get("", response_model=list[WorkspaceSummary])
async def list_workspaces(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[WorkspaceSummary]:
    """List all workspaces the current user belongs to."""
    workspaces = await WorkspaceRepository(db).get_user_workspaces(current_user.id)

    result = []
    for workspace in workspaces:
        role = next(
            (m.role for m in workspace.members if m.user_id == current_user.id), "none"
        )
        result.append(
            WorkspaceSummary(
                id=workspace.id,
                name=workspace.name,
                description=workspace.description,
                created_by=workspace.created_by,
                created_at=workspace.created_at,
                member_count=len(workspace.members),
                your_role=role,
            )
        )
    return result


@router.post("", response_model=WorkspaceSummary, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    workspace_data: WorkspaceCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkspaceSummary:
    """Create a new workspace. The creator becomes the owner."""
    workspace = await WorkspaceRepository(db).create(
        name=workspace_data.name,
        created_by=current_user.id,
        description=workspace_data.description,
    )
    logger.info("Workspace %s created by %s", workspace.id, current_user.username)

    return WorkspaceSummary(
        id=workspace.id,
        name=workspace.name,
        description=workspace.description,
        created_by=workspace.created_by,
        created_at=workspace.created_at,
        member_count=1,
        your_role=WorkspaceRole.OWNER,
    )


@router.get("/{workspace_id}", response_model=WorkspaceDetail)
async def get_workspace(
    workspace_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkspaceDetail:
    """Get a workspace by ID with member list."""
    workspace_repo = WorkspaceRepository(db)

    if not await workspace_repo.is_member(workspace_id, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )

    workspace = await workspace_repo.get_by_id(workspace_id)
    if not workspace:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )

    return WorkspaceDetail(
        id=workspace.id,
        name=workspace.name,
        description=workspace.description,
        created_by=workspace.created_by,
        created_at=workspace.created_at,
        members=[
            WorkspaceMemberInfo(
                user_id=member.user_id,
                username=member.user.username,
                display_name=member.user.display_name,
                role=member.role,
                joined_at=member.joined_at,
            )
            for member in workspace.members
        ],
    )


@router.post(
    "/{workspace_id}/members",
    response_model=WorkspaceMemberInfo,
    status_code=status.HTTP_201_CREATED,
)
async def add_workspace_member(
    workspace_id: str,
    member_data: AddMemberRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Dispatcher,
    idempotency_key: IdempotencyKey = None,
) -> WorkspaceMemberInfo:
    """Add a member to a workspace and notify them.

    Only owners and admins can add members.
    """
    workspace_repo = WorkspaceRepository(db)

    if not await check_workspace_role(db, workspace_id, current_user.id, WorkspaceRole.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only workspace owner or admin can add members",
        )

    workspace = await workspace_repo.get_by_id(workspace_id)
    if not workspace:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )

    user_to_add = await UserRepository(db).get_by_id(member_data.user_id)
    if not user_to_add:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    if await workspace_repo.get_member(workspace_id, member_data.user_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a workspace member",
        )

    member = await workspace_repo.add_member(workspace_id, user_to_add.id, member_data.role)

    await dispatcher.emit(
        NotificationEvent(
            type=NotificationType.WORKSPACE_INVITE,
            context=ResolutionContext(target_ids=[user_to_add.id], workspace_id=workspace_id),
            meta={
                "workspace_name": workspace.name,
                "inviter_name": _display_name(current_user),
            },
            idempotency_key=idempotency_key,
        )
    )
    await db.commit()
    await dispatcher.flush_realtime()

    return WorkspaceMemberInfo(
        user_id=user_to_add.id,
        username=user_to_add.username,
        display_name=user_to_add.display_name,
        role=member.role,
        joined_at=member.joined_at,
    )


@router.delete("/{workspace_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_workspace_member(
    workspace_id: str,
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Dispatcher,
    idempotency_key: IdempotencyKey = None,
) -> None:
    """Remove a member from a workspace.

    - A member removing themselves leaves; owners and admins are notified
    - Owners can remove anyone else, admins can remove members and viewers
    - The last owner cannot leave
    """
    workspace_repo = WorkspaceRepository(db)

    current_member = await workspace_repo.get_member(workspace_id, current_user.id)
    if not current_member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )

    target = await workspace_repo.get_member(workspace_id, user_id)
    if not target:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found",
        )

    workspace = await workspace_repo.get_by_id(workspace_id)
    leaving = user_id == current_user.id

    if leaving:
        if target.role == WorkspaceRole.OWNER:
            owner_ids = await workspace_repo.member_ids(workspace_id, roles=[WorkspaceRole.OWNER])
            if len(owner_ids) <= 1:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="The last owner cannot leave the workspace",
                )
    elif not (
        current_member.role == WorkspaceRole.OWNER
        or (
            current_member.role == WorkspaceRole.ADMIN
            and target.role in (WorkspaceRole.MEMBER, WorkspaceRole.VIEWER)
        )
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to remove this member",
        )

    await workspace_repo.remove_member(workspace_id, user_id)

    if leaving:
        event = NotificationEvent(
            type=NotificationType.WORKSPACE_MEMBER_LEFT,
            context=ResolutionContext(workspace_id=workspace_id),
            meta={
                "workspace_name": workspace.name,
                "leaver_name": _display_name(current_user),
            },
            idempotency_key=idempotency_key,
        )
    else:
        event = NotificationEvent(
            type=NotificationType.WORKSPACE_REMOVED,
            context=ResolutionContext(target_ids=[user_id], workspace_id=workspace_id),
            meta={"workspace_name": workspace.name},
            idempotency_key=idempotency_key,
        )

    await dispatcher.emit(event)
    await db.commit()
    await dispatcher.flush_realtime()


@router.post(
    "/{workspace_id}/projects",
    response_model=ProjectOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_project(
    workspace_id: str,
    project_data: ProjectCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a project in a workspace. Viewers cannot create projects."""
    if not await check_workspace_role(db, workspace_id, current_user.id, WorkspaceRole.MEMBER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to create projects in this workspace",
        )

    return await ProjectRepository(db).create(
        workspace_id=workspace_id,
        name=project_data.name,
        created_by=current_user.id,
        description=project_data.description,
    )
