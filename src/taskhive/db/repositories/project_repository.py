"""Project and task repository for database operations."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.models import Project, Task


class ProjectRepository:
    """Repository for Project and Task operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        workspace_id: str,
        name: str,
        created_by: str,
        description: str | None = None,
    ) -> Project:
        """Create a new project in a workspace."""
        project = Project(
            workspace_id=workspace_id,
            name=name,
            description=description,
            created_by=created_by,
        )
        self.session.add(project)
        await self.session.flush()
        return project

    async def get_by_id(self, project_id: str) -> Project | None:
        """Get a project by ID."""
        result = await self.session.execute(select(Project).where(Project.id == project_id))
        return result.scalar_one_or_none()

    async def create_task(
        self,
        project: Project,
        title: str,
        created_by: str,
        description: str | None = None,
        assignee_id: str | None = None,
        due_at: datetime | None = None,
    ) -> Task:
        """Create a task in a project."""
        task = Task(
            project_id=project.id,
            workspace_id=project.workspace_id,
            title=title,
            description=description,
            assignee_id=assignee_id,
            created_by=created_by,
            due_at=due_at,
        )
        self.session.add(task)
        await self.session.flush()
        return task

    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        result = await self.session.execute(select(Task).where(Task.id == task_id))
        return result.scalar_one_or_none()

    async def list_tasks(self, project_id: str) -> list[Task]:
        """List tasks for a project, newest first."""
        result = await self.session.execute(
            select(Task).where(Task.project_id == project_id).order_by(Task.created_at.desc())
        )
        return list(result.scalars().all())

    async def set_assignee(self, task: Task, assignee_id: str | None) -> Task:
        """Change a task's assignee."""
        task.assignee_id = assignee_id
        await self.session.flush()
        return task

    async def set_status(self, task: Task, status: str) -> Task:
        """Change a task's status."""
        task.status = status
        await self.session.flush()
        return task
