"""Workspace repository for database operations."""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskhive.db.models import Workspace, WorkspaceMember


class WorkspaceRepository:
    """Repository for Workspace and membership operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        created_by: str,
        description: str | None = None,
    ) -> Workspace:
        """Create a new workspace and add creator as owner."""
        workspace = Workspace(
            name=name,
            description=description,
            created_by=created_by,
        )
        self.session.add(workspace)
        await self.session.flush()

        member = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=created_by,
            role="owner",
        )
        self.session.add(member)
        await self.session.flush()

        return workspace

    async def get_by_id(self, workspace_id: str) -> Workspace | None:
        """Get a workspace by ID with members loaded."""
        result = await self.session.execute(
            select(Workspace)
            .options(selectinload(Workspace.members).selectinload(WorkspaceMember.user))
            .where(Workspace.id == workspace_id)
        )
        return result.scalar_one_or_none()

    async def get_user_workspaces(self, user_id: str) -> list[Workspace]:
        """Get all workspaces a user belongs to."""
        result = await self.session.execute(
            select(Workspace)
            .join(WorkspaceMember)
            .where(WorkspaceMember.user_id == user_id)
            .options(selectinload(Workspace.members))
            .order_by(Workspace.name)
        )
        return list(result.scalars().unique().all())

    async def add_member(
        self,
        workspace_id: str,
        user_id: str,
        role: str = "member",
    ) -> WorkspaceMember:
        """Add a member to a workspace."""
        member = WorkspaceMember(
            workspace_id=workspace_id,
            user_id=user_id,
            role=role,
        )
        self.session.add(member)
        await self.session.flush()
        return member

    async def remove_member(self, workspace_id: str, user_id: str) -> bool:
        """Remove a member from a workspace."""
        member = await self.get_member(workspace_id, user_id)
        if member:
            await self.session.delete(member)
            await self.session.flush()
            return True
        return False

    async def update_member_role(
        self,
        workspace_id: str,
        user_id: str,
        role: str,
    ) -> WorkspaceMember | None:
        """Update a member's role."""
        member = await self.get_member(workspace_id, user_id)
        if member:
            member.role = role
            await self.session.flush()
        return member

    async def get_member(self, workspace_id: str, user_id: str) -> WorkspaceMember | None:
        """Get a specific workspace member."""
        result = await self.session.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_member(self, workspace_id: str, user_id: str) -> bool:
        """Check if a user is a member of a workspace."""
        member = await self.get_member(workspace_id, user_id)
        return member is not None

    async def is_owner_or_admin(self, workspace_id: str, user_id: str) -> bool:
        """Check if a user is an owner or admin of a workspace."""
        member = await self.get_member(workspace_id, user_id)
        return member is not None and member.role in ("owner", "admin")

    async def member_ids(
        self,
        workspace_id: str,
        roles: Iterable[str] | None = None,
    ) -> list[str]:
        """List member user IDs, optionally restricted to the given roles."""
        stmt = select(WorkspaceMember.user_id).where(
            WorkspaceMember.workspace_id == workspace_id
        )
        if roles is not None:
            stmt = stmt.where(WorkspaceMember.role.in_(list(roles)))
        result = await self.session.execute(stmt.order_by(WorkspaceMember.joined_at))
        return [row[0] for row in result.all()]
