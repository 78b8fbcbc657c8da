"""Workspace role checks."""

from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.repositories import WorkspaceRepository


class WorkspaceRole(StrEnum):
    """Workspace membership roles, lowest to highest."""

    VIEWER = "viewer"
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"


_ROLE_RANK = {
    WorkspaceRole.VIEWER: 0,
    WorkspaceRole.MEMBER: 1,
    WorkspaceRole.ADMIN: 2,
    WorkspaceRole.OWNER: 3,
}

# Roles notified about ownership-level events
MANAGER_ROLES = (WorkspaceRole.OWNER.value, WorkspaceRole.ADMIN.value)


def role_at_least(role: str | None, minimum: WorkspaceRole) -> bool:
    """Return True if ``role`` ranks at or above ``minimum``."""
    if role is None:
        return False
    try:
        return _ROLE_RANK[WorkspaceRole(role)] >= _ROLE_RANK[minimum]
    except ValueError:
        return False


async def get_workspace_role(
    session: AsyncSession,
    workspace_id: str,
    user_id: str,
) -> WorkspaceRole | None:
    """Get the user's role in a workspace, or None if not a member."""
    member = await WorkspaceRepository(session).get_member(workspace_id, user_id)
    if member is None:
        return None
    return WorkspaceRole(member.role)


async def check_workspace_role(
    session: AsyncSession,
    workspace_id: str,
    user_id: str,
    minimum_role: WorkspaceRole = WorkspaceRole.VIEWER,
) -> bool:
    """Check if a user holds at least ``minimum_role`` in a workspace.

    Args:
        session: Database session.
        workspace_id: The workspace to check.
        user_id: The user to check.
        minimum_role: The lowest role that passes.

    Returns:
        True if the user is a member with a sufficient role.
    """
    role = await get_workspace_role(session, workspace_id, user_id)
    return role_at_least(role, minimum_role)
