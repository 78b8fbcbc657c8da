"""User repository for database operations."""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.models import User


class UserRepository:
    """Repository for User operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        email: str,
        username: str,
        password_hash: str,
        display_name: str | None = None,
    ) -> User:
        """Create a new user."""
        user = User(
            email=email,
            username=username,
            password_hash=password_hash,
            display_name=display_name or username,
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: str) -> User | None:
        """Get a user by ID."""
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        """Get a user by username."""
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_by_email_or_username(self, identifier: str) -> User | None:
        """Get a user by email or username."""
        result = await self.session.execute(
            select(User).where((User.email == identifier) | (User.username == identifier))
        )
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, User]:
        """Batch-load users keyed by ID."""
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def existing_ids(self, user_ids: Iterable[str]) -> set[str]:
        """Return the subset of IDs that belong to active users."""
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return set()
        result = await self.session.execute(
            select(User.id).where(User.id.in_(ids), User.is_active == True)  # noqa: E712
        )
        return {row[0] for row in result.all()}
