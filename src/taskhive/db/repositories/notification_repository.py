"""Notification repository for database operations."""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.models import Notification


class NotificationRepository:
    """Repository for a user's notification rows.

    Every read and mutation is scoped by ``user_id`` so one user can never
    touch another user's rows.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, **fields) -> Notification:
        """Insert one notification inside its own SAVEPOINT.

        A failure rolls back only this row; the surrounding transaction
        stays usable.
        """
        notification = Notification(**fields)
        async with self.session.begin_nested():
            self.session.add(notification)
            await self.session.flush()
        return notification

    async def find_by_dedupe_key(self, user_id: str, dedupe_key: str) -> Notification | None:
        """Get a user's notification by its dedupe key."""
        result = await self.session.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.dedupe_key == dedupe_key,
            )
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: str, notification_id: str) -> Notification | None:
        """Get one of a user's notifications."""
        result = await self.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_page(
        self,
        user_id: str,
        limit: int,
        before: datetime | None = None,
        before_id: str | None = None,
    ) -> tuple[list[Notification], tuple[datetime, str] | None]:
        """Keyset page of a user's notifications, newest first.

        Rows are ordered by ``(created_at desc, id desc)``. ``before`` and
        ``before_id`` name the last row of the previous page; with no
        ``before_id`` every row at ``before`` counts as already seen.

        Returns the rows and the ``(created_at, id)`` of the last one to
        pass back for the next page, or None when nothing older remains.
        """
        stmt = select(Notification).where(Notification.user_id == user_id)
        if before is not None and before_id is not None:
            stmt = stmt.where(
                or_(
                    Notification.created_at < before,
                    and_(Notification.created_at == before, Notification.id < before_id),
                )
            )
        elif before is not None:
            stmt = stmt.where(Notification.created_at < before)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(
            limit + 1
        )

        result = await self.session.execute(stmt)
        rows = list(result.scalars().all())

        has_more = len(rows) > limit
        rows = rows[:limit]
        next_cursor = (rows[-1].created_at, rows[-1].id) if has_more and rows else None
        return rows, next_cursor

    async def count_unread(self, user_id: str) -> int:
        """Count a user's unread notifications."""
        result = await self.session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read == False,  # noqa: E712
            )
        )
        return result.scalar() or 0

    async def set_read(
        self,
        user_id: str,
        notification_id: str,
        is_read: bool,
    ) -> Notification | None:
        """Set ``is_read`` on one notification."""
        notification = await self.get(user_id, notification_id)
        if notification is None:
            return None
        notification.is_read = is_read
        await self.session.flush()
        return notification

    async def mark_read(self, user_id: str, notification_ids: Iterable[str]) -> int:
        """Mark specific notifications as read. Returns the number updated."""
        ids = list(notification_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.id.in_(ids),
            )
            .values(is_read=True)
        )
        return result.rowcount or 0

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification as read. Returns the number updated."""
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read == False,  # noqa: E712
            )
            .values(is_read=True)
        )
        return result.rowcount or 0

    async def clear_all(self, user_id: str) -> int:
        """Hard-delete all of a user's notifications. Returns the number deleted."""
        result = await self.session.execute(
            delete(Notification).where(Notification.user_id == user_id)
        )
        return result.rowcount or 0
