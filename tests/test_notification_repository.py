"""Tests for the notification repository's keyset pagination."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.models import Notification
from taskhive.db.repositories import NotificationRepository

STAMP = datetime(2026, 1, 1, 12, 0, 0)


async def _insert(session: AsyncSession, user_id: str, created_at: datetime, count: int = 1):
    rows = [
        Notification(user_id=user_id, type="task_update", title="Update", created_at=created_at)
        for _ in range(count)
    ]
    session.add_all(rows)
    await session.commit()
    return [row.id for row in rows]


async def _walk(repo: NotificationRepository, user_id: str, limit: int) -> list[list[str]]:
    """Follow cursors until the last page; returns the ids of each page."""
    pages = []
    before = before_id = None
    while True:
        rows, cursor = await repo.list_page(user_id, limit, before, before_id)
        pages.append([row.id for row in rows])
        if cursor is None:
            return pages
        before, before_id = cursor


class TestListPage:
    """Tests for NotificationRepository.list_page."""

    @pytest.mark.asyncio
    async def test_rows_sharing_a_timestamp_span_pages(self, test_session, make_user):
        """Rows with an identical created_at are split across pages without loss."""
        user = await make_user("alice")
        ids = await _insert(test_session, user.id, STAMP, count=3)
        repo = NotificationRepository(test_session)

        first, cursor = await repo.list_page(user.id, 2)
        assert len(first) == 2
        assert cursor == (first[-1].created_at, first[-1].id)

        second, cursor = await repo.list_page(user.id, 2, *cursor)
        assert len(second) == 1
        assert cursor is None

        seen = [row.id for row in first + second]
        assert sorted(seen) == sorted(ids)
        assert len(set(seen)) == 3

    @pytest.mark.asyncio
    async def test_ties_mixed_with_distinct_timestamps(self, test_session, make_user):
        """Walking every page returns each row once, newest first."""
        user = await make_user("alice")
        older = await _insert(test_session, user.id, STAMP - timedelta(seconds=1), count=2)
        tied = await _insert(test_session, user.id, STAMP, count=4)
        newer = await _insert(test_session, user.id, STAMP + timedelta(seconds=1))

        pages = await _walk(NotificationRepository(test_session), user.id, limit=2)

        flat = [notification_id for page in pages for notification_id in page]
        assert len(flat) == 7
        assert set(flat) == set(older + tied + newer)
        assert flat[0] == newer[0]
        assert set(flat[1:5]) == set(tied)
        # Ties break on id, descending
        assert flat[1:5] == sorted(tied, reverse=True)

    @pytest.mark.asyncio
    async def test_bare_timestamp_treats_instant_as_seen(self, test_session, make_user):
        """Without an id, every row at the cursor timestamp is excluded."""
        user = await make_user("alice")
        await _insert(test_session, user.id, STAMP, count=2)
        older = await _insert(test_session, user.id, STAMP - timedelta(seconds=1))
        repo = NotificationRepository(test_session)

        rows, cursor = await repo.list_page(user.id, 10, STAMP)

        assert [row.id for row in rows] == older
        assert cursor is None

    @pytest.mark.asyncio
    async def test_scoped_to_user(self, test_session, make_user):
        """Another user's rows at the same instant never appear."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        await _insert(test_session, alice.id, STAMP, count=2)
        await _insert(test_session, bob.id, STAMP, count=2)

        pages = await _walk(NotificationRepository(test_session), alice.id, limit=1)

        assert len([i for page in pages for i in page]) == 2
