"""Optimistic feed mutations.

Each command changes the local feed first, then asks the server. When
the server call fails the command compensates: a single toggle reverts
its own change, bulk operations reload the first page.
"""

import logging
from typing import TYPE_CHECKING

from taskhive.client.api import NotificationApiError

if TYPE_CHECKING:
    from taskhive.client.feed import NotificationFeed

logger = logging.getLogger(__name__)


class FeedMutationError(Exception):
    """A feed mutation was rejected by the server and compensated."""


class FeedCommand:
    """Base class: apply locally, commit remotely, compensate on failure."""

    def apply(self, feed: "NotificationFeed") -> None:
        raise NotImplementedError

    async def commit(self, feed: "NotificationFeed") -> None:
        raise NotImplementedError

    async def compensate(self, feed: "NotificationFeed") -> None:
        raise NotImplementedError

    async def execute(self, feed: "NotificationFeed") -> None:
        self.apply(feed)
        try:
            await self.commit(feed)
        except NotificationApiError as e:
            logger.warning("%s failed, compensating: %s", type(self).__name__, e)
            await self.compensate(feed)
            raise FeedMutationError(str(e)) from e


class ToggleRead(FeedCommand):
    """Set ``is_read`` on one item."""

    def __init__(self, notification_id: str, is_read: bool):
        self.notification_id = notification_id
        self.is_read = is_read
        self.previous: bool | None = None

    def _unread_delta(self) -> int:
        if self.previous == self.is_read:
            return 0
        return -1 if self.is_read else 1

    def apply(self, feed):
        item = feed.get(self.notification_id)
        if item is None:
            raise FeedMutationError(f"Notification {self.notification_id} is not loaded")
        self.previous = bool(item.get("is_read"))
        feed.update_item(self.notification_id, is_read=self.is_read)
        feed.total_unread = max(0, feed.total_unread + self._unread_delta())

    async def commit(self, feed):
        await feed.source.set_read(self.notification_id, self.is_read)

    async def compensate(self, feed):
        # The item may have been cleared meanwhile; update_item ignores that
        if feed.update_item(self.notification_id, is_read=self.previous):
            feed.total_unread = max(0, feed.total_unread - self._unread_delta())


class MarkAllRead(FeedCommand):
    """Mark every item read."""

    def apply(self, feed):
        feed.items = [{**item, "is_read": True} for item in feed.items]
        feed.total_unread = 0

    async def commit(self, feed):
        await feed.source.mark_all_read()

    async def compensate(self, feed):
        await feed.load(reset=True)


class ClearAll(FeedCommand):
    """Delete every notification."""

    def apply(self, feed):
        feed.items = []
        feed.cursor = None
        feed.has_more = False
        feed.total_unread = 0

    async def commit(self, feed):
        await feed.source.clear_all()

    async def compensate(self, feed):
        await feed.load(reset=True)
