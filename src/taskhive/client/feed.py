"""Client-side notification feed.

Keeps the loaded items, the pagination cursor and the unread count in
sync with the server and with realtime inserts.
"""

import logging
from contextlib import asynccontextmanager
from enum import StrEnum
from typing import Any

from taskhive.client.api import NotificationApiError
from taskhive.client.commands import ClearAll, MarkAllRead, ToggleRead
from taskhive.notifications.realtime import INSERT_EVENT
from taskhive.security.identity import CurrentUserProvider

logger = logging.getLogger(__name__)


class FeedState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    LOADING_MORE = "loading_more"


class NotificationFeed:
    """Paginated, realtime-updated list of the current user's notifications.

    Args:
        source: Object with the :class:`~taskhive.client.api.NotificationsApi`
            methods (``fetch_page``, ``set_read``, ``mark_all_read``, ``clear_all``).
        user_provider: Supplies the user whose feed this is.
        channel: Optional realtime channel with ``subscribe(user_id, callback)``
            returning an async context manager, e.g. a ``NotificationBroker``.
        page_size: Items per page.
    """

    def __init__(
        self,
        source,
        user_provider: CurrentUserProvider,
        channel=None,
        page_size: int = 20,
    ):
        self.source = source
        self.user_provider = user_provider
        self.channel = channel
        self.page_size = page_size

        self.state = FeedState.IDLE
        self.items: list[dict[str, Any]] = []
        self.cursor: str | None = None
        self.has_more = False
        # Unread count across every page, as last reported by the server
        self.total_unread = 0
        self.error: Exception | None = None
        self.user_id: str | None = None
        # Realtime inserts seen while the first page is in flight
        self._arrived_while_loading: list[dict[str, Any]] = []

    @property
    def unread(self) -> int:
        return sum(1 for item in self.items if not item.get("is_read"))

    def get(self, notification_id: str) -> dict[str, Any] | None:
        for item in self.items:
            if item.get("id") == notification_id:
                return item
        return None

    def update_item(self, notification_id: str, **changes) -> bool:
        """Replace one item with a copy carrying ``changes``."""
        for index, item in enumerate(self.items):
            if item.get("id") == notification_id:
                self.items[index] = {**item, **changes}
                return True
        return False

    async def load(self, reset: bool = True) -> bool:
        """Fetch the first page.

        With ``reset=False`` an already loaded feed is left as is. On
        failure the current items are kept and ``error`` is set.
        """
        if not reset and self.state != FeedState.IDLE:
            return True

        previous_state = self.state
        self.state = FeedState.LOADING
        self._arrived_while_loading = []
        try:
            page = await self.source.fetch_page(limit=self.page_size)
        except NotificationApiError as e:
            logger.warning("Failed to load notifications: %s", e)
            self.error = e
            self.state = FeedState.IDLE if previous_state == FeedState.IDLE else FeedState.LOADED
            return False

        page_items = list(page.get("items") or [])
        page_ids = {item.get("id") for item in page_items}
        live = [item for item in self._arrived_while_loading if item.get("id") not in page_ids]
        self._arrived_while_loading = []

        self.items = live + page_items
        self.cursor = page.get("nextCursor")
        self.total_unread = max(page.get("unread", 0), self.unread)
        self.has_more = bool(self.cursor)
        self.error = None
        self.state = FeedState.LOADED
        return True

    async def load_more(self) -> bool:
        """Append the next page.

        Ignored unless the feed is loaded and has more pages, so a second
        call while one is in flight does nothing.
        """
        if self.state != FeedState.LOADED or not self.has_more or not self.cursor:
            return False

        self.state = FeedState.LOADING_MORE
        try:
            page = await self.source.fetch_page(limit=self.page_size, cursor=self.cursor)
        except NotificationApiError as e:
            logger.warning("Failed to load more notifications: %s", e)
            self.error = e
            return False
        else:
            known_ids = {item.get("id") for item in self.items}
            self.items.extend(
                item for item in page.get("items") or [] if item.get("id") not in known_ids
            )
            self.cursor = page.get("nextCursor")
            self.has_more = bool(self.cursor)
            self.total_unread = max(page.get("unread", 0), self.unread)
            self.error = None
            return True
        finally:
            self.state = FeedState.LOADED

    def on_insert(self, row: dict[str, Any]) -> bool:
        """Prepend a realtime row unless an item with its id is present."""
        if self.user_id is not None and row.get("user_id") not in (None, self.user_id):
            return False
        if self.get(row.get("id")) is not None:
            return False
        self.items.insert(0, row)
        if not row.get("is_read"):
            self.total_unread += 1
        if self.state == FeedState.LOADING:
            self._arrived_while_loading.append(row)
        return True

    async def _on_message(self, message: dict[str, Any]) -> None:
        if message.get("type") == INSERT_EVENT and message.get("data"):
            self.on_insert(message["data"])

    async def toggle_read(self, notification_id: str, is_read: bool) -> None:
        """Optimistically set ``is_read``; reverts and raises on failure."""
        await ToggleRead(notification_id, is_read).execute(self)

    async def mark_all_read(self) -> None:
        """Optimistically mark everything read; reloads and raises on failure.

        Skipped only when neither the loaded items nor the pages not yet
        loaded hold anything unread.
        """
        if self.unread == 0 and self.total_unread == 0:
            return
        await MarkAllRead().execute(self)

    async def clear_all(self) -> None:
        """Optimistically clear the feed; reloads and raises on failure."""
        if not self.items:
            return
        await ClearAll().execute(self)

    @asynccontextmanager
    async def session(self):
        """Subscribe to realtime inserts, load the first page and yield the feed.

        The subscription is opened before loading so inserts that land
        during the first fetch are not lost.
        """
        self.user_id = await self.user_provider.current_user_id()
        if self.channel is None:
            await self.load()
            yield self
            return

        async with self.channel.subscribe(self.user_id, self._on_message):
            await self.load()
            yield self
