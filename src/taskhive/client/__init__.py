"""Client-side notification pipeline."""

from taskhive.client.api import ApiUserProvider, NotificationApiError, NotificationsApi
from taskhive.client.commands import (
    ClearAll,
    FeedCommand,
    FeedMutationError,
    MarkAllRead,
    ToggleRead,
)
from taskhive.client.feed import FeedState, NotificationFeed

__all__ = [
    "ApiUserProvider",
    "ClearAll",
    "FeedCommand",
    "FeedMutationError",
    "FeedState",
    "MarkAllRead",
    "NotificationApiError",
    "NotificationFeed",
    "NotificationsApi",
    "ToggleRead",
]
