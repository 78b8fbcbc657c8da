"""Notification fan-out and delivery."""

from taskhive.notifications.events import NotificationDispatcher, NotificationEvent
from taskhive.notifications.realtime import (
    NotificationBroker,
    Subscription,
    broker,
    serialize_notification,
)
from taskhive.notifications.resolver import RecipientResolver, ResolutionContext
from taskhive.notifications.types import (
    SYSTEM_ACTOR,
    NotificationType,
    body_for,
    classify_message,
    link_for,
    title_for,
)
from taskhive.notifications.writer import (
    ActorMismatchError,
    FanoutRequest,
    FanoutResult,
    FanoutWriter,
)

__all__ = [
    "ActorMismatchError",
    "FanoutRequest",
    "FanoutResult",
    "FanoutWriter",
    "NotificationBroker",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationType",
    "RecipientResolver",
    "ResolutionContext",
    "SYSTEM_ACTOR",
    "Subscription",
    "body_for",
    "broker",
    "classify_message",
    "link_for",
    "serialize_notification",
    "title_for",
]
