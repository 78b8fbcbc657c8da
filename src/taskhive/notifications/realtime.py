"""In-process change feed for newly inserted notifications."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from taskhive.db.models import Notification

logger = logging.getLogger(__name__)

INSERT_EVENT = "notification.insert"

Subscriber = Callable[[dict[str, Any]], Awaitable[None]]


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the realtime payload for a notification row."""
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "actor_id": notification.actor_id,
        "title": notification.title,
        "body": notification.body,
        "link": notification.link,
        "workspace_id": notification.workspace_id,
        "project_id": notification.project_id,
        "task_id": notification.task_id,
        "thread_id": notification.thread_id,
        "message_id": notification.message_id,
        "is_read": bool(notification.is_read),
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


class Subscription:
    """Handle for one subscriber; close it (or leave the ``async with``) to stop."""

    def __init__(self, broker: "NotificationBroker", user_id: str, callback: Subscriber):
        self.broker = broker
        self.user_id = user_id
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self.broker.unsubscribe(self.user_id, self.callback)
            self.closed = True

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class NotificationBroker:
    """Routes insert events to the subscribers of each user.

    Delivery is best-effort and at-most-once: a subscriber that raises is
    dropped, and nothing is replayed for users who were not connected.
    Registration never awaits, so the subscriber map needs no lock.
    """

    def __init__(self):
        # user_id -> set of subscriber callbacks
        self.subscribers: dict[str, set[Subscriber]] = {}

    def subscribe(self, user_id: str, callback: Subscriber) -> Subscription:
        """Register ``callback`` for inserts addressed to ``user_id``."""
        self.subscribers.setdefault(user_id, set()).add(callback)
        logger.debug("Realtime subscriber added for user %s", user_id)
        return Subscription(self, user_id, callback)

    def unsubscribe(self, user_id: str, callback: Subscriber) -> None:
        """Remove a subscriber. Unknown subscribers are ignored."""
        callbacks = self.subscribers.get(user_id)
        if callbacks is None:
            return
        callbacks.discard(callback)
        if not callbacks:
            del self.subscribers[user_id]
        logger.debug("Realtime subscriber removed for user %s", user_id)

    def subscriber_count(self, user_id: str | None = None) -> int:
        """Count subscribers for one user, or for everyone."""
        if user_id is not None:
            return len(self.subscribers.get(user_id, ()))
        return sum(len(callbacks) for callbacks in self.subscribers.values())

    async def publish(self, user_id: str, payload: dict[str, Any]) -> int:
        """Send an insert event to every subscriber of ``user_id``.

        Returns the number of subscribers that received it.
        """
        message = {"type": INSERT_EVENT, "data": payload}
        delivered = 0
        failed = []
        for callback in list(self.subscribers.get(user_id, ())):
            try:
                await callback(message)
                delivered += 1
            except Exception as e:
                logger.debug("Realtime delivery failed for user %s: %s", user_id, e)
                failed.append(callback)

        for callback in failed:
            self.unsubscribe(user_id, callback)

        return delivered


# Global broker instance
broker = NotificationBroker()
