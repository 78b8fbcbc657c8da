"""Event emission: primary actions hand events to the dispatcher.

The dispatcher resolves recipients and writes rows inside a SAVEPOINT of
the caller's transaction. It never raises, so a failed fan-out cannot
undo the action that produced the event. Realtime delivery waits until
the caller has committed and calls :meth:`NotificationDispatcher.flush_realtime`.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.notifications.realtime import NotificationBroker
from taskhive.notifications.resolver import RecipientResolver, ResolutionContext
from taskhive.notifications.types import MESSAGE_TYPES, NotificationType, classify_message
from taskhive.notifications.writer import FanoutRequest, FanoutResult, FanoutWriter
from taskhive.security.identity import CurrentUserProvider

logger = logging.getLogger(__name__)


class NotificationEvent(BaseModel):
    """Something happened that users may need to hear about.

    ``message_body`` is only used for message events, to tell a mention
    from a plain new message. When ``actor_id`` is omitted the dispatcher
    asks its user provider.
    """

    model_config = {"frozen": True}

    type: NotificationType
    context: ResolutionContext = Field(default_factory=ResolutionContext)
    actor_id: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    message_body: str | None = None
    idempotency_key: str | None = None

    def derived_idempotency_key(self) -> str | None:
        """Key that makes a repeated emission of this event a no-op.

        An explicit key wins. Message events fall back to the message id,
        which is unique per message. Other events return None.
        """
        if self.idempotency_key:
            return self.idempotency_key
        if self.type in MESSAGE_TYPES and self.context.message_id:
            return f"message:{self.context.message_id}"
        return None


class NotificationDispatcher:
    """Fans events out to notification rows for one unit of work."""

    def __init__(
        self,
        session: AsyncSession,
        broker: NotificationBroker | None = None,
        user_provider: CurrentUserProvider | None = None,
    ):
        self.session = session
        self.user_provider = user_provider
        self.resolver = RecipientResolver(session, user_provider)
        self.writer = FanoutWriter(session, broker)
        self._pending: list[FanoutResult] = []

    async def emit(self, event: NotificationEvent) -> FanoutResult | None:
        """Resolve and write notifications for an event.

        Returns the fan-out result, or None if the fan-out failed. Failures
        are logged and rolled back to the SAVEPOINT taken here.
        """
        try:
            async with self.session.begin_nested():
                actor_id = event.actor_id
                if actor_id is None and self.user_provider is not None:
                    actor_id = await self.user_provider.current_user_id()
                if not actor_id:
                    raise ValueError("Event has no actor")

                type = event.type
                if type in MESSAGE_TYPES:
                    type = classify_message(event.message_body)

                context = event.context.model_copy(update={"actor_id": actor_id})
                recipients = await self.resolver.resolve(type, context)
                if not recipients:
                    logger.debug("No recipients for %s by %s", type.value, actor_id)
                    return FanoutResult()

                request = FanoutRequest(
                    type=type,
                    actor_id=actor_id,
                    recipients=sorted(recipients),
                    workspace_id=context.workspace_id,
                    project_id=context.project_id,
                    task_id=context.task_id,
                    thread_id=context.thread_id,
                    message_id=context.message_id,
                    meta=event.meta,
                    idempotency_key=event.derived_idempotency_key(),
                )
                result = await self.writer.write(request)
        except Exception as e:
            logger.warning("Notification fan-out for %s failed: %s", event.type.value, e)
            return None

        self._pending.append(result)
        return result

    async def flush_realtime(self) -> None:
        """Publish rows written since the last flush. Call after commit."""
        pending, self._pending = self._pending, []
        for result in pending:
            await self.writer.publish(result)
