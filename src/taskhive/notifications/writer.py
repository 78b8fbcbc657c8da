"""Fan-out writer: one notification row per recipient."""

import hashlib
import json
import logging
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.repositories import NotificationRepository, UserRepository
from taskhive.notifications.realtime import NotificationBroker, serialize_notification
from taskhive.notifications.types import (
    SYSTEM_ACTOR,
    NotificationType,
    body_for,
    link_for,
    title_for,
)
from taskhive.security.identity import CurrentUserProvider

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255
UNKNOWN_RECIPIENT = "Unknown recipient"


class ActorMismatchError(Exception):
    """Raised when a fan-out names an actor other than the current user."""


class FanoutRequest(BaseModel):
    """A request to notify a list of recipients about one event."""

    model_config = {"populate_by_name": True}

    type: NotificationType
    actor_id: str = Field(..., alias="actorId", min_length=1, max_length=36)
    recipients: list[str]
    workspace_id: str | None = Field(None, alias="workspaceId")
    project_id: str | None = Field(None, alias="projectId")
    task_id: str | None = Field(None, alias="taskId")
    thread_id: str | None = Field(None, alias="threadId")
    message_id: str | None = Field(None, alias="messageId")
    meta: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = Field(None, alias="idempotencyKey", max_length=255)


class FanoutResult(BaseModel):
    """Outcome of a fan-out.

    ``ids`` are the rows written, ``errors`` maps recipient id to the reason
    its row was not written and ``skipped`` lists recipients that already
    had a row for the same idempotency key.
    """

    ids: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)
    # Realtime payloads for the rows written; published after commit
    delivered: list[dict[str, Any]] = Field(default_factory=list, exclude=True)

    @property
    def ok(self) -> bool:
        """True if any row was written or nothing failed."""
        return bool(self.ids) or not self.errors


def normalize_recipients(recipients: list[str], actor_id: str) -> list[str]:
    """Drop empty ids, duplicates and the actor, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for uid in recipients:
        uid = (uid or "").strip()
        if not uid or uid == actor_id or uid == SYSTEM_ACTOR or uid in seen:
            continue
        seen.add(uid)
        result.append(uid)
    return result


def dedupe_key(idempotency_key: str, type: str, actor_id: str, recipient_id: str) -> str:
    """Hash an idempotency key down to the stored per-recipient key."""
    raw = "|".join([idempotency_key, type, actor_id, recipient_id])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def render_title(type: str, meta: dict[str, Any]) -> str:
    title = meta.get("title")
    if not isinstance(title, str) or not title.strip():
        title = title_for(type, meta)
    return title[:TITLE_MAX_LENGTH]


def render_body(type: str, meta: dict[str, Any]) -> str | None:
    body = meta.get("body")
    if isinstance(body, str) and body.strip():
        return body
    return body_for(type, meta)


class FanoutWriter:
    """Writes notification rows with per-recipient failure isolation.

    Each row is inserted in its own SAVEPOINT, so a recipient whose row
    fails is reported in ``errors`` while the other rows and the caller's
    transaction survive.
    """

    def __init__(
        self,
        session: AsyncSession,
        broker: NotificationBroker | None = None,
        user_provider: CurrentUserProvider | None = None,
    ):
        self.session = session
        self.broker = broker
        self.user_provider = user_provider
        self.repo = NotificationRepository(session)

    async def write(self, request: FanoutRequest) -> FanoutResult:
        """Write one row per recipient.

        Raises:
            ActorMismatchError: The request names an actor other than the
                current user.
        """
        if self.user_provider is not None:
            current_user_id = await self.user_provider.current_user_id()
            if request.actor_id != current_user_id:
                raise ActorMismatchError(
                    f"Actor {request.actor_id} does not match current user"
                )

        result = FanoutResult()
        recipients = normalize_recipients(request.recipients, request.actor_id)
        if not recipients:
            return result

        type = NotificationType(request.type)
        title = render_title(type, request.meta)
        body = render_body(type, request.meta)
        link = request.meta.get("link") or link_for(
            type,
            workspace_id=request.workspace_id,
            project_id=request.project_id,
            task_id=request.task_id,
            thread_id=request.thread_id,
            message_id=request.message_id,
        )
        meta_json = json.dumps(request.meta, default=str) if request.meta else None

        known_ids = await UserRepository(self.session).existing_ids(recipients)

        for uid in recipients:
            if uid not in known_ids:
                result.errors[uid] = UNKNOWN_RECIPIENT
                continue

            key = None
            if request.idempotency_key:
                key = dedupe_key(request.idempotency_key, type, request.actor_id, uid)
                if await self.repo.find_by_dedupe_key(uid, key) is not None:
                    result.skipped.append(uid)
                    continue

            try:
                notification = await self.repo.add(
                    user_id=uid,
                    type=type.value,
                    actor_id=request.actor_id,
                    title=title,
                    body=body,
                    link=link,
                    meta=meta_json,
                    workspace_id=request.workspace_id,
                    project_id=request.project_id,
                    task_id=request.task_id,
                    thread_id=request.thread_id,
                    message_id=request.message_id,
                    dedupe_key=key,
                )
            except IntegrityError as e:
                if key is not None:
                    # Lost a race with a concurrent write of the same key
                    result.skipped.append(uid)
                    continue
                logger.warning("Notification insert for %s failed: %s", uid, e.orig)
                result.errors[uid] = str(e.orig)
            except SQLAlchemyError as e:
                logger.warning("Notification insert for %s failed: %s", uid, e)
                result.errors[uid] = str(e)
            else:
                result.ids.append(notification.id)
                result.delivered.append(serialize_notification(notification))

        logger.info(
            "Fan-out %s by %s: %d written, %d skipped, %d failed",
            type.value,
            request.actor_id,
            len(result.ids),
            len(result.skipped),
            len(result.errors),
        )
        return result

    async def publish(self, result: FanoutResult) -> None:
        """Push written rows to realtime subscribers.

        Call only after the rows are committed.
        """
        if self.broker is None:
            return
        for payload in result.delivered:
            await self.broker.publish(payload["user_id"], payload)
        result.delivered.clear()
