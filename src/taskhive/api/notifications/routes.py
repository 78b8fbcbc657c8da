"""API routes for notifications."""

import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.api.auth.dependencies import UserProvider, get_current_user
from taskhive.api.notifications.schemas import (
    FanoutResponse,
    NotificationMarkRead,
    NotificationOut,
    NotificationPage,
    NotificationReadUpdate,
)
from taskhive.api.rate_limit import FANOUT_RATE_LIMIT, limiter
from taskhive.db import get_db
from taskhive.db.models import Notification, User
from taskhive.db.repositories import NotificationRepository, UserRepository
from taskhive.notifications import ActorMismatchError, FanoutRequest, FanoutWriter, broker
from taskhive.notifications.writer import UNKNOWN_RECIPIENT

logger = logging.getLogger(__name__)

PAGE_MAX = int(os.environ.get("TASKHIVE_NOTIFICATIONS_PAGE_MAX", "50"))

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _parse_cursor(cursor: str) -> tuple[datetime, str | None]:
    """Split ``<iso created_at>|<id>`` into its parts.

    A bare ISO timestamp is accepted too and has no id part.
    """
    created_at, _, notification_id = cursor.partition("|")
    try:
        value = datetime.fromisoformat(created_at)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid cursor")
    # Stored timestamps are naive UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value, notification_id or None


def _format_cursor(cursor: tuple[datetime, str] | None) -> str | None:
    if cursor is None:
        return None
    created_at, notification_id = cursor
    return f"{created_at.isoformat()}|{notification_id}"


async def _with_actor_usernames(
    db: AsyncSession, notifications: list[Notification]
) -> list[NotificationOut]:
    """Build output items, batch-loading actor usernames."""
    actor_ids = {n.actor_id for n in notifications if n.actor_id}
    actors = await UserRepository(db).get_many(actor_ids) if actor_ids else {}

    items = []
    for notification in notifications:
        item = NotificationOut.model_validate(notification)
        actor = actors.get(notification.actor_id)
        item.actor_username = actor.username if actor else None
        items.append(item)
    return items


@router.get("", response_model=NotificationPage)
async def list_notifications(
    limit: int = Query(20, ge=1, le=PAGE_MAX),
    cursor: str | None = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the current user's notifications, newest first.

    Pass the returned ``nextCursor`` as ``cursor`` to get the next page.
    """
    repo = NotificationRepository(db)
    before, before_id = _parse_cursor(cursor) if cursor else (None, None)
    rows, next_cursor = await repo.list_page(current_user.id, limit, before, before_id)

    return NotificationPage(
        items=await _with_actor_usernames(db, rows),
        next_cursor=_format_cursor(next_cursor),
        unread=await repo.count_unread(current_user.id),
    )


@router.post("/mark-all-read")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark every notification of the current user as read."""
    updated = await NotificationRepository(db).mark_all_read(current_user.id)
    await db.commit()
    logger.debug("Marked %d notifications read for %s", updated, current_user.id)
    return {"ok": True}


@router.post("/mark-read")
async def mark_notifications_read(
    data: NotificationMarkRead,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark specific notifications as read."""
    updated = await NotificationRepository(db).mark_read(current_user.id, data.ids)
    await db.commit()
    return {"updated": updated}


@router.post("/clear")
async def clear_notifications(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete all notifications of the current user."""
    deleted = await NotificationRepository(db).clear_all(current_user.id)
    await db.commit()
    logger.info("Cleared %d notifications for %s", deleted, current_user.id)
    return {"ok": True, "deleted": deleted}


@router.post("/fanout", response_model=FanoutResponse, response_model_exclude_none=True)
@limiter.limit(FANOUT_RATE_LIMIT)
async def fanout(
    request: Request,
    payload: FanoutRequest,
    user_provider: UserProvider,
    db: AsyncSession = Depends(get_db),
):
    """Write one notification per recipient.

    Rows that fail are reported per recipient in ``errors``; the others are
    still written. When no row could be written at all the request fails:
    400 if every recipient is unknown, 500 otherwise.
    """
    writer = FanoutWriter(db, broker, user_provider)
    try:
        result = await writer.write(payload)
    except ActorMismatchError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="actorId must be the current user",
        )

    if not result.ok:
        logger.error(
            "Fan-out %s by %s inserted nothing: %s",
            payload.type.value,
            payload.actor_id,
            result.errors,
        )
        all_unknown = all(reason == UNKNOWN_RECIPIENT for reason in result.errors.values())
        raise HTTPException(
            status_code=(
                status.HTTP_400_BAD_REQUEST
                if all_unknown
                else status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            detail={
                "error": "No notifications inserted",
                "recipients": list(result.errors),
                "errors": result.errors,
            },
        )

    await db.commit()
    await writer.publish(result)

    if result.errors:
        logger.warning(
            "Fan-out %s by %s failed for %d recipient(s)",
            payload.type.value,
            payload.actor_id,
            len(result.errors),
        )

    return FanoutResponse(
        ids=result.ids,
        errors=result.errors or None,
        skipped=result.skipped,
    )


@router.patch("/{notification_id}", response_model=NotificationOut)
async def set_notification_read(
    notification_id: str,
    data: NotificationReadUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Set the read flag of one notification."""
    notification = await NotificationRepository(db).set_read(
        current_user.id, notification_id, data.is_read
    )
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")

    await db.commit()
    items = await _with_actor_usernames(db, [notification])
    return items[0]
