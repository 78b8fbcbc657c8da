"""Chat thread and message API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.api.auth.dependencies import get_current_user
from taskhive.api.messages.schemas import MessageCreate, MessageOut, ThreadCreate, ThreadOut
from taskhive.api.notifications.dependencies import Dispatcher, IdempotencyKey
from taskhive.db import User, get_db
from taskhive.db.repositories import ThreadRepository, WorkspaceRepository
from taskhive.notifications import NotificationEvent, NotificationType, ResolutionContext
from taskhive.security.permissions import WorkspaceRole, check_workspace_role

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Messages"])

SNIPPET_LENGTH = 140


@router.post(
    "/workspaces/{workspace_id}/threads",
    response_model=ThreadOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_thread(
    workspace_id: str,
    thread_data: ThreadCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ThreadOut:
    """Create a chat thread in a workspace."""
    if not await check_workspace_role(db, workspace_id, current_user.id, WorkspaceRole.MEMBER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to create threads in this workspace",
        )

    member_ids = set(await WorkspaceRepository(db).member_ids(workspace_id))
    outsiders = [uid for uid in thread_data.participant_ids if uid not in member_ids]
    if outsiders:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Not workspace members: {', '.join(outsiders)}",
        )

    thread_repo = ThreadRepository(db)
    thread = await thread_repo.create(
        workspace_id=workspace_id,
        created_by=current_user.id,
        title=thread_data.title,
        participant_ids=thread_data.participant_ids,
    )

    return ThreadOut(
        id=thread.id,
        workspace_id=thread.workspace_id,
        title=thread.title,
        created_by=thread.created_by,
        created_at=thread.created_at,
        participant_ids=await thread_repo.participant_ids(thread.id),
    )


@router.post(
    "/threads/{thread_id}/messages",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    thread_id: str,
    message_data: MessageCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Dispatcher,
    idempotency_key: IdempotencyKey = None,
):
    """Post a message.

    The thread audience gets ``message_new``, or ``message_mention`` when
    the body contains an ``@handle``.
    """
    thread_repo = ThreadRepository(db)
    thread = await thread_repo.get_by_id(thread_id)
    if thread is None or not await WorkspaceRepository(db).is_member(
        thread.workspace_id, current_user.id
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")

    participant_ids = await thread_repo.participant_ids(thread_id)
    if participant_ids and current_user.id not in participant_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a participant of this thread",
        )

    message = await thread_repo.add_message(thread, current_user.id, message_data.body)

    await dispatcher.emit(
        NotificationEvent(
            type=NotificationType.MESSAGE_NEW,
            context=ResolutionContext(
                workspace_id=thread.workspace_id,
                thread_id=thread.id,
                message_id=message.id,
            ),
            meta={
                "actor_name": current_user.display_name or current_user.username,
                "thread_title": thread.title,
                "snippet": message.body[:SNIPPET_LENGTH],
            },
            message_body=message.body,
            idempotency_key=idempotency_key,
        )
    )
    await db.commit()
    await dispatcher.flush_realtime()
    return message
