"""Dependencies for emitting notifications from primary-action routes."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.api.auth.dependencies import UserProvider
from taskhive.db import get_db
from taskhive.notifications import NotificationDispatcher, broker


async def get_dispatcher(
    user_provider: UserProvider,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> NotificationDispatcher:
    """Dispatcher bound to the request's session and user."""
    return NotificationDispatcher(db, broker, user_provider)


Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]

# Client-supplied key that makes a retried action's notifications a no-op
IdempotencyKey = Annotated[str | None, Header(alias="Idempotency-Key", max_length=255)]
