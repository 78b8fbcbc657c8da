"""Pydantic schemas for Notifications API."""

from datetime import datetime

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    """Notification output schema."""

    id: str
    type: str
    title: str
    body: str | None = None
    link: str | None = None
    workspace_id: str | None = None
    project_id: str | None = None
    task_id: str | None = None
    thread_id: str | None = None
    message_id: str | None = None
    actor_id: str | None = None
    actor_username: str | None = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(BaseModel):
    """One keyset page of notifications."""

    items: list[NotificationOut]
    next_cursor: str | None = Field(None, serialization_alias="nextCursor")
    unread: int


class NotificationReadUpdate(BaseModel):
    """Set the read flag of one notification."""

    is_read: bool


class NotificationMarkRead(BaseModel):
    """Mark specific notifications as read."""

    ids: list[str] = Field(..., max_length=500)


class FanoutResponse(BaseModel):
    """Result of a fan-out request."""

    ids: list[str]
    errors: dict[str, str] | None = None
    skipped: list[str] = Field(default_factory=list)
