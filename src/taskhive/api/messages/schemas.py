"""Pydantic schemas for chat threads and messages."""

from datetime import datetime

from pydantic import BaseModel, Field


class ThreadCreate(BaseModel):
    """Create a thread. Without participants it is public to the workspace."""

    title: str | None = Field(None, max_length=255)
    participant_ids: list[str] = Field(default_factory=list, max_length=200)


class ThreadOut(BaseModel):
    id: str
    workspace_id: str
    title: str | None
    created_by: str
    created_at: datetime
    participant_ids: list[str] = Field(default_factory=list)


class MessageCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=10000)


class MessageOut(BaseModel):
    id: str
    thread_id: str
    workspace_id: str
    author_id: str
    body: str
    created_at: datetime

    model_config = {"from_attributes": True}
