"""Pydantic schemas for Tasks API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

TaskStatus = Literal["todo", "in_progress", "review", "done"]


class TaskCreate(BaseModel):
    """Schema for creating a task.

    The first of ``assignee_ids`` becomes the task's assignee; every
    listed assignee is notified.
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    assignee_ids: list[str] = Field(default_factory=list, max_length=50)
    due_at: datetime | None = None


class TaskAssign(BaseModel):
    """Change or clear a task's assignee."""

    assignee_id: str | None = None


class TaskStatusUpdate(BaseModel):
    """Move a task to another status."""

    status: TaskStatus


class TaskOut(BaseModel):
    """Task output schema."""

    id: str
    project_id: str
    workspace_id: str
    title: str
    description: str | None
    status: str
    assignee_id: str | None
    created_by: str
    due_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
