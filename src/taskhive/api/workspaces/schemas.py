"""Pydantic schemas for Workspaces API."""

from datetime import datetime

from pydantic import BaseModel, Field


class WorkspaceCreate(BaseModel):
    """Schema for creating a new workspace."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class WorkspaceMemberInfo(BaseModel):
    """Information about a workspace member."""

    user_id: str
    username: str
    display_name: str | None
    role: str  # owner, admin, member, viewer
    joined_at: datetime


class WorkspaceSummary(BaseModel):
    """Summary information about a workspace."""

    id: str
    name: str
    description: str | None
    created_by: str
    created_at: datetime
    member_count: int
    your_role: str


class WorkspaceDetail(BaseModel):
    """Full workspace detail including members."""

    id: str
    name: str
    description: str | None
    created_by: str
    created_at: datetime
    members: list[WorkspaceMemberInfo]


class AddMemberRequest(BaseModel):
    """Request to add a member to a workspace."""

    user_id: str
    role: str = Field(default="member", pattern=r"^(admin|member|viewer)$")


class ProjectCreate(BaseModel):
    """Schema for creating a project in a workspace."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class ProjectOut(BaseModel):
    """Project output schema."""

    id: str
    workspace_id: str
    name: str
    description: str | None
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}
