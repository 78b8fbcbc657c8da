"""Database package: models, engine and session management."""

from taskhive.db.database import close_db, get_db, get_engine, init_db
from taskhive.db.models import (
    Base,
    Message,
    MessageThread,
    Notification,
    Project,
    RevokedToken,
    Task,
    ThreadParticipant,
    User,
    Workspace,
    WorkspaceMember,
)

__all__ = [
    "Base",
    "Message",
    "MessageThread",
    "Notification",
    "Project",
    "RevokedToken",
    "Task",
    "ThreadParticipant",
    "User",
    "Workspace",
    "WorkspaceMember",
    "close_db",
    "get_db",
    "get_engine",
    "init_db",
]
