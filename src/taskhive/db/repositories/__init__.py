"""Repository layer for database operations."""

from taskhive.db.repositories.notification_repository import NotificationRepository
from taskhive.db.repositories.project_repository import ProjectRepository
from taskhive.db.repositories.thread_repository import ThreadRepository
from taskhive.db.repositories.user_repository import UserRepository
from taskhive.db.repositories.workspace_repository import WorkspaceRepository

__all__ = [
    "UserRepository",
    "WorkspaceRepository",
    "ProjectRepository",
    "ThreadRepository",
    "NotificationRepository",
]
