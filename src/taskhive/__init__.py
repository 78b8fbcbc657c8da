"""TaskHive - workspaces, tasks and chat with notification fan-out."""

__version__ = "0.1.0"

from taskhive.notifications.types import NotificationType

__all__ = ["NotificationType", "__version__"]
