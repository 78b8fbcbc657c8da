"""Notifications API module."""

from taskhive.api.notifications.routes import router as notifications_router

__all__ = ["notifications_router"]
