"""Chat threads and messages API module."""

from taskhive.api.messages.routes import router as messages_router

__all__ = ["messages_router"]
