"""Tasks API module."""

from taskhive.api.tasks.routes import router as tasks_router

__all__ = ["tasks_router"]
