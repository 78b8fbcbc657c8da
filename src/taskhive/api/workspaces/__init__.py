"""Workspaces API module."""

from taskhive.api.workspaces.routes import router as workspaces_router

__all__ = ["workspaces_router"]
