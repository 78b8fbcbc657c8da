"""Authentication API module."""

from taskhive.api.auth.dependencies import CurrentUser, UserProvider, get_current_user
from taskhive.api.auth.routes import router as auth_router

__all__ = [
    "auth_router",
    "CurrentUser",
    "UserProvider",
    "get_current_user",
]
