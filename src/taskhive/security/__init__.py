"""Security module for authentication and authorization."""

from taskhive.security.identity import (
    CurrentUserProvider,
    RequestUserProvider,
    StaticUserProvider,
)
from taskhive.security.jwt import create_access_token, create_refresh_token, decode_token
from taskhive.security.password import hash_password, verify_password
from taskhive.security.permissions import WorkspaceRole, check_workspace_role

__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "check_workspace_role",
    "WorkspaceRole",
    "CurrentUserProvider",
    "RequestUserProvider",
    "StaticUserProvider",
]
