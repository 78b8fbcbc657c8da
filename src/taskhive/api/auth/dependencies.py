"""FastAPI dependencies for authentication."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db import RevokedToken, User, get_db
from taskhive.db.repositories import UserRepository
from taskhive.security.identity import RequestUserProvider
from taskhive.security.jwt import decode_token

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def is_token_revoked(db: AsyncSession, jti: str | None) -> bool:
    """Check if a token's JTI is in the revocation list."""
    if not jti:
        return False
    result = await db.execute(select(RevokedToken).where(RevokedToken.jti == jti))
    return result.scalar_one_or_none() is not None


async def authenticate_token(db: AsyncSession, token: str) -> User | None:
    """Resolve an access token to an active user, or None."""
    token_data = decode_token(token)
    if token_data is None or token_data.token_type != "access":
        return None

    if await is_token_revoked(db, token_data.jti):
        return None

    user = await UserRepository(db).get_by_id(token_data.user_id)
    if user is None or not user.is_active:
        return None
    return user


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user.

    Raises HTTPException 401 if not authenticated.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    token_data = decode_token(credentials.credentials)

    if token_data is None:
        raise _unauthorized("Invalid or expired token")

    if token_data.token_type != "access":
        raise _unauthorized("Invalid token type")

    # Check if token has been revoked
    if await is_token_revoked(db, token_data.jti):
        logger.warning(
            "Revoked token used for user_id=%s jti=%s", token_data.user_id, token_data.jti
        )
        raise _unauthorized("Token has been revoked")

    user = await UserRepository(db).get_by_id(token_data.user_id)

    if user is None:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise _unauthorized("User account is disabled")

    return user


async def get_user_provider(
    current_user: Annotated[User, Depends(get_current_user)],
) -> RequestUserProvider:
    """Current-user provider bound to this request."""
    return RequestUserProvider(current_user)


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
UserProvider = Annotated[RequestUserProvider, Depends(get_user_provider)]
