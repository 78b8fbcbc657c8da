"""JWT token utilities for authentication."""

import logging
import os
import uuid
from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

# JWT Configuration
_env = os.environ.get("TASKHIVE_ENV", "development")
_configured_secret = os.environ.get("TASKHIVE_SECRET_KEY")

if _configured_secret:
    SECRET_KEY = _configured_secret
elif _env == "production":
    raise RuntimeError(
        "TASKHIVE_SECRET_KEY must be set in production. "
        'Generate one with: python -c "import secrets; print(secrets.token_urlsafe(64))"'
    )
else:
    SECRET_KEY = "development-secret-key-DO-NOT-USE-IN-PRODUCTION"
    logger.warning("Using default JWT secret key. Set TASKHIVE_SECRET_KEY for production.")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("TASKHIVE_ACCESS_TOKEN_EXPIRE", "30"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.environ.get("TASKHIVE_REFRESH_TOKEN_EXPIRE", "7"))


class TokenData:
    """Decoded token data."""

    def __init__(
        self,
        user_id: str,
        token_type: str = "access",
        exp: datetime | None = None,
        jti: str | None = None,
        username: str | None = None,
    ):
        self.user_id = user_id
        self.token_type = token_type
        self.exp = exp
        self.jti = jti
        self.username = username


def _encode(user_id: str, token_type: str, expires_delta: timedelta, **claims: Any) -> str:
    now = datetime.utcnow()
    to_encode: dict[str, Any] = {
        "sub": user_id,
        "type": token_type,
        "exp": now + expires_delta,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    to_encode.update({key: value for key, value in claims.items() if value is not None})
    return str(jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM))


def create_access_token(
    user_id: str,
    expires_delta: timedelta | None = None,
    username: str | None = None,
    display_name: str | None = None,
) -> str:
    """Create a JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(
        user_id, "access", expires_delta, username=username, display_name=display_name
    )


def create_refresh_token(
    user_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT refresh token."""
    if expires_delta is None:
        expires_delta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(user_id, "refresh", expires_delta)


def decode_token(token: str) -> TokenData | None:
    """Decode and validate a JWT token.

    Returns:
        TokenData if valid, None if invalid or expired.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None

    exp = payload.get("exp")
    return TokenData(
        user_id=user_id,
        token_type=payload.get("type", "access"),
        exp=datetime.utcfromtimestamp(exp) if exp else None,
        jti=payload.get("jti"),
        username=payload.get("username"),
    )
