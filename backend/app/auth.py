"""
Bearer token handling.

Tokens are HS256 JWTs carrying the user id in ``sub`` and the role in
``role``. Issuing tokens (phone OTP login) is handled by the auth service;
this API only verifies them. ``create_access_token`` exists for tooling and
tests.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWTError

from .core.config import secret_or_plain, settings
from .core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify an access token.

    Raises:
        jwt.PyJWTError: Signature, expiry or format is invalid
    """
    payload_raw = jwt.decode(
        token,
        secret_or_plain(settings.secret_key),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def create_access_token(
    user_id: str, role: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token for ``user_id``.

    Args:
        user_id: Subject of the token
        role: Role claim
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": user_id, "role": role, "exp": expire}
    return cast(
        str,
        jwt.encode(to_encode, secret_or_plain(settings.secret_key), algorithm=settings.algorithm),
    )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Dependency returning the authenticated user id from the bearer token.

    Raises:
        HTTPException: 401 when the token is missing or invalid
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Authentication required").to_http_exception()

    try:
        payload = decode_access_token(credentials.credentials)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise UnauthorizedException("Invalid token").to_http_exception()

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token payload missing 'sub' field")
        raise UnauthorizedException("Invalid token").to_http_exception()
    return user_id
