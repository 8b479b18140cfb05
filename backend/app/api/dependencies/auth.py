# backend/app/api/dependencies/auth.py
"""
Authentication dependencies.

The user row is loaded on every request so that role changes made by the
subscription lifecycle take effect immediately, whatever role the token
was issued with.
"""

import asyncio
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user_id
from ...core.exceptions import UnauthorizedException
from ...models.user import User
from .database import get_db

logger = logging.getLogger(__name__)


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the token subject to a user, 401 when the user no longer exists."""
    user = await asyncio.to_thread(db.get, User, user_id)
    if user is None:
        logger.warning("auth_unknown_user", extra={"user_id": user_id})
        raise UnauthorizedException("User not found").to_http_exception()
    return user
