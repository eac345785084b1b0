"""
FastAPI dependencies for authentication.

Provides ``db_session``, ``get_current_user`` and ``get_current_user_id``
dependencies that are used across all protected routes.

Token lookup order is fixed: the session cookie first, then an
``Authorization: Bearer`` header.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth.errors import UnauthenticatedError
from auth.jwt import TokenError, verify_token
from config.settings import config
from database.helpers import get_user_by_id
from database.models import User
from database.session import get_db_session

logger = logging.getLogger(__name__)

_cookie_scheme = APIKeyCookie(name=config.auth_cookie_name, auto_error=False)
_bearer_scheme = HTTPBearer(auto_error=False)


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


def _extract_token(
    cookie_token: Optional[str],
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    if cookie_token:
        return cookie_token
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return None


async def get_current_user(
    request: Request,
    cookie_token: Optional[str] = Depends(_cookie_scheme),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    session: AsyncSession = Depends(db_session),
) -> User:
    """
    Resolve the authenticated ``User`` for this request.

    The returned record includes ``password_hash`` so handlers can
    re-verify the current password.  It is also stored on
    ``request.state.identity`` for the lifetime of the request.
    """
    token = _extract_token(cookie_token, credentials)
    if token is None:
        raise UnauthenticatedError("No token provided")

    try:
        user_id = verify_token(token)
    except TokenError as exc:
        logger.debug("Rejected token on %s: %s", request.url.path, exc)
        raise UnauthenticatedError("Invalid or expired token")

    user = await get_user_by_id(session, user_id)
    if user is None:
        logger.info("Token subject %s no longer exists", user_id)
        raise UnauthenticatedError("Invalid or expired token")

    request.state.identity = user
    return user


async def get_current_user_id(user: User = Depends(get_current_user)) -> str:
    """Return the authenticated ``user_id`` (UUID string)."""
    return str(user.user_id)
