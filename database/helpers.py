"""
Database helper functions — the credential store.

Uniqueness of ``email`` is enforced by the ``users.email`` constraint; the
helpers translate constraint violations into ``ConflictError`` instead of
pre-checking, so two concurrent registrations cannot both succeed.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.errors import ConflictError, NotFoundError
from database.models import User

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({"username", "email", "password_hash"})


def _to_uuid(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def create_user(
    session: AsyncSession,
    username: str,
    email: str,
    password_hash: str,
) -> User:
    """Insert a new ``User``; raises ``ConflictError`` if the email is taken."""
    user = User(
        user_id=uuid.uuid4(),
        username=username,
        email=normalize_email(email),
        password_hash=password_hash,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("User already exists.")
    return user


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: str | uuid.UUID) -> Optional[User]:
    """Return the user (password hash included) or ``None`` for unknown/malformed ids."""
    uid = _to_uuid(user_id)
    if uid is None:
        return None
    result = await session.execute(select(User).where(User.user_id == uid))
    return result.scalar_one_or_none()


async def update_user_fields(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    **fields: str,
) -> User:
    """
    Apply a partial update of ``username`` / ``email`` / ``password_hash``.

    Raises ``ValueError`` for any other field, ``NotFoundError`` when the
    user does not exist and ``ConflictError`` when the new email is taken.
    """
    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    user = await get_user_by_id(session, user_id)
    if user is None:
        raise NotFoundError("User not found.")

    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
    for name, value in fields.items():
        setattr(user, name, value)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Email already in use.")
    return user
