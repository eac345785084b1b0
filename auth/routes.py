"""
Auth API routes — register, login, logout, profile and password management.

Route prefix: /auth
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth.cookies import clear_auth_cookie, set_auth_cookie
from auth.dependencies import db_session, get_current_user
from auth.errors import InvalidCredentialsError, ValidationError
from auth.jwt import create_token
from auth.password import MAX_PASSWORD_BYTES, hash_password, verify_password
from database.helpers import create_user, get_user_by_email, update_user_fields
from database.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

# Verified against when the email is unknown so both failure paths cost one bcrypt check.
_DUMMY_HASH = hash_password("dummy-password-for-timing")


# ── Request / response schemas ─────────────────────────────────────────


def _check_password_bytes(value: str) -> str:
    if len(value.encode()) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


Username = Annotated[str, Field(min_length=2, max_length=64)]
Email = Annotated[EmailStr, Field(max_length=255)]
NewPassword = Annotated[str, Field(min_length=4), AfterValidator(_check_password_bytes)]


class RegisterRequest(BaseModel):
    username: Username
    email: Email
    password: NewPassword


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    username: Optional[Username] = None
    email: Optional[Email] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(
        ..., min_length=1,
        validation_alias=AliasChoices("currentPassword", "current_password"),
    )
    new_password: NewPassword = Field(
        ..., validation_alias=AliasChoices("newPassword", "new_password"),
    )


class UserOut(BaseModel):
    """Public projection of a user; never carries the password hash."""

    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    username: str
    email: str
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    message: str
    user: UserOut
    token: str


class UserResponse(BaseModel):
    message: Optional[str] = None
    user: UserOut


class MessageResponse(BaseModel):
    message: str


def _issue_session(response: Response, user: User) -> str:
    token = create_token(str(user.user_id))
    set_auth_cookie(response, token)
    return token


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    req: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Register a new user and start a session for them."""
    user = await create_user(
        session,
        username=req.username,
        email=req.email,
        password_hash=hash_password(req.password),
    )
    await session.commit()

    token = _issue_session(response, user)
    logger.info("Registered user %s (%s)", user.username, user.user_id)

    return {
        "message": "User registered successfully",
        "user": user,
        "token": token,
    }


@router.post("/login", response_model=AuthResponse)
async def login(
    req: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Login with email + password."""
    user = await get_user_by_email(session, req.email)

    # Same error and same bcrypt cost for unknown email and wrong password.
    password_hash = user.password_hash if user is not None else _DUMMY_HASH
    if not verify_password(req.password, password_hash) or user is None:
        logger.info("Failed login for %s", req.email)
        raise InvalidCredentialsError("Invalid credentials.")

    token = _issue_session(response, user)
    logger.info("Login: %s (%s)", user.username, user.user_id)

    return {
        "message": "Login successful",
        "user": user,
        "token": token,
    }


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> Dict[str, Any]:
    """Return the authenticated user."""
    return {"user": user}


@router.put("/update", response_model=UserResponse)
async def update_profile(
    req: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Update username and/or email of the authenticated user."""
    updates = req.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("No update fields provided.")

    updated = await update_user_fields(session, user.user_id, **updates)
    await session.commit()
    logger.info("Updated profile of %s: %s", updated.user_id, ", ".join(sorted(updates)))

    return {"message": "User updated successfully", "user": updated}


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    req: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Replace the password after re-verifying the current one."""
    if not verify_password(req.current_password, user.password_hash):
        raise InvalidCredentialsError("Current password is incorrect.")

    await update_user_fields(
        session, user.user_id, password_hash=hash_password(req.new_password)
    )
    await session.commit()
    logger.info("Password changed for %s", user.user_id)

    return {"message": "Password updated successfully"}


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Clear the session cookie.  Issued tokens stay valid until they expire."""
    clear_auth_cookie(response)
    logger.info("Logout: %s", user.user_id)
    return {"message": "Logged out successfully"}
