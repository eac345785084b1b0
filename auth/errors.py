"""
Application error taxonomy.

Every error carries the HTTP status it maps to and a client-safe message.
``api.middleware.register_exception_handlers`` renders them as
``{"message": ...}``.
"""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request."


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "User already exists."


class InvalidCredentialsError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Invalid credentials."


class UnauthenticatedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found."
