"""
Session cookie helpers.

All attributes come from settings so that set and clear always agree on
name, path, domain, Secure and SameSite (a mismatch leaves the browser
holding the old cookie).
"""

from __future__ import annotations

from fastapi import Response

from config.settings import config


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.auth_cookie_name,
        value=token,
        max_age=config.jwt_expiry_seconds,
        path="/",
        domain=config.cookie_domain,
        secure=config.cookie_secure,
        httponly=True,
        samesite=config.cookie_samesite,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=config.auth_cookie_name,
        path="/",
        domain=config.cookie_domain,
        secure=config.cookie_secure,
        httponly=True,
        samesite=config.cookie_samesite,
    )
