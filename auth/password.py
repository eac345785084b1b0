"""
Password hashing and verification.

Uses bcrypt for password hashing with automatic
salting and configurable work factor (``config.bcrypt_rounds``).
"""

from __future__ import annotations

import bcrypt

from config.settings import config

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (auto-salted, configured work factor)."""
    salt = bcrypt.gensalt(rounds=config.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except (ValueError, TypeError, AttributeError):
        return False
