from __future__ import annotations

from app.config import settings
from app.log import log

import bcrypt

__all__ = [
    "get_password_hash",
    "validate_full_name",
    "validate_password",
    "verify_password",
]

logger = log("Auth")

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


def validate_password(password: str) -> list[str]:
    """Validate a password against security requirements.

    Args:
        password: The password to validate.

    Returns:
        A list of validation error messages. Empty if valid.
    """
    errors: list[str] = []

    if not password:
        errors.append("Password is required")
        return errors

    if len(password) < settings.password_min_length:
        errors.append(f"Password must be at least {settings.password_min_length} characters long")

    if len(password.encode()) > BCRYPT_MAX_BYTES:
        errors.append(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long")

    return errors


def validate_full_name(full_name: str) -> list[str]:
    errors: list[str] = []
    name = full_name.strip() if full_name else ""

    if not name:
        errors.append("Full name is required")
        return errors

    if len(name) < 3:
        errors.append("Full name must be at least 3 characters long")

    if len(name) > 100:
        errors.append("Full name must be at most 100 characters long")

    return errors


def get_password_hash(password: str) -> str:
    """Hash a password with a per-password salt.

    Args:
        password: The plain text password.

    Returns:
        The bcrypt hash.
    """
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a stored bcrypt hash.

    Args:
        plain_password: The plain text password.
        hashed_password: The stored hash.

    Returns:
        True if the password matches, False otherwise.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError:
        logger.exception("Password verification error")
        return False
