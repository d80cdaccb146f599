from __future__ import annotations

from .password import (
    get_password_hash,
    validate_full_name,
    validate_password,
    verify_password,
)
from .token import (
    create_access_token,
    decode_access_token,
    invalidate_account_tokens,
    issue_session_token,
    revoke_session_token,
    session_expires_in,
    validate_session_token,
)

__all__ = [
    "create_access_token",
    "decode_access_token",
    "get_password_hash",
    "invalidate_account_tokens",
    "issue_session_token",
    "revoke_session_token",
    "session_expires_in",
    "validate_full_name",
    "validate_password",
    "validate_session_token",
    "verify_password",
]
