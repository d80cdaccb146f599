from __future__ import annotations

from .account import Account, AccountResp, AccountRole
from .session_token import SessionToken
from .verification import ChallengePurpose, ResetToken, VerificationChallenge

__all__ = [
    "Account",
    "AccountResp",
    "AccountRole",
    "ChallengePurpose",
    "ResetToken",
    "SessionToken",
    "VerificationChallenge",
]
