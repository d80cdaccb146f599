"""One-time code and reset token database models.

This module stores the verification challenges mailed to users and the
single-use reset tokens minted after a challenge is passed.
"""

from datetime import datetime
from enum import StrEnum

from app.helpers.time import utcnow

from sqlalchemy import Column, DateTime, Index
from sqlmodel import VARCHAR, Field, SQLModel, Text


class ChallengePurpose(StrEnum):
    SIGNUP = "signup"
    RESET = "reset"


class VerificationChallenge(SQLModel, table=True):
    """Database table for one-time verification codes."""

    __tablename__: str = "verification_challenges"
    __table_args__ = (Index("idx_challenge_email_purpose", "email", "purpose"),)

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(sa_column=Column(VARCHAR(254), nullable=False, index=True))
    code: str = Field(sa_column=Column(VARCHAR(10), nullable=False))
    purpose: str = Field(sa_column=Column(VARCHAR(16), nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    is_used: bool = Field(default=False)
    used_at: datetime | None = Field(default=None, sa_column=Column(DateTime, nullable=True))
    ip_address: str | None = Field(default=None, sa_column=Column(VARCHAR(45), nullable=True))
    user_agent: str | None = Field(default=None, sa_column=Column(Text, nullable=True))


class ResetToken(SQLModel, table=True):
    """Database table for reset tokens.

    Only the SHA-256 digest of the token is stored; the raw value is handed
    to the client once and never persisted.
    """

    __tablename__: str = "reset_tokens"

    id: int | None = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="accounts.id", index=True)
    email: str = Field(sa_column=Column(VARCHAR(254), nullable=False, index=True))
    token_hash: str = Field(sa_column=Column(VARCHAR(64), nullable=False, unique=True, index=True))
    purpose: str = Field(sa_column=Column(VARCHAR(16), nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    is_used: bool = Field(default=False)
    used_at: datetime | None = Field(default=None, sa_column=Column(DateTime, nullable=True))
