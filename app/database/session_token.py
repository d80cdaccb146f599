"""Session token database model.

Each bearer token handed out on login has a row here, keyed by the JWT ``jti``
claim. Revoking the row revokes the token even though its signature is
still valid.
"""

from datetime import datetime

from app.helpers.time import utcnow

from sqlalchemy import Column, DateTime
from sqlmodel import VARCHAR, Field, SQLModel, Text


class SessionToken(SQLModel, table=True):
    """Database table for issued session tokens."""

    __tablename__: str = "session_tokens"

    id: int | None = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="accounts.id", index=True)
    jti: str = Field(sa_column=Column(VARCHAR(64), nullable=False, unique=True, index=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    revoked_at: datetime | None = Field(default=None, sa_column=Column(DateTime, nullable=True))
    ip_address: str | None = Field(default=None, sa_column=Column(VARCHAR(45), nullable=True))
    user_agent: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
