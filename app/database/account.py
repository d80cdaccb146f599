"""Account database model.

An account is the identity record of a LACPA member or administrator.
"""

from datetime import datetime
from enum import StrEnum

from app.helpers.time import utcnow
from app.models.model import UTCBaseModel

from sqlalchemy import Column, DateTime
from sqlmodel import VARCHAR, Field, SQLModel


class AccountRole(StrEnum):
    MEMBER = "member"
    ADMIN = "admin"


class Account(SQLModel, table=True):
    """Database table for member and admin accounts.

    ``email`` is stored lower-cased and trimmed, so the unique index makes
    email uniqueness case-insensitive.
    """

    __tablename__: str = "accounts"

    id: int | None = Field(default=None, primary_key=True)
    lacpa_id: str = Field(sa_column=Column(VARCHAR(32), nullable=False, unique=True, index=True))
    full_name: str = Field(sa_column=Column(VARCHAR(100), nullable=False))
    email: str = Field(sa_column=Column(VARCHAR(254), nullable=False, unique=True, index=True))
    pw_hash: str = Field(sa_column=Column(VARCHAR(128), nullable=False))
    role: str = Field(default=AccountRole.MEMBER, sa_column=Column(VARCHAR(16), nullable=False))
    is_verified: bool = Field(default=False)
    is_active: bool = Field(default=True)
    last_login_at: datetime | None = Field(default=None, sa_column=Column(DateTime, nullable=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN


class AccountResp(UTCBaseModel):
    """Public view of an account. Never carries the password hash."""

    lacpa_id: str
    full_name: str
    email: str
    role: str
    is_verified: bool
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_db(cls, account: Account) -> "AccountResp":
        return cls(
            lacpa_id=account.lacpa_id,
            full_name=account.full_name,
            email=account.email,
            role=account.role,
            is_verified=account.is_verified,
            is_active=account.is_active,
            last_login_at=account.last_login_at,
            created_at=account.created_at,
        )
