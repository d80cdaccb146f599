from typing import Generic, TypeVar

from app.database import AccountResp
from app.models.model import UTCBaseModel

from pydantic import BaseModel

T = TypeVar("T")


class APIResponse(UTCBaseModel, Generic[T]):
    """Success envelope shared by every JSON endpoint."""

    success: bool = True
    message: str
    data: T | None = None


class SignupData(BaseModel):
    lacpa_id: str
    email: str
    code_sent: bool


class LoginData(UTCBaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: AccountResp


class VerifyData(BaseModel):
    reset_token: str
    verified: bool


class LogoutData(BaseModel):
    revoked: bool


class AccountListData(UTCBaseModel):
    users: list[AccountResp]
    total: int
    page: int
    per_page: int
