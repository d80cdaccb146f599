from __future__ import annotations

from .requests import (
    AccountActionRequest,
    CreateAdminRequest,
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdateRoleRequest,
    VerifyOTPRequest,
)
from .responses import AccountListData, APIResponse, LoginData, LogoutData, SignupData, VerifyData

__all__ = [
    "APIResponse",
    "AccountActionRequest",
    "AccountListData",
    "CreateAdminRequest",
    "EmailRequest",
    "LoginData",
    "LoginRequest",
    "LogoutData",
    "ResetPasswordRequest",
    "SignupData",
    "SignupRequest",
    "UpdateRoleRequest",
    "VerifyData",
    "VerifyOTPRequest",
]
