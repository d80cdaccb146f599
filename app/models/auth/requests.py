from app.database import AccountRole

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    full_name: str = Field(max_length=100)
    email: EmailStr
    password: str = Field(max_length=256)


class LoginRequest(BaseModel):
    lacpa_id: str = Field(min_length=1, max_length=32)
    password: str = Field(max_length=256)


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1, max_length=16)


class EmailRequest(BaseModel):
    """Body of the forgot-password and resend-code endpoints."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    new_password: str = Field(max_length=256)


class CreateAdminRequest(SignupRequest):
    pass


class UpdateRoleRequest(BaseModel):
    lacpa_id: str = Field(min_length=1, max_length=32)
    role: AccountRole


class AccountActionRequest(BaseModel):
    lacpa_id: str = Field(min_length=1, max_length=32)
