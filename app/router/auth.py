"""Member authentication endpoints.

Signup, one-time code verification, login, password reset, profile and
logout under ``/api/auth``.
"""

from app.database import AccountResp
from app.dependencies.client import ClientInfo
from app.dependencies.database import Database, Redis
from app.dependencies.rate_limit import AUTH_LIMITERS, LIMITERS
from app.dependencies.user import BearerToken, CurrentAccount
from app.models.auth import (
    APIResponse,
    EmailRequest,
    LoginData,
    LoginRequest,
    LogoutData,
    ResetPasswordRequest,
    SignupData,
    SignupRequest,
    VerifyData,
    VerifyOTPRequest,
)
from app.service.auth import session_expires_in
from app.service.auth_service import AuthService

from fastapi import APIRouter

router = APIRouter(prefix="/api/auth", tags=["Auth"], dependencies=LIMITERS)


@router.post(
    "/signup",
    name="Register a member account",
    status_code=201,
    response_model=APIResponse[SignupData],
    dependencies=AUTH_LIMITERS,
    description="Create an unverified account and email a signup code to the given address.",
)
async def signup(body: SignupRequest, db: Database, client: ClientInfo):
    result = await AuthService.signup(db, body.full_name, body.email, body.password, client)
    if result.code_sent:
        message = "Registration successful. Please verify your email with the OTP sent."
    else:
        message = "Registration successful, but the OTP email could not be sent. Please request a new OTP."
    return APIResponse(
        message=message,
        data=SignupData(lacpa_id=result.account.lacpa_id, email=result.account.email, code_sent=result.code_sent),
    )


@router.post(
    "/login",
    name="Log in",
    response_model=APIResponse[LoginData],
    dependencies=AUTH_LIMITERS,
    description="Exchange a LACPA id and password for a bearer token.",
)
async def login(body: LoginRequest, db: Database, client: ClientInfo):
    result = await AuthService.login(db, body.lacpa_id, body.password, client)
    return APIResponse(
        message="Login successful",
        data=LoginData(
            token=result.token,
            expires_in=session_expires_in(result.session),
            user=AccountResp.from_db(result.account),
        ),
    )


@router.post(
    "/verify-otp",
    name="Verify a one-time code",
    response_model=APIResponse[VerifyData],
    dependencies=AUTH_LIMITERS,
    description=(
        "Check a code sent by email. A signup code verifies the account. "
        "Every accepted code returns a single-use reset token."
    ),
)
async def verify_otp(body: VerifyOTPRequest, db: Database):
    reset_token = await AuthService.verify_code(db, body.email, body.otp)
    return APIResponse(message="OTP verified successfully", data=VerifyData(reset_token=reset_token, verified=True))


@router.post(
    "/forgot-password",
    name="Request a password reset code",
    response_model=APIResponse[None],
    dependencies=AUTH_LIMITERS,
)
async def forgot_password(body: EmailRequest, db: Database, client: ClientInfo):
    await AuthService.forgot_password(db, body.email, client)
    return APIResponse(message="If the email exists, a reset OTP has been sent.")


@router.post(
    "/resend-otp",
    name="Resend the latest one-time code",
    response_model=APIResponse[None],
    dependencies=AUTH_LIMITERS,
)
async def resend_otp(body: EmailRequest, db: Database, redis: Redis, client: ClientInfo):
    await AuthService.resend_code(db, redis, body.email, client)
    return APIResponse(message="If the email exists, a new OTP has been sent.")


@router.post(
    "/reset-password",
    name="Reset the password",
    response_model=APIResponse[None],
    dependencies=AUTH_LIMITERS,
    description="Set a new password with a reset token. Every existing session is logged out.",
)
async def reset_password(body: ResetPasswordRequest, db: Database):
    await AuthService.reset_password(db, body.token, body.new_password)
    return APIResponse(message="Password reset successful. You can now login with your new password.")


@router.get(
    "/profile",
    name="Get the current member's profile",
    response_model=APIResponse[AccountResp],
)
async def profile(account: CurrentAccount):
    return APIResponse(message="Profile retrieved successfully", data=AccountResp.from_db(account))


@router.post(
    "/logout",
    name="Log out",
    response_model=APIResponse[LogoutData],
    description="Revoke the bearer token. Logging out twice is not an error.",
)
async def logout(token: BearerToken, db: Database):
    revoked = await AuthService.logout(db, token)
    return APIResponse(message="Logout successful", data=LogoutData(revoked=revoked))
