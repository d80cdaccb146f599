"""Authentication flows.

Orchestrates the account store, the one-time code service, the session
tokens and mail delivery into the signup, verification, login, reset and
logout flows.

Account states are ``unverified -> verified``; sessions attach to and detach
from verified accounts. Password reset never changes the verified state.
"""

from dataclasses import dataclass

from app.config import settings
from app.database import Account, ChallengePurpose, SessionToken
from app.log import log
from app.models.error import ErrorType, RequestError
from app.service.account_service import AccountService, normalize_email
from app.service.auth import (
    get_password_hash,
    invalidate_account_tokens,
    issue_session_token,
    revoke_session_token,
    validate_full_name,
    validate_password,
    verify_password,
)
from app.service.email_service import EmailService
from app.service.verification_service import VerificationService

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlmodel.ext.asyncio.session import AsyncSession

logger = log("AuthFlow")

RESEND_COOLDOWN_PREFIX = "otp:resend_cooldown:"


@dataclass
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class SignupResult:
    account: Account
    code_sent: bool


@dataclass
class LoginResult:
    account: Account
    token: str
    session: SessionToken


def ensure_valid_password(password: str, field: str = "password") -> None:
    errors = validate_password(password)
    if errors:
        raise RequestError(
            ErrorType.INVALID_PASSWORD,
            {"fields": [{"field": field, "message": message} for message in errors]},
        )


def ensure_valid_full_name(full_name: str) -> None:
    errors = validate_full_name(full_name)
    if errors:
        raise RequestError(
            ErrorType.VALIDATION_ERROR,
            {"fields": [{"field": "full_name", "message": message} for message in errors]},
        )


async def _send_code(account: Account, code: str, purpose: ChallengePurpose) -> None:
    await EmailService.send_code(account.email, account.full_name, code, purpose)


class AuthService:
    @staticmethod
    async def signup(
        db: AsyncSession,
        full_name: str,
        email: str,
        password: str,
        client: ClientInfo | None = None,
    ) -> SignupResult:
        """Register an unverified account and mail it a signup code.

        The account is kept even when the code cannot be delivered; the
        result reports ``code_sent=False`` so the member can ask for a resend.

        Raises:
            RequestError: ``DUPLICATE_EMAIL``, ``INVALID_PASSWORD`` or
                ``VALIDATION_ERROR``.
        """
        client = client or ClientInfo()
        ensure_valid_full_name(full_name)
        ensure_valid_password(password)

        account = await AccountService.create(db, full_name, email, password)
        code = await VerificationService.issue(
            db,
            account.email,
            ChallengePurpose.SIGNUP,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        try:
            await _send_code(account, code, ChallengePurpose.SIGNUP)
        except RequestError as e:
            if e.error_type is not ErrorType.CODE_DELIVERY_FAILED:
                raise
            logger.warning(f"Signup code for {account.lacpa_id} was not delivered")
            return SignupResult(account=account, code_sent=False)
        return SignupResult(account=account, code_sent=True)

    @staticmethod
    async def login(
        db: AsyncSession,
        lacpa_id: str,
        password: str,
        client: ClientInfo | None = None,
    ) -> LoginResult:
        """Exchange a LACPA id and password for a session token.

        Checks run in this order: unknown id, unverified, wrong password,
        deactivated. Unknown ids and wrong passwords share one error.
        """
        client = client or ClientInfo()
        try:
            account = await AccountService.find_by_login_id(db, lacpa_id)
        except RequestError as e:
            if e.error_type is not ErrorType.NOT_FOUND:
                raise
            logger.warning(f"Login failed for {lacpa_id}: unknown id")
            raise RequestError(ErrorType.INVALID_CREDENTIALS) from e

        if not account.is_verified:
            logger.info(f"Login refused for {account.lacpa_id}: unverified")
            raise RequestError(ErrorType.UNVERIFIED)
        if not verify_password(password, account.pw_hash):
            logger.warning(f"Login failed for {account.lacpa_id}: wrong password")
            raise RequestError(ErrorType.INVALID_CREDENTIALS)
        if not account.is_active:
            logger.info(f"Login refused for {account.lacpa_id}: deactivated")
            raise RequestError(ErrorType.ACCOUNT_DEACTIVATED)

        await AccountService.touch_last_login(db, account)
        await VerificationService.consume_signup_tokens(db, account)
        token, session = await issue_session_token(
            db, account, ip_address=client.ip_address, user_agent=client.user_agent
        )
        logger.info(f"Account {account.lacpa_id} logged in")
        return LoginResult(account=account, token=token, session=session)

    @staticmethod
    async def verify_code(db: AsyncSession, email: str, code: str) -> str:
        """Check a mailed code and return a fresh reset token.

        A signup code also marks the account verified.

        Raises:
            RequestError: ``INVALID_CODE``, ``CODE_EXPIRED`` or
                ``CODE_ALREADY_USED``.
        """
        email = normalize_email(email)
        raw_token, record = await VerificationService.verify(db, email, code.strip())
        if record.purpose == ChallengePurpose.SIGNUP:
            await AccountService.mark_verified(db, email)
        return raw_token

    @staticmethod
    async def forgot_password(db: AsyncSession, email: str, client: ClientInfo | None = None) -> None:
        """Mail a reset code. Unknown emails succeed silently."""
        client = client or ClientInfo()
        account = await AccountService.find_by_email(db, email)
        if account is None:
            logger.debug(f"Password reset requested for unknown email {normalize_email(email)}")
            return

        code = await VerificationService.issue(
            db,
            account.email,
            ChallengePurpose.RESET,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        await _send_code(account, code, ChallengePurpose.RESET)

    @staticmethod
    async def resend_code(
        db: AsyncSession,
        redis: Redis,
        email: str,
        client: ClientInfo | None = None,
    ) -> None:
        """Re-issue the latest kind of code for an email.

        The cooldown applies to unknown emails as well, so the response does
        not reveal whether an account exists.

        Raises:
            RequestError: ``TOO_MANY_REQUESTS`` inside the cooldown window.
        """
        client = client or ClientInfo()
        email = normalize_email(email)
        await _enter_resend_cooldown(redis, email)

        account = await AccountService.find_by_email(db, email)
        if account is None:
            logger.debug(f"Resend requested for unknown email {email}")
            return

        purpose = await VerificationService.latest_purpose(db, email)
        if purpose is None:
            purpose = ChallengePurpose.RESET if account.is_verified else ChallengePurpose.SIGNUP
        code = await VerificationService.issue(
            db,
            account.email,
            purpose,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        await _send_code(account, code, purpose)

    @staticmethod
    async def reset_password(db: AsyncSession, token: str, new_password: str) -> Account:
        """Set a new password with a reset token and end every session.

        Raises:
            RequestError: ``INVALID_PASSWORD`` or ``INVALID_OR_EXPIRED_TOKEN``.
        """
        ensure_valid_password(new_password, field="new_password")
        record = await VerificationService.consume_reset_token(db, token)
        account = await AccountService.update_password_hash(db, record.email, get_password_hash(new_password))
        revoked = await invalidate_account_tokens(db, account.id)  # pyright: ignore[reportArgumentType]
        logger.info(f"Password reset for {account.lacpa_id}, revoked {revoked} sessions")
        return account

    @staticmethod
    async def logout(db: AsyncSession, token: str) -> bool:
        return await revoke_session_token(db, token)


async def _enter_resend_cooldown(redis: Redis, email: str) -> None:
    key = f"{RESEND_COOLDOWN_PREFIX}{email}"
    try:
        acquired = await redis.set(key, "1", ex=settings.otp_resend_cooldown_seconds, nx=True)
        if acquired:
            return
        retry_after = await redis.ttl(key)
    except RedisError as e:
        logger.error(f"Redis unavailable for resend cooldown: {e}")
        raise RequestError(ErrorType.TRANSIENT_STORE_ERROR) from e

    retry_after = max(int(retry_after), 1)
    raise RequestError(
        ErrorType.TOO_MANY_REQUESTS,
        {"retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )
