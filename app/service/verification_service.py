"""One-time code and reset token service.

Generates, stores and validates the numeric codes mailed to members, and
mints the single-use reset tokens handed out once a code is accepted.
Delivery lives in ``EmailService``; this service never sends anything.
"""

from datetime import timedelta
import hashlib
import secrets
import string

from app.config import settings
from app.database import Account, ChallengePurpose, ResetToken, VerificationChallenge
from app.helpers import is_expired, transient_retry, utcnow
from app.log import log
from app.models.error import ErrorType, RequestError
from app.service.account_service import AccountService

from sqlalchemy import delete, update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

logger = log("Verification")


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class VerificationService:
    """Verification code service.

    At most one unused code exists per (email, purpose): issuing a new code
    deletes the older ones in the same transaction.
    """

    @staticmethod
    def generate_code() -> str:
        """Generate a zero-padded numeric code."""
        return "".join(secrets.choice(string.digits) for _ in range(settings.otp_length))

    @staticmethod
    @transient_retry
    async def issue(
        db: AsyncSession,
        email: str,
        purpose: ChallengePurpose,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> str:
        """Issue a fresh code for (email, purpose), replacing any unused one.

        Args:
            db: Database session.
            email: Normalized email address.
            purpose: What the code unlocks.
            ip_address: Client IP, stored for auditing.
            user_agent: Client user agent, stored for auditing.

        Returns:
            The generated code.
        """
        code = VerificationService.generate_code()
        await db.execute(
            delete(VerificationChallenge).where(
                col(VerificationChallenge.email) == email,
                col(VerificationChallenge.purpose) == purpose,
                col(VerificationChallenge.is_used).is_(False),
            )
        )
        db.add(
            VerificationChallenge(
                email=email,
                code=code,
                purpose=purpose,
                expires_at=utcnow() + timedelta(minutes=settings.otp_expire_minutes),
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        await db.commit()
        logger.info(f"Issued {purpose} code for {email}")
        return code

    @staticmethod
    @transient_retry
    async def consume_code(db: AsyncSession, email: str, code: str) -> VerificationChallenge:
        """Consume a code exactly once.

        Raises:
            RequestError: ``INVALID_CODE`` when no challenge matches (including
                superseded codes), ``CODE_ALREADY_USED`` when it was consumed
                before, ``CODE_EXPIRED`` when it is past its expiry.
        """
        challenge = (
            await db.exec(
                select(VerificationChallenge)
                .where(VerificationChallenge.email == email, VerificationChallenge.code == code)
                .order_by(col(VerificationChallenge.created_at).desc(), col(VerificationChallenge.id).desc())
                .execution_options(populate_existing=True)
            )
        ).first()

        if challenge is None:
            logger.debug(f"Rejected unknown code for {email}")
            raise RequestError(ErrorType.INVALID_CODE)
        if challenge.is_used:
            logger.debug(f"Rejected reused code for {email}")
            raise RequestError(ErrorType.CODE_ALREADY_USED)
        if is_expired(challenge.expires_at):
            logger.debug(f"Rejected expired code for {email}")
            raise RequestError(ErrorType.CODE_EXPIRED)

        now = utcnow()
        result = await db.execute(
            update(VerificationChallenge)
            .where(col(VerificationChallenge.id) == challenge.id, col(VerificationChallenge.is_used).is_(False))
            .values(is_used=True, used_at=now)
        )
        await db.commit()
        if result.rowcount == 0:
            # Another request consumed it between the read and the update.
            raise RequestError(ErrorType.CODE_ALREADY_USED)

        challenge.is_used = True
        challenge.used_at = now
        return challenge

    @staticmethod
    async def verify(db: AsyncSession, email: str, code: str) -> tuple[str, ResetToken]:
        """Consume a code and mint the reset token that proves it.

        Each step retries on its own. A code consumed by the first step stays
        consumed when a later step fails.

        Returns:
            A tuple of (raw reset token, stored reset token row).
        """
        challenge = await VerificationService.consume_code(db, email, code)
        purpose = ChallengePurpose(challenge.purpose)
        account = await AccountService.find_by_email(db, email)
        if account is None:
            logger.warning(f"Code for {email} was consumed but the account no longer exists")
            raise RequestError(ErrorType.INVALID_CODE)
        return await VerificationService.mint_reset_token(db, account, purpose)

    @staticmethod
    @transient_retry
    async def latest_purpose(db: AsyncSession, email: str) -> ChallengePurpose | None:
        challenge = (
            await db.exec(
                select(VerificationChallenge)
                .where(VerificationChallenge.email == email)
                .order_by(col(VerificationChallenge.created_at).desc(), col(VerificationChallenge.id).desc())
            )
        ).first()
        return ChallengePurpose(challenge.purpose) if challenge else None

    @staticmethod
    @transient_retry
    async def mint_reset_token(
        db: AsyncSession, account: Account, purpose: ChallengePurpose
    ) -> tuple[str, ResetToken]:
        assert account.id is not None
        now = utcnow()
        await db.execute(
            update(ResetToken)
            .where(col(ResetToken.email) == account.email, col(ResetToken.is_used).is_(False))
            .values(is_used=True, used_at=now)
        )

        raw = secrets.token_urlsafe(32)
        record = ResetToken(
            account_id=account.id,
            email=account.email,
            token_hash=hash_reset_token(raw),
            purpose=purpose,
            expires_at=now + timedelta(minutes=settings.reset_token_expire_minutes),
        )
        db.add(record)
        await db.commit()
        await db.refresh(record)
        logger.info(f"Minted {purpose} reset token for {account.lacpa_id}")
        return raw, record

    @staticmethod
    @transient_retry
    async def consume_reset_token(db: AsyncSession, raw: str) -> ResetToken:
        """Consume a reset token exactly once.

        Raises:
            RequestError: ``INVALID_OR_EXPIRED_TOKEN`` when the token is unknown,
                expired or already used.
        """
        record = (
            await db.exec(
                select(ResetToken)
                .where(ResetToken.token_hash == hash_reset_token(raw))
                .execution_options(populate_existing=True)
            )
        ).first()
        if record is None or record.is_used or is_expired(record.expires_at):
            logger.debug("Rejected unknown, used or expired reset token")
            raise RequestError(ErrorType.INVALID_OR_EXPIRED_TOKEN)

        now = utcnow()
        result = await db.execute(
            update(ResetToken)
            .where(col(ResetToken.id) == record.id, col(ResetToken.is_used).is_(False))
            .values(is_used=True, used_at=now)
        )
        await db.commit()
        if result.rowcount == 0:
            raise RequestError(ErrorType.INVALID_OR_EXPIRED_TOKEN)

        record.is_used = True
        record.used_at = now
        return record

    @staticmethod
    @transient_retry
    async def consume_signup_tokens(db: AsyncSession, account: Account) -> int:
        """Retire the reset tokens left over from signup verification."""
        result = await db.execute(
            update(ResetToken)
            .where(
                col(ResetToken.account_id) == account.id,
                col(ResetToken.purpose) == ChallengePurpose.SIGNUP,
                col(ResetToken.is_used).is_(False),
            )
            .values(is_used=True, used_at=utcnow())
        )
        await db.commit()
        return result.rowcount
