from __future__ import annotations

from datetime import timedelta
import secrets
from typing import Any

from app.config import settings
from app.database import Account, SessionToken
from app.helpers import as_utc, is_expired, transient_retry, utcnow
from app.log import log
from app.models.error import ErrorType, RequestError

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

__all__ = [
    "create_access_token",
    "decode_access_token",
    "invalidate_account_tokens",
    "issue_session_token",
    "revoke_session_token",
    "session_expires_in",
    "validate_session_token",
]

logger = log("Token")


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> tuple[str, str]:
    """Create a signed JWT access token.

    Args:
        data: The payload data for the token.
        expires_delta: Optional custom lifetime.

    Returns:
        A tuple of (encoded token, jti).
    """
    to_encode = data.copy()
    now = utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    jti = secrets.token_hex(16)

    to_encode.update({"exp": expire, "iat": now, "jti": jti, "iss": settings.jwt_issuer})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm), jti


def decode_access_token(token: str, *, verify_exp: bool = True) -> dict[str, Any] | None:
    """Verify and decode a JWT access token.

    Args:
        token: The JWT token string.
        verify_exp: Whether an expired token should be rejected.

    Returns:
        The decoded payload, or None if the token is malformed, tampered or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            issuer=settings.jwt_issuer,
            options={"verify_exp": verify_exp},
        )
    except ExpiredSignatureError:
        logger.debug("Rejected expired token")
        return None
    except JWTError as e:
        logger.debug(f"Rejected malformed token: {e}")
        return None


@transient_retry
async def issue_session_token(
    db: AsyncSession,
    account: Account,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    expires_delta: timedelta | None = None,
) -> tuple[str, SessionToken]:
    """Mint a bearer token for an account and record its session.

    Returns:
        A tuple of (bearer token, stored session row).
    """
    assert account.id is not None
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    token, jti = create_access_token(
        {"sub": str(account.id), "lacpa_id": account.lacpa_id, "role": account.role},
        expires_delta=lifetime,
    )
    record = SessionToken(
        account_id=account.id,
        jti=jti,
        expires_at=utcnow() + lifetime,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    logger.info(f"Issued session {record.id} for account {account.lacpa_id}")
    return token, record


async def _find_session(db: AsyncSession, jti: str) -> SessionToken | None:
    statement = select(SessionToken).where(SessionToken.jti == jti).execution_options(populate_existing=True)
    return (await db.exec(statement)).first()


@transient_retry
async def validate_session_token(db: AsyncSession, token: str) -> tuple[Account, SessionToken]:
    """Resolve a bearer token to its account.

    Every failure raises the same ``UNAUTHORIZED`` error so callers cannot tell
    a malformed token from an expired or revoked one. The reason is only
    logged.
    """
    payload = decode_access_token(token)
    if payload is None or "jti" not in payload:
        raise RequestError(ErrorType.UNAUTHORIZED)

    record = await _find_session(db, payload["jti"])
    if record is None:
        logger.debug("Rejected token with unknown session")
        raise RequestError(ErrorType.UNAUTHORIZED)
    if record.revoked_at is not None:
        logger.debug(f"Rejected revoked session {record.id}")
        raise RequestError(ErrorType.UNAUTHORIZED)
    if is_expired(record.expires_at):
        logger.debug(f"Rejected expired session {record.id}")
        raise RequestError(ErrorType.UNAUTHORIZED)

    account = await db.get(Account, record.account_id, populate_existing=True)
    if account is None or not account.is_active or not account.is_verified:
        logger.debug(f"Rejected session {record.id}: account missing, inactive or unverified")
        raise RequestError(ErrorType.UNAUTHORIZED)
    return account, record


@transient_retry
async def revoke_session_token(db: AsyncSession, token: str) -> bool:
    """Revoke the session behind a bearer token.

    Expired tokens with a valid signature can still be revoked. Revoking an
    already revoked session is a no-op.

    Returns:
        True if a live session was ended, False if it was already inactive.

    Raises:
        RequestError: ``UNAUTHORIZED`` when the token cannot be verified at all.
    """
    payload = decode_access_token(token, verify_exp=False)
    if payload is None or "jti" not in payload:
        raise RequestError(ErrorType.UNAUTHORIZED)

    now = utcnow()
    result = await db.execute(
        update(SessionToken)
        .where(col(SessionToken.jti) == payload["jti"], col(SessionToken.revoked_at).is_(None))
        .values(revoked_at=now)
    )
    await db.commit()
    revoked = result.rowcount > 0

    if revoked:
        logger.info(f"Revoked session for account {payload.get('lacpa_id')}")
    else:
        logger.debug(f"Session for account {payload.get('lacpa_id')} was already inactive")
    return revoked


@transient_retry
async def invalidate_account_tokens(db: AsyncSession, account_id: int) -> int:
    """Revoke every live session of an account.

    Args:
        db: The database session.
        account_id: The account whose sessions to revoke.

    Returns:
        The number of sessions revoked.
    """
    result = await db.execute(
        update(SessionToken)
        .where(col(SessionToken.account_id) == account_id, col(SessionToken.revoked_at).is_(None))
        .values(revoked_at=utcnow())
    )
    await db.commit()
    return result.rowcount


def session_expires_in(record: SessionToken) -> int:
    return max(0, int((as_utc(record.expires_at) - utcnow()).total_seconds()))
