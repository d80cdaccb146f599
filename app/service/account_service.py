"""Account store.

Creates and looks up member accounts and applies the few mutations the auth
flow and the admin endpoints need. The unique index on ``accounts.email`` is
the authority on duplicate emails.
"""

import secrets

from app.database import Account, AccountRole
from app.helpers import transient_retry, utcnow
from app.log import log
from app.models.error import ErrorType, RequestError
from app.service.auth import get_password_hash

from sqlalchemy.exc import IntegrityError
from sqlmodel import col, func, select
from sqlmodel.ext.asyncio.session import AsyncSession

logger = log("Account")

MAX_ID_ATTEMPTS = 5


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_lacpa_id() -> str:
    """Generate a LACPA id in the ``LACPA-YYYY-NNNNN`` format."""
    return f"LACPA-{utcnow().year}-{secrets.randbelow(100000):05d}"


class AccountService:
    @staticmethod
    @transient_retry
    async def find_by_email(db: AsyncSession, email: str) -> Account | None:
        statement = select(Account).where(Account.email == normalize_email(email))
        return (await db.exec(statement)).first()

    @staticmethod
    @transient_retry
    async def find_by_login_id(db: AsyncSession, lacpa_id: str) -> Account:
        """Get an account by its LACPA id.

        Raises:
            RequestError: ``NOT_FOUND`` when no account has that id.
        """
        account = (await db.exec(select(Account).where(Account.lacpa_id == lacpa_id.strip()))).first()
        if account is None:
            raise RequestError(ErrorType.NOT_FOUND)
        return account

    @staticmethod
    @transient_retry
    async def get(db: AsyncSession, account_id: int) -> Account:
        account = await db.get(Account, account_id)
        if account is None:
            raise RequestError(ErrorType.NOT_FOUND)
        return account

    @staticmethod
    @transient_retry
    async def create(
        db: AsyncSession,
        full_name: str,
        email: str,
        password: str,
        *,
        role: AccountRole = AccountRole.MEMBER,
        verified: bool = False,
    ) -> Account:
        """Create an account with a fresh LACPA id.

        Args:
            db: Database session.
            full_name: Display name.
            email: Email address, normalized before storing.
            password: Plain text password, hashed before storing.
            role: Account role.
            verified: Whether the account starts verified.

        Returns:
            The created account.

        Raises:
            RequestError: ``DUPLICATE_EMAIL`` if the email is already registered.
        """
        email = normalize_email(email)
        if await AccountService.find_by_email(db, email) is not None:
            raise RequestError(ErrorType.DUPLICATE_EMAIL)

        pw_hash = get_password_hash(password)
        for _ in range(MAX_ID_ATTEMPTS):
            account = Account(
                lacpa_id=generate_lacpa_id(),
                full_name=full_name.strip(),
                email=email,
                pw_hash=pw_hash,
                role=role,
                is_verified=verified,
            )
            db.add(account)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                # A concurrent signup may have taken the email between the check and the insert.
                if await AccountService.find_by_email(db, email) is not None:
                    logger.info(f"Rejected concurrent duplicate signup for {email}")
                    raise RequestError(ErrorType.DUPLICATE_EMAIL)
                logger.debug("LACPA id collision, generating another")
                continue
            await db.refresh(account)
            logger.info(f"Created {role} account {account.lacpa_id}")
            return account

        logger.error(f"Could not allocate a unique LACPA id after {MAX_ID_ATTEMPTS} attempts")
        raise RequestError(ErrorType.UNKNOWN)

    @staticmethod
    @transient_retry
    async def mark_verified(db: AsyncSession, email: str) -> Account | None:
        account = await AccountService.find_by_email(db, email)
        if account is None:
            return None
        if not account.is_verified:
            account.is_verified = True
            account.updated_at = utcnow()
            await db.commit()
            logger.info(f"Account {account.lacpa_id} verified")
        return account

    @staticmethod
    @transient_retry
    async def update_password_hash(db: AsyncSession, email: str, pw_hash: str) -> Account:
        account = await AccountService.find_by_email(db, email)
        if account is None:
            raise RequestError(ErrorType.NOT_FOUND)
        account.pw_hash = pw_hash
        account.updated_at = utcnow()
        await db.commit()
        return account

    @staticmethod
    @transient_retry
    async def touch_last_login(db: AsyncSession, account: Account) -> None:
        account.last_login_at = utcnow()
        account.updated_at = account.last_login_at
        await db.commit()

    @staticmethod
    @transient_retry
    async def set_active(db: AsyncSession, account: Account, active: bool) -> None:
        account.is_active = active
        account.updated_at = utcnow()
        await db.commit()

    @staticmethod
    @transient_retry
    async def set_role(db: AsyncSession, account: Account, role: AccountRole) -> None:
        account.role = role
        account.updated_at = utcnow()
        await db.commit()

    @staticmethod
    @transient_retry
    async def list_accounts(
        db: AsyncSession,
        *,
        page: int = 1,
        per_page: int = 20,
        role: AccountRole | None = None,
        verified: bool | None = None,
    ) -> tuple[list[Account], int]:
        """List accounts, newest first.

        Returns:
            A tuple of (accounts on the page, total matching accounts).
        """
        conditions = []
        if role is not None:
            conditions.append(col(Account.role) == role)
        if verified is not None:
            conditions.append(col(Account.is_verified).is_(verified))

        total = (await db.exec(select(func.count()).select_from(Account).where(*conditions))).one()
        accounts = (
            await db.exec(
                select(Account)
                .where(*conditions)
                .order_by(col(Account.created_at).desc(), col(Account.id).desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
        ).all()
        return list(accounts), total
