from contextlib import asynccontextmanager
from datetime import timedelta
import re

from app.database import Account, ChallengePurpose, ResetToken, SessionToken, VerificationChallenge
from app.helpers import as_utc, is_expired, transient_retry, utcnow
from app.models.error import ErrorType, RequestError
from app.service.account_service import AccountService, generate_lacpa_id
from app.service.auth import (
    get_password_hash,
    issue_session_token,
    validate_password,
    validate_session_token,
    verify_password,
)
from app.service.auth_service import AuthService
from app.service.database_cleanup_service import DatabaseCleanupService
from app.service.verification_service import VerificationService, hash_reset_token
from app.tasks import database_cleanup

import pytest
from sqlalchemy import Update, update
from sqlalchemy.exc import OperationalError
from sqlmodel import col, func, select

EMAIL = "carla@example.com"


async def _account(session, verified: bool = True):
    return await AccountService.create(session, "Carla Khoury", EMAIL, "Secret123!", verified=verified)


def test_password_hash_roundtrip():
    hashed = get_password_hash("Secret123!")
    assert hashed != "Secret123!"
    assert verify_password("Secret123!", hashed)
    assert not verify_password("secret123!", hashed)
    assert not verify_password("Secret123!", "")
    assert not verify_password("Secret123!", "not-a-bcrypt-hash")


def test_password_policy():
    assert validate_password("Secret123!") == []
    assert validate_password("") == ["Password is required"]
    assert validate_password("short")
    assert validate_password("x" * 73)


def test_lacpa_id_format():
    assert re.fullmatch(rf"LACPA-{utcnow().year}-\d{{5}}", generate_lacpa_id())


def test_generated_code_is_zero_padded_digits():
    for _ in range(50):
        code = VerificationService.generate_code()
        assert len(code) == 6
        assert code.isdigit()


def test_time_helpers():
    naive = utcnow().replace(tzinfo=None)
    assert as_utc(naive).tzinfo is not None
    assert is_expired(naive - timedelta(seconds=1))
    assert not is_expired(utcnow() + timedelta(minutes=1))


async def test_create_normalizes_email(session):
    account = await AccountService.create(session, "  Carla Khoury ", "  Carla@Example.COM ", "Secret123!")
    assert account.email == EMAIL
    assert account.full_name == "Carla Khoury"
    assert account.role == "member"
    assert not account.is_verified
    assert account.is_active
    assert await AccountService.find_by_email(session, "CARLA@example.com") is not None


async def test_create_duplicate_email(session):
    await _account(session)
    with pytest.raises(RequestError) as exc_info:
        await AccountService.create(session, "Someone Else", EMAIL.upper(), "Secret123!")
    assert exc_info.value.error_type is ErrorType.DUPLICATE_EMAIL


async def test_lookups(session):
    account = await _account(session)

    assert (await AccountService.get(session, account.id)).email == EMAIL  # pyright: ignore[reportArgumentType]
    assert (await AccountService.find_by_login_id(session, f" {account.lacpa_id} ")).id == account.id

    with pytest.raises(RequestError) as exc_info:
        await AccountService.get(session, 9999)
    assert exc_info.value.error_type is ErrorType.NOT_FOUND
    with pytest.raises(RequestError):
        await AccountService.find_by_login_id(session, "LACPA-2000-00000")


async def test_create_retries_lacpa_id_collision(session, monkeypatch):
    first = await _account(session)
    ids = iter([first.lacpa_id, "LACPA-2026-12345"])
    monkeypatch.setattr("app.service.account_service.generate_lacpa_id", lambda: next(ids))

    second = await AccountService.create(session, "Dana Saad", "dana@example.com", "Secret123!")
    assert second.lacpa_id == "LACPA-2026-12345"


async def test_issue_replaces_unused_codes(session):
    await _account(session, verified=False)
    await VerificationService.issue(session, EMAIL, ChallengePurpose.SIGNUP)
    latest = await VerificationService.issue(session, EMAIL, ChallengePurpose.SIGNUP)
    await VerificationService.issue(session, EMAIL, ChallengePurpose.RESET)

    rows = (await session.exec(select(VerificationChallenge))).all()
    assert sorted(row.purpose for row in rows) == ["reset", "signup"]
    signup = next(row for row in rows if row.purpose == "signup")
    assert signup.code == latest
    lifetime = as_utc(signup.expires_at) - as_utc(signup.created_at)
    assert timedelta(minutes=9, seconds=59) < lifetime <= timedelta(minutes=10)


async def test_verify_consumes_and_mints(session):
    account = await _account(session, verified=False)
    code = await VerificationService.issue(session, EMAIL, ChallengePurpose.SIGNUP)

    raw, record = await VerificationService.verify(session, EMAIL, code)
    assert record.account_id == account.id
    assert record.purpose == ChallengePurpose.SIGNUP
    assert record.token_hash == hash_reset_token(raw)
    assert raw not in record.token_hash

    with pytest.raises(RequestError) as exc_info:
        await VerificationService.verify(session, EMAIL, code)
    assert exc_info.value.error_type is ErrorType.CODE_ALREADY_USED


async def test_consume_reset_token_once(session):
    account = await _account(session)
    raw, _ = await VerificationService.mint_reset_token(session, account, ChallengePurpose.RESET)

    record = await VerificationService.consume_reset_token(session, raw)
    assert record.is_used
    with pytest.raises(RequestError) as exc_info:
        await VerificationService.consume_reset_token(session, raw)
    assert exc_info.value.error_type is ErrorType.INVALID_OR_EXPIRED_TOKEN


async def test_consume_signup_tokens_leaves_reset_tokens(session):
    account = await _account(session)
    await VerificationService.mint_reset_token(session, account, ChallengePurpose.SIGNUP)
    assert await VerificationService.consume_signup_tokens(session, account) == 1

    raw, _ = await VerificationService.mint_reset_token(session, account, ChallengePurpose.RESET)
    assert await VerificationService.consume_signup_tokens(session, account) == 0
    assert (await VerificationService.consume_reset_token(session, raw)).purpose == "reset"


async def test_session_token_rejects_inactive_account(session):
    account = await _account(session)
    token, _ = await issue_session_token(session, account)
    resolved, _ = await validate_session_token(session, token)
    assert resolved.id == account.id

    await AccountService.set_active(session, account, False)
    with pytest.raises(RequestError) as exc_info:
        await validate_session_token(session, token)
    assert exc_info.value.error_type is ErrorType.UNAUTHORIZED
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


async def test_transient_retry_recovers_once():
    calls = 0

    @transient_retry
    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise OperationalError("SELECT 1", {}, Exception("lost connection"))
        return "ok"

    assert await flaky() == "ok"
    assert calls == 2


async def test_transient_retry_gives_up_with_503():
    calls = 0

    @transient_retry
    async def broken() -> None:
        nonlocal calls
        calls += 1
        raise TimeoutError

    with pytest.raises(RequestError) as exc_info:
        await broken()
    assert calls == 2
    assert exc_info.value.error_type is ErrorType.TRANSIENT_STORE_ERROR
    assert exc_info.value.status_code == 503
    assert exc_info.value.to_content()["error"] == "transient_store_error"


async def test_transient_retry_ignores_request_errors():
    calls = 0

    @transient_retry
    async def rejected() -> None:
        nonlocal calls
        calls += 1
        raise RequestError(ErrorType.INVALID_CODE)

    with pytest.raises(RequestError):
        await rejected()
    assert calls == 1


async def test_cleanup_removes_stale_records(session):
    account = await _account(session)
    now = utcnow()

    session.add_all(
        [
            VerificationChallenge(email=EMAIL, code="111111", purpose="signup", expires_at=now - timedelta(minutes=1)),
            VerificationChallenge(email=EMAIL, code="222222", purpose="reset", expires_at=now + timedelta(minutes=5)),
            VerificationChallenge(
                email=EMAIL,
                code="333333",
                purpose="reset",
                expires_at=now - timedelta(days=8),
                is_used=True,
                used_at=now - timedelta(days=8),
            ),
            ResetToken(
                account_id=account.id,  # pyright: ignore[reportArgumentType]
                email=EMAIL,
                token_hash="a" * 64,
                purpose="reset",
                expires_at=now - timedelta(minutes=1),
            ),
            SessionToken(account_id=account.id, jti="old", expires_at=now - timedelta(days=2)),  # pyright: ignore[reportArgumentType]
            SessionToken(account_id=account.id, jti="live", expires_at=now + timedelta(hours=1)),  # pyright: ignore[reportArgumentType]
        ]
    )
    await session.commit()

    stats = await DatabaseCleanupService.get_cleanup_statistics(session)
    assert stats == {"expired_challenges": 1, "old_used_challenges": 1, "reset_tokens": 1, "outdated_sessions": 1}

    results = await DatabaseCleanupService.run_full_cleanup(session)
    assert results == stats

    codes = (await session.exec(select(VerificationChallenge.code))).all()
    assert codes == ["222222"]
    jtis = (await session.exec(select(SessionToken.jti).where(col(SessionToken.revoked_at).is_(None)))).all()
    assert jtis == ["live"]


def _lost_connection(statement: str) -> OperationalError:
    return OperationalError(statement, {}, Exception("lost connection"))


def _flaky_account_lookup(monkeypatch, failures: int) -> list[str]:
    lookup = AccountService.find_by_email.__wrapped__
    calls: list[str] = []

    async def find_by_email(db, email):
        calls.append(email)
        if len(calls) <= failures:
            raise _lost_connection("SELECT accounts")
        return await lookup(db, email)

    monkeypatch.setattr(AccountService, "find_by_email", staticmethod(transient_retry(find_by_email)))
    return calls


def _rival_update_first(session, monkeypatch, rival) -> None:
    """Run ``rival`` right before the next UPDATE, as a concurrent request would."""
    execute = session.execute
    pending = [rival]

    async def execute_after_rival(statement, *args, **kwargs):
        if isinstance(statement, Update) and pending:
            await execute(pending.pop())
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(session, "execute", execute_after_rival)


async def test_verify_recovers_from_a_failed_account_lookup(session, monkeypatch):
    await _account(session, verified=False)
    code = await VerificationService.issue(session, EMAIL, ChallengePurpose.SIGNUP)
    calls = _flaky_account_lookup(monkeypatch, failures=1)

    raw = await AuthService.verify_code(session, EMAIL, code)
    assert len(calls) >= 2

    record = await VerificationService.consume_reset_token(session, raw)
    assert record.purpose == "signup"
    assert (await AccountService.find_by_email(session, EMAIL)).is_verified


async def test_verify_reports_store_outage_as_503(session, monkeypatch):
    await _account(session, verified=False)
    code = await VerificationService.issue(session, EMAIL, ChallengePurpose.SIGNUP)
    _flaky_account_lookup(monkeypatch, failures=2)

    with pytest.raises(RequestError) as exc_info:
        await AuthService.verify_code(session, EMAIL, code)
    assert exc_info.value.error_type is ErrorType.TRANSIENT_STORE_ERROR
    assert exc_info.value.status_code == 503

    monkeypatch.undo()
    assert not (await AccountService.find_by_email(session, EMAIL)).is_verified
    assert (await session.exec(select(ResetToken))).all() == []


async def test_retry_reloads_rows_passed_to_the_call(session, monkeypatch):
    account = await _account(session)
    commit = session.commit
    failures = [_lost_connection("COMMIT")]

    async def flaky_commit():
        if failures:
            raise failures.pop()
        await commit()

    monkeypatch.setattr(session, "commit", flaky_commit)
    await AccountService.touch_last_login(session, account)

    assert failures == []
    assert account.last_login_at is not None
    assert account.lacpa_id.startswith("LACPA-")


async def test_concurrent_duplicate_signup(session, monkeypatch):
    await _account(session)
    lookup = AccountService.find_by_email
    skipped: list[str] = []

    async def find_by_email(db, email):
        # The first check runs before the other signup has committed
        if not skipped:
            skipped.append(email)
            return None
        return await lookup(db, email)

    monkeypatch.setattr(AccountService, "find_by_email", staticmethod(find_by_email))

    with pytest.raises(RequestError) as exc_info:
        await AccountService.create(session, "Carla Again", EMAIL.upper(), "Secret123!")
    assert exc_info.value.error_type is ErrorType.DUPLICATE_EMAIL
    assert skipped == [EMAIL]

    assert (await session.exec(select(func.count()).select_from(Account))).one() == 1


async def test_code_consumed_by_a_concurrent_request(session, monkeypatch):
    await _account(session, verified=False)
    code = await VerificationService.issue(session, EMAIL, ChallengePurpose.SIGNUP)
    _rival_update_first(
        session,
        monkeypatch,
        update(VerificationChallenge)
        .where(col(VerificationChallenge.email) == EMAIL)
        .values(is_used=True, used_at=utcnow()),
    )

    with pytest.raises(RequestError) as exc_info:
        await VerificationService.verify(session, EMAIL, code)
    assert exc_info.value.error_type is ErrorType.CODE_ALREADY_USED
    assert (await session.exec(select(ResetToken))).all() == []


async def test_reset_token_consumed_by_a_concurrent_request(session, monkeypatch):
    account = await _account(session)
    raw, _ = await VerificationService.mint_reset_token(session, account, ChallengePurpose.RESET)
    _rival_update_first(
        session,
        monkeypatch,
        update(ResetToken).where(col(ResetToken.email) == EMAIL).values(is_used=True, used_at=utcnow()),
    )

    with pytest.raises(RequestError) as exc_info:
        await VerificationService.consume_reset_token(session, raw)
    assert exc_info.value.error_type is ErrorType.INVALID_OR_EXPIRED_TOKEN


async def test_create_gives_up_when_ids_keep_colliding(session, monkeypatch):
    taken = (await _account(session)).lacpa_id
    monkeypatch.setattr("app.service.account_service.generate_lacpa_id", lambda: taken)

    with pytest.raises(RequestError) as exc_info:
        await AccountService.create(session, "Dana Saad", "dana@example.com", "Secret123!")
    assert exc_info.value.error_type is ErrorType.UNKNOWN
    assert exc_info.value.status_code == 500
    assert exc_info.value.to_content()["error"] == "unknown"


async def test_scheduled_cleanup_job(session, monkeypatch):
    session.add(
        VerificationChallenge(email=EMAIL, code="111111", purpose="signup", expires_at=utcnow() - timedelta(minutes=1))
    )
    await session.commit()

    @asynccontextmanager
    async def current_session():
        yield session

    monkeypatch.setattr(database_cleanup, "with_db", current_session)

    results = await database_cleanup.scheduled_cleanup_job()
    assert results["expired_challenges"] == 1
    assert (await session.exec(select(VerificationChallenge))).all() == []
