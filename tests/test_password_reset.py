from datetime import timedelta

from app.database import ResetToken
from app.helpers import utcnow

from sqlalchemy import update

EMAIL = "alice@example.com"
NEW_PASSWORD = "N3w-Passw0rd"


def _reset_token(api, email: str = EMAIL) -> str:
    assert api.forgot(email).status_code == 200
    res = api.verify(email, api.mailer.last_code(email))
    assert res.status_code == 200, res.text
    return res.json()["data"]["reset_token"]


def test_reset_changes_password_and_ends_sessions(api):
    lacpa_id = api.register(EMAIL)
    session_a = api.token_for(lacpa_id)
    session_b = api.token_for(lacpa_id)
    assert api.profile(session_a).status_code == 200

    res = api.reset(_reset_token(api), NEW_PASSWORD)
    assert res.status_code == 200, res.text
    assert res.json()["success"] is True

    # Old password no longer works, the new one does
    assert api.login(lacpa_id).status_code == 401
    assert api.login(lacpa_id, NEW_PASSWORD).status_code == 200

    # Sessions issued before the reset are dead
    assert api.profile(session_a).status_code == 401
    assert api.profile(session_b).status_code == 401


def test_reset_token_is_single_use(api):
    api.register(EMAIL)
    token = _reset_token(api)

    assert api.reset(token, NEW_PASSWORD).status_code == 200
    res = api.reset(token, "Another-Passw0rd")
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_or_expired_token"


def test_unknown_reset_token(api):
    res = api.reset("definitely-not-a-token", NEW_PASSWORD)
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_or_expired_token"


def test_expired_reset_token(api, run_db):
    api.register(EMAIL)
    token = _reset_token(api)

    async def expire(db):
        await db.execute(update(ResetToken).values(expires_at=utcnow() - timedelta(seconds=1)))
        await db.commit()

    run_db(expire)
    res = api.reset(token, NEW_PASSWORD)
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_or_expired_token"


def test_weak_new_password_keeps_token_usable(api):
    api.register(EMAIL)
    token = _reset_token(api)

    res = api.reset(token, "short")
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "invalid_password"
    assert body["fields"][0]["field"] == "new_password"

    assert api.reset(token, NEW_PASSWORD).status_code == 200


def test_newer_reset_token_replaces_older(api):
    api.register(EMAIL)
    older = _reset_token(api)
    newer = _reset_token(api)

    assert api.reset(older, NEW_PASSWORD).status_code == 400
    assert api.reset(newer, NEW_PASSWORD).status_code == 200


def test_forgot_password_unknown_email_is_silent(api, mailer):
    known = api.forgot("nobody@example.com")
    assert known.status_code == 200
    assert mailer.sent == []

    api.register(EMAIL)
    sent_before = len(mailer.sent)
    res = api.forgot(EMAIL)
    assert res.json()["message"] == known.json()["message"]
    assert len(mailer.sent) == sent_before + 1
    assert mailer.sent[-1]["metadata"]["purpose"] == "reset"


def test_forgot_password_does_not_verify_account(api, mailer):
    lacpa_id = api.signup(EMAIL).json()["data"]["lacpa_id"]
    token = _reset_token(api)

    assert api.reset(token, NEW_PASSWORD).status_code == 200
    res = api.login(lacpa_id, NEW_PASSWORD)
    assert res.status_code == 403
    assert res.json()["error"] == "unverified"


def test_forgot_password_mail_failure(api, mailer):
    api.register(EMAIL)
    mailer.fail = True

    res = api.forgot(EMAIL)
    assert res.status_code == 503
    assert res.json()["error"] == "code_delivery_failed"


def test_signup_reset_token_is_retired_by_login(api, mailer):
    lacpa_id = api.signup(EMAIL).json()["data"]["lacpa_id"]
    res = api.verify(EMAIL, mailer.last_code(EMAIL))
    signup_token = res.json()["data"]["reset_token"]

    assert api.login(lacpa_id).status_code == 200

    res = api.reset(signup_token, NEW_PASSWORD)
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_or_expired_token"
