from app.database import AccountRole
from app.service.account_service import AccountService

import pytest

ADMIN_EMAIL = "admin@lacpa.org.lb"
ADMIN_PASSWORD = "Adm1n-Passw0rd"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token(api, run_db) -> str:
    async def create(db):
        account = await AccountService.create(
            db, "Portal Admin", ADMIN_EMAIL, ADMIN_PASSWORD, role=AccountRole.ADMIN, verified=True
        )
        return account.lacpa_id

    lacpa_id = run_db(create)
    return api.token_for(lacpa_id, ADMIN_PASSWORD)


def test_member_cannot_use_admin_endpoints(api, client):
    token = api.token_for(api.register())

    res = client.get("/api/admin/users", headers=bearer(token))
    assert res.status_code == 403
    assert res.json()["error"] == "insufficient_permissions"


def test_admin_endpoints_require_a_token(client):
    res = client.get("/api/admin/users")
    assert res.status_code == 401
    assert res.json()["error"] == "unauthorized"


def test_list_users(api, client, admin_token):
    api.register("alice@example.com")
    api.signup("bob@example.com")

    res = client.get("/api/admin/users", headers=bearer(admin_token))
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["total"] == 3
    assert {user["email"] for user in data["users"]} == {ADMIN_EMAIL, "alice@example.com", "bob@example.com"}
    assert all("pw_hash" not in user for user in data["users"])

    res = client.get("/api/admin/users", params={"verified": "false"}, headers=bearer(admin_token))
    assert [user["email"] for user in res.json()["data"]["users"]] == ["bob@example.com"]

    res = client.get("/api/admin/users", params={"role": "admin"}, headers=bearer(admin_token))
    assert [user["email"] for user in res.json()["data"]["users"]] == [ADMIN_EMAIL]

    res = client.get("/api/admin/users", params={"page": 2, "per_page": 2}, headers=bearer(admin_token))
    data = res.json()["data"]
    assert data["total"] == 3
    assert len(data["users"]) == 1


def test_create_admin(api, client, admin_token, mailer):
    res = client.post(
        "/api/admin/create-admin",
        json={"full_name": "Second Admin", "email": "second@lacpa.org.lb", "password": "Sec0nd-Admin"},
        headers=bearer(admin_token),
    )
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["role"] == "admin"
    assert data["is_verified"] is True
    assert mailer.sent == []

    token = api.token_for(data["lacpa_id"], "Sec0nd-Admin")
    assert client.get("/api/admin/users", headers=bearer(token)).status_code == 200


def test_create_admin_duplicate_email(client, admin_token):
    res = client.post(
        "/api/admin/create-admin",
        json={"full_name": "Copy Admin", "email": ADMIN_EMAIL.upper(), "password": "Sec0nd-Admin"},
        headers=bearer(admin_token),
    )
    assert res.status_code == 409
    assert res.json()["error"] == "duplicate_email"


def test_deactivate_and_activate(api, client, admin_token):
    lacpa_id = api.register()
    member_token = api.token_for(lacpa_id)

    res = client.post("/api/admin/deactivate-user", json={"lacpa_id": lacpa_id}, headers=bearer(admin_token))
    assert res.status_code == 200, res.text
    assert res.json()["data"]["is_active"] is False

    # Existing sessions end and new logins are refused
    assert api.profile(member_token).status_code == 401
    res = api.login(lacpa_id)
    assert res.status_code == 403
    assert res.json()["error"] == "account_deactivated"

    # Wrong password still reports invalid credentials
    assert api.login(lacpa_id, "wrong-password").status_code == 401

    res = client.post("/api/admin/activate-user", json={"lacpa_id": lacpa_id}, headers=bearer(admin_token))
    assert res.status_code == 200
    assert res.json()["data"]["is_active"] is True
    assert api.login(lacpa_id).status_code == 200


def test_update_role(api, client, admin_token):
    lacpa_id = api.register()
    member_token = api.token_for(lacpa_id)
    assert client.get("/api/admin/users", headers=bearer(member_token)).status_code == 403

    res = client.post(
        "/api/admin/update-role", json={"lacpa_id": lacpa_id, "role": "admin"}, headers=bearer(admin_token)
    )
    assert res.status_code == 200, res.text
    assert res.json()["data"]["role"] == "admin"
    assert client.get("/api/admin/users", headers=bearer(member_token)).status_code == 200


def test_update_role_rejects_unknown_role(api, client, admin_token):
    lacpa_id = api.register()
    res = client.post(
        "/api/admin/update-role", json={"lacpa_id": lacpa_id, "role": "owner"}, headers=bearer(admin_token)
    )
    assert res.status_code == 422


def test_admin_cannot_modify_self(api, client, admin_token):
    me = client.get("/api/auth/profile", headers=bearer(admin_token)).json()["data"]["lacpa_id"]

    res = client.post("/api/admin/deactivate-user", json={"lacpa_id": me}, headers=bearer(admin_token))
    assert res.status_code == 400
    assert res.json()["error"] == "cannot_modify_self"

    res = client.post("/api/admin/update-role", json={"lacpa_id": me, "role": "member"}, headers=bearer(admin_token))
    assert res.status_code == 400
    assert res.json()["error"] == "cannot_modify_self"


def test_unknown_target(client, admin_token):
    res = client.post(
        "/api/admin/activate-user", json={"lacpa_id": "LACPA-2000-00000"}, headers=bearer(admin_token)
    )
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"
