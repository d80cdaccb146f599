import os
import re
from typing import Any

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.setdefault("ENABLE_RATE_LIMIT", "false")
os.environ.setdefault("ENABLE_CLEANUP_JOB", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.dependencies.database import get_db, get_redis
from app.service.mail_providers import MailDeliveryError, MailServiceProvider, set_provider

from fakeredis import FakeAsyncRedis
from fastapi.testclient import TestClient
from main import app
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

PASSWORD = "Secret123!"
CODE_PATTERN = re.compile(r"^\s*(\d{4,10})\s*$", re.MULTILINE)


class CapturingMailProvider(MailServiceProvider):
    """Mail provider that keeps sent messages in memory."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    async def send_email(
        self,
        to_email: str,
        subject: str,
        content: str,
        html_content: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, str]:
        if self.fail:
            raise MailDeliveryError("mail server unavailable")
        self.sent.append(
            {
                "to": to_email,
                "subject": subject,
                "content": content,
                "html": html_content,
                "metadata": metadata or {},
            }
        )
        return {"id": str(len(self.sent))}

    def messages_to(self, email: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["to"] == email]

    def last_code(self, email: str) -> str:
        messages = self.messages_to(email)
        assert messages, f"no email sent to {email}"
        match = CODE_PATTERN.search(messages[-1]["content"])
        assert match, "no code in email body"
        return match.group(1)


class AuthAPI:
    """Thin wrapper over the auth endpoints used across the tests."""

    def __init__(self, client: TestClient, mailer: CapturingMailProvider):
        self.client = client
        self.mailer = mailer

    def signup(self, email: str = "alice@example.com", password: str = PASSWORD, full_name: str = "Alice Haddad"):
        return self.client.post(
            "/api/auth/signup", json={"full_name": full_name, "email": email, "password": password}
        )

    def verify(self, email: str, code: str):
        return self.client.post("/api/auth/verify-otp", json={"email": email, "otp": code})

    def login(self, lacpa_id: str, password: str = PASSWORD):
        return self.client.post("/api/auth/login", json={"lacpa_id": lacpa_id, "password": password})

    def forgot(self, email: str):
        return self.client.post("/api/auth/forgot-password", json={"email": email})

    def resend(self, email: str):
        return self.client.post("/api/auth/resend-otp", json={"email": email})

    def reset(self, token: str, new_password: str):
        return self.client.post("/api/auth/reset-password", json={"token": token, "new_password": new_password})

    def profile(self, token: str | None = None, headers: dict[str, str] | None = None):
        if token is not None:
            headers = bearer(token)
        return self.client.get("/api/auth/profile", headers=headers or {})

    def logout(self, token: str):
        return self.client.post("/api/auth/logout", headers=bearer(token))

    def register(self, email: str = "alice@example.com", password: str = PASSWORD) -> str:
        """Sign up and verify an account. Returns its LACPA id."""
        res = self.signup(email, password)
        assert res.status_code == 201, res.text
        lacpa_id = res.json()["data"]["lacpa_id"]
        res = self.verify(email, self.mailer.last_code(email))
        assert res.status_code == 200, res.text
        return lacpa_id

    def token_for(self, lacpa_id: str, password: str = PASSWORD) -> str:
        res = self.login(lacpa_id, password)
        assert res.status_code == 200, res.text
        return res.json()["data"]["token"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def make_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


async def create_all(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@pytest.fixture
def mailer():
    provider = CapturingMailProvider()
    set_provider(provider)
    yield provider
    set_provider(None)


@pytest.fixture
def redis():
    return FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def engine():
    return make_engine()


@pytest.fixture
def client(engine, mailer, redis):
    async def override_get_db():
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: redis

    with TestClient(app) as test_client:
        test_client.portal.call(create_all, engine)
        yield test_client
        test_client.portal.call(engine.dispose)

    app.dependency_overrides.clear()


@pytest.fixture
def api(client, mailer) -> AuthAPI:
    return AuthAPI(client, mailer)


@pytest.fixture
def run_db(client, engine):
    """Run ``await fn(session)`` on the app's event loop and return its result."""

    async def _call(fn):
        async with AsyncSession(engine, expire_on_commit=False) as db:
            return await fn(db)

    def run(fn):
        return client.portal.call(_call, fn)

    return run


@pytest.fixture
async def session():
    async_engine = make_engine()
    await create_all(async_engine)
    async with AsyncSession(async_engine, expire_on_commit=False) as db:
        yield db
    await async_engine.dispose()
