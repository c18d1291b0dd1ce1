import os
from contextvars import ContextVar

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

# Configure the environment before the service modules read it at import time.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault(
    "JWT_SECRET",
    "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef",
)
os.environ["CLIENT_URL"] = "http://client.test"
os.environ["PASSWORD_RESET_PATH"] = "/password-reset"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["PASSWORD_RESET_TTL_MINUTES"] = "60"
os.environ["TOKEN_LEEWAY"] = "0"
os.environ.setdefault("SMTP_HOST", "smtp.test")
os.environ.setdefault("SMTP_FROM", "accounts@example.com")
os.environ.pop("SMTP_SSL", None)
os.environ.pop("MAIL_TEMPLATE_DIR", None)
os.environ["ALLOWED_ORIGINS"] = "http://allowed.example"
os.environ.pop("STRICT_TRANSPORT_SECURITY", None)
os.environ.setdefault("LOG_JSON", "false")

from reset_service import models  # noqa: E402
from reset_service.auth import hash_password  # noqa: E402
from reset_service.create_tables import create_tables  # noqa: E402
from reset_service.database import Base, SessionLocal, engine  # noqa: E402
from reset_service.main import app  # noqa: E402

TEST_PASSWORD = "OldPassword1!"

_client_ctx: ContextVar[httpx.AsyncClient | None] = ContextVar("_client_ctx", default=None)


def get_client() -> httpx.AsyncClient:
    client = _client_ctx.get()
    if client is None:
        raise RuntimeError("The async client fixture must be used in this test")
    return client


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    create_tables(engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of talking to an SMTP server."""

    sent: list = []

    def _capture(*, settings, message, **kwargs):
        sent.append(message)
        return True

    monkeypatch.setattr("reset_service.utils.mailer.send_email_via_smtp", _capture)
    return sent


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"value": 0}

    def _make_user(
        *,
        email: str | None = None,
        temp_email: str | None = None,
        name: str | None = "Alice",
        password: str = TEST_PASSWORD,
    ) -> models.User:
        counter["value"] += 1
        user = models.User(
            name=name,
            email=email or f"alice{counter['value']}@example.com",
            temp_email=temp_email,
            password_hash=hash_password(password),
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


def reload_user(db, user_id) -> models.User | None:
    """Return a fresh copy of the user row, bypassing the identity map."""

    db.expire_all()
    return db.get(models.User, user_id)


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as async_client:
        token = _client_ctx.set(async_client)
        try:
            yield async_client
        finally:
            _client_ctx.reset(token)
