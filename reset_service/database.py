"""Database configuration used across the service."""

import os
import warnings
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# A value **must** be provided via ``DATABASE_URL`` so deployments never rely on
# an implicit default.
RAW_DATABASE_URL = os.getenv("DATABASE_URL")
APP_ENV = os.getenv("APP_ENV", "production").lower()

if not RAW_DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")

_SYNC_DRIVER = "postgresql+psycopg"
_POSTGRES_DRIVERS = {"postgresql", _SYNC_DRIVER, "postgresql+psycopg_async"}


def _normalise_url(url: str | URL) -> URL:
    """Return a URL suitable for the synchronous engine.

    PostgreSQL URLs are pinned to the psycopg driver; other backends are used
    unchanged.
    """

    parsed = make_url(url)
    if parsed.drivername in _POSTGRES_DRIVERS and parsed.drivername != _SYNC_DRIVER:
        parsed = parsed.set(drivername=_SYNC_DRIVER)
    return parsed


def _is_memory_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in {None, "", ":memory:"}


def make_engine(url: str | URL) -> Engine:
    """Return an Engine for ``url`` with backend specific pool settings."""

    parsed = _normalise_url(url)
    if _is_memory_sqlite(parsed):
        # one shared connection, otherwise each checkout sees an empty database
        return create_engine(
            parsed,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if parsed.get_backend_name() == "sqlite":
        return create_engine(parsed, connect_args={"check_same_thread": False})
    return create_engine(
        parsed,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
    )


def _uses_placeholder(url: URL) -> bool:
    """Return True when the connection URL uses the legacy postgres:postgres pair."""

    return bool(url.username == "postgres" and url.password == "postgres")  # noqa: S105


DATABASE_URL = _normalise_url(RAW_DATABASE_URL)

if APP_ENV == "production" and _uses_placeholder(DATABASE_URL):
    raise RuntimeError(
        "Refusing to start in production with the legacy postgres:postgres placeholder in DATABASE_URL."
    )
if _uses_placeholder(DATABASE_URL):
    warnings.warn(
        "DATABASE_URL appears to use the 'postgres:postgres' placeholder. "
        "This is acceptable for local development and tests but must not be used in production.",
        RuntimeWarning,
        stacklevel=2,
    )

engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

# Base class for all ORM models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Provide a database session for a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
