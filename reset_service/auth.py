"""Password hashing and signed token helpers."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any, cast

import bcrypt
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.handlers.bcrypt import _BcryptBackend

from . import models
from .config import (
    JWT_ALGORITHM,
    JWT_KID,
    JWT_SIGNING_KEY,
    JWT_VERIFYING_KEY,
    PASSWORD_HASH_ROUNDS,
    PASSWORD_RESET_TTL_MINUTES,
    TOKEN_LEEWAY,
)

if not hasattr(bcrypt, "__about__"):
    bcrypt.__about__ = SimpleNamespace(__version__=bcrypt.__version__)

# passlib probes bcrypt with >72 byte secrets on first use; bcrypt>=5 raises
# ValueError there. bcrypt_sha256 never hands bcrypt more than 72 bytes.
_BcryptBackend._workrounds_initialized = True

pwd_context = CryptContext(
    schemes=["bcrypt_sha256"],
    deprecated="auto",
    bcrypt_sha256__rounds=PASSWORD_HASH_ROUNDS,
)

PASSWORD_RESET_CLAIM = "isPasswordReset"


def _now() -> datetime:
    return datetime.now(UTC)


def hash_password(password: str) -> str:
    """Hash ``password`` with bcrypt_sha256 at ``PASSWORD_HASH_ROUNDS``."""

    return cast(str, pwd_context.hash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return whether ``plain_password`` matches ``hashed_password``."""

    return cast(bool, pwd_context.verify(plain_password, hashed_password))


def sign_token(
    user: models.User,
    *,
    extra_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> tuple[str, datetime]:
    """Sign a JWT naming ``user`` and return it with its expiry."""

    issued_at = _now()
    expire = issued_at + (expires_delta or timedelta(minutes=PASSWORD_RESET_TTL_MINUTES))
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "id": str(user.id),
        "jti": str(uuid.uuid4()),
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }
    if extra_claims:
        payload.update(extra_claims)
    headers: dict[str, Any] = {}
    if JWT_KID:
        headers["kid"] = JWT_KID
    token = jwt.encode(
        payload,
        JWT_SIGNING_KEY,
        algorithm=JWT_ALGORITHM,
        headers=headers or None,
    )
    return token, expire


def create_password_reset_token(user: models.User) -> str:
    """Return a token authorising promotion of ``user``'s staged password."""

    token, _ = sign_token(
        user,
        extra_claims={PASSWORD_RESET_CLAIM: True},
        expires_delta=timedelta(minutes=PASSWORD_RESET_TTL_MINUTES),
    )
    return token


def decode_token(token: str) -> dict[str, Any]:
    """Decode a JWT using the configured verification key.

    Raises ``JWTError`` when the signature, structure or expiry is invalid.
    """

    decoded = jwt.decode(
        token,
        JWT_VERIFYING_KEY,
        algorithms=[JWT_ALGORITHM],
        options={"verify_aud": False, "leeway": TOKEN_LEEWAY},
    )
    return cast(dict[str, Any], decoded)


def dry_verify(token: str) -> dict[str, Any] | None:
    """Return the claims of ``token`` or ``None`` if it cannot be trusted."""

    try:
        claims = decode_token(token)
    except JWTError:
        return None
    if not isinstance(claims, dict):
        return None
    return claims
