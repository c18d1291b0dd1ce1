"""Environment-driven configuration for the password reset service."""

from __future__ import annotations

import os
from typing import Final


def _get_env(name: str, *, default: str | None = None, required: bool = False) -> str | None:
    value = os.getenv(name)
    if value is None:
        if required:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return default
    return value.strip()


def _get_int(name: str, default: int) -> int:
    value = _get_env(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def _normalise_path(value: str) -> str:
    path = value.strip() or "/password-reset"
    if not path.startswith("/"):
        path = f"/{path}"
    return path


JWT_ALGORITHM: Final[str] = "HS256"

_hs_secret = _get_env("JWT_SECRET") or _get_env("SECRET_KEY")
if not _hs_secret:
    raise RuntimeError("JWT_SECRET (or legacy SECRET_KEY) is required for HS256 JWTs")

JWT_SIGNING_KEY: Final[str] = _hs_secret
JWT_VERIFYING_KEY: Final[str] = _hs_secret

JWT_KID = _get_env("JWT_KID")

TOKEN_LEEWAY = _get_int("TOKEN_LEEWAY", 0)

PASSWORD_RESET_TTL_MINUTES = max(1, _get_int("PASSWORD_RESET_TTL_MINUTES", 60))

# bcrypt cost shared by staged and active passwords
PASSWORD_HASH_ROUNDS = _get_int("PASSWORD_HASH_ROUNDS", 12)
if not 4 <= PASSWORD_HASH_ROUNDS <= 31:
    raise RuntimeError("PASSWORD_HASH_ROUNDS must be between 4 and 31")

CLIENT_URL = (_get_env("CLIENT_URL", default="http://localhost:5173") or "http://localhost:5173").rstrip("/")
PASSWORD_RESET_PATH = _normalise_path(_get_env("PASSWORD_RESET_PATH", default="") or "")

PASSWORD_RESET_TEMPLATE = _get_env("PASSWORD_RESET_TEMPLATE", default="pw-reset") or "pw-reset"
PASSWORD_RESET_COMPLETE_TEMPLATE = (
    _get_env("PASSWORD_RESET_COMPLETE_TEMPLATE", default="pw-reset-complete")
    or "pw-reset-complete"
)
MAIL_TEMPLATE_DIR = _get_env("MAIL_TEMPLATE_DIR") or None
MAIL_FROM = _get_env("MAIL_FROM", default="accounts@localhost") or "accounts@localhost"

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in (_get_env("ALLOWED_ORIGINS", default="") or "").split(",")
    if origin.strip()
]


def _header(name: str, default: str) -> str | None:
    """Return the header value from ``name``; an empty override disables it."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip() or None


_SECURITY_HEADER_SOURCES: dict[str, str | None] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": _header(
        "STRICT_TRANSPORT_SECURITY", "max-age=63072000; includeSubDomains; preload"
    ),
    # JSON only API: nothing may be loaded or framed
    "Content-Security-Policy": _header(
        "CONTENT_SECURITY_POLICY", "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
    ),
    "Referrer-Policy": _header("REFERRER_POLICY", "no-referrer"),
}

SECURITY_HEADERS: dict[str, str] = {
    name: value for name, value in _SECURITY_HEADER_SOURCES.items() if value
}
