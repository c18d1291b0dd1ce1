"""Redaction of credentials and reset tokens before records are emitted."""

from __future__ import annotations

import re
from typing import Any

# Keys whose values are shortened to a recognisable prefix and suffix.
MASK_KEYWORDS = ("token", "authorization", "apikey", "api_key")
# Keys whose values are dropped entirely.
REDACT_KEYWORDS = ("password", "passwd", "secret", "cookie", "hash")

MASKED_VALUE = "<redacted>"
MAX_FIELD_LENGTH = 1024

_URL_TOKEN_PATTERN = re.compile(r"((?:^|[?&])(?:id|token|resetToken)=)[^&\s]+")


def _policy(key: str) -> str | None:
    normalised = key.lower().replace("-", "_")
    if any(word in normalised for word in MASK_KEYWORDS):
        return "mask"
    if any(word in normalised for word in REDACT_KEYWORDS):
        return "redact"
    return None


def _mask(value: str) -> str:
    value = value.strip()
    if not value:
        return MASKED_VALUE
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}…{value[-4:]}"


def _scrub_text(value: str) -> str:
    value = _URL_TOKEN_PATTERN.sub(rf"\g<1>{MASKED_VALUE}", value)
    if len(value) > MAX_FIELD_LENGTH:
        return value[:MAX_FIELD_LENGTH] + "…[truncated]"
    return value


def sanitize_value(key: Any, value: Any) -> Any:
    """Return ``value`` with secrets removed according to its ``key``.

    Mappings and sequences are sanitised recursively; reset links anywhere in a
    string lose their token.
    """

    if isinstance(key, bytes):
        key = key.decode("utf-8", "ignore")
    if isinstance(value, dict):
        return {k: sanitize_value(k, v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return type(value)(sanitize_value(key, item) for item in value)
    if not isinstance(value, str):
        return value

    policy = _policy(key) if isinstance(key, str) else None
    if policy == "mask":
        return _mask(value)
    if policy == "redact":
        return MASKED_VALUE
    return _scrub_text(value)
