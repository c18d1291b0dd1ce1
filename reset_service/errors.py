"""Failures reported by the password reset flows."""

from __future__ import annotations

import logging

from fastapi import status


class PasswordResetError(Exception):
    """Base class for outcomes that end a password reset request early."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    status_name = "error"
    log_level = logging.ERROR

    def __init__(
        self,
        detail: str,
        *,
        field: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.field = field
        # machine readable cause for logs; never sent to the client
        self.reason = reason or self.status_name

    def to_payload(self) -> dict[str, str]:
        payload = {"detail": self.detail, "status": self.status_name}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationFailed(PasswordResetError):
    """Missing or malformed input, including rejected tokens."""

    status_code = status.HTTP_400_BAD_REQUEST
    status_name = "invalid"
    log_level = logging.WARNING


class ResourceGone(PasswordResetError):
    """No account is registered for the requested address."""

    status_code = status.HTTP_410_GONE
    status_name = "gone"
    log_level = logging.WARNING


class Unauthorized(PasswordResetError):
    """The token verified but no longer names a live account."""

    status_code = status.HTTP_401_UNAUTHORIZED
    status_name = "unauthorized"
    log_level = logging.WARNING


class ServerError(PasswordResetError):
    """Persistence or mail delivery failed; details stay in the logs."""


__all__ = [
    "PasswordResetError",
    "ResourceGone",
    "ServerError",
    "Unauthorized",
    "ValidationFailed",
]
