"""Pydantic schemas used for request and response models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PasswordResetSend(BaseModel):
    """Payload accepted when requesting (or re-requesting) a password reset."""

    email: str | None = Field(default=None, max_length=320)
    password: str | None = Field(default=None, max_length=255)

    model_config = ConfigDict(extra="ignore")


class PasswordResetConfirm(BaseModel):
    """Payload accepted by the password reset confirmation endpoint."""

    # Any JSON value is accepted so the confirmation flow can tell a missing
    # token from one with the wrong shape.
    reset_token: Any = Field(default=None, alias="resetToken")

    model_config = ConfigDict(extra="ignore")

    @property
    def token_supplied(self) -> bool:
        return "reset_token" in self.model_fields_set


class Message(BaseModel):
    """Envelope used for error responses."""

    detail: str
    status: Literal["invalid", "gone", "unauthorized", "error"] | None = None
    field: str | None = None

    model_config = ConfigDict(extra="forbid")
