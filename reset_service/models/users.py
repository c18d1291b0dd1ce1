"""User domain models."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class ResetState(str, Enum):
    """Whether a password reset is waiting for confirmation."""

    IDLE = "idle"
    STAGED = "staged"


class User(Base):
    """A registered account whose password can be reset."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    # Set while an email change awaits verification; still a valid reset address.
    temp_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    # Allow extra room for bcrypt_sha256 and future password hashing schemes
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    temp_password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    @property
    def reset_state(self) -> ResetState:
        """Return ``STAGED`` while a candidate password awaits confirmation."""

        if self.temp_password_hash:
            return ResetState.STAGED
        return ResetState.IDLE

    def __repr__(self) -> str:
        return f"User(id={self.id!s}, reset_state={self.reset_state.value})"


Index("ix_users_temp_email", User.temp_email)
