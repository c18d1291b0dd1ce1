"""Two-phase password reset: stage a candidate password, then promote it.

The initiator hashes the requested password into ``temp_password_hash`` and
mails a signed link. The confirmer verifies the token from that link and copies
the staged hash into ``password_hash``. The token is the only state carried
between the two requests.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar
from urllib.parse import urlencode

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import PASSWORD_RESET_CLAIM, create_password_reset_token, dry_verify, hash_password
from ..config import (
    CLIENT_URL,
    PASSWORD_RESET_COMPLETE_TEMPLATE,
    PASSWORD_RESET_PATH,
    PASSWORD_RESET_TEMPLATE,
)
from ..errors import ResourceGone, ServerError, Unauthorized, ValidationFailed
from .mailer import Mailer

logger = logging.getLogger("reset_service.password_reset")

_DATASET = "password-reset-api.auth"

T = TypeVar("T")


class ResetOutcome(str, Enum):
    """Successful results of a confirmation request."""

    PROMOTED = "promoted"
    NOTHING_STAGED = "nothing_staged"


def _extra(action: str, user: models.User | None = None, **fields: Any) -> dict[str, Any]:
    extra: dict[str, Any] = {"event_dataset": _DATASET, "event_action": action}
    if user is not None:
        extra["user_id"] = str(user.id)
    extra.update(fields)
    return extra


def find_user_by_email(db: Session, email: str) -> models.User | None:
    """Return the account whose email or pending email matches ``email``.

    Exact matches win over case-insensitive ones, and a confirmed ``email``
    wins over a pending ``temp_email``. Ties go to the oldest account.
    """

    address = email.strip()
    if not address:
        return None
    lowered = address.lower()
    precedence = sa.case(
        (models.User.email == address, 0),
        (models.User.temp_email == address, 1),
        (sa.func.lower(models.User.email) == lowered, 2),
        else_=3,
    )
    return (
        db.query(models.User)
        .filter(
            sa.or_(
                sa.func.lower(models.User.email) == lowered,
                sa.func.lower(models.User.temp_email) == lowered,
            )
        )
        .order_by(precedence, models.User.created_at, models.User.id)
        .first()
    )


def find_user_by_id(db: Session, user_id: uuid.UUID) -> models.User | None:
    return db.get(models.User, user_id)


def _load(db: Session, loader: Callable[[], T]) -> T:
    try:
        return loader()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not load user", extra=_extra("user_load_failed"))
        raise ServerError("Could not load user", reason="user_load_failed")


def _save(db: Session, user: models.User, *, detail: str, action: str) -> None:
    extra = _extra(action, user)
    try:
        db.add(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(detail, extra=extra)
        raise ServerError(detail, reason=action)


def stage_password(user: models.User, password: str) -> None:
    """Hash ``password`` into the single staging slot, replacing any earlier stage."""

    user.temp_password_hash = hash_password(password)


def promote_staged_password(user: models.User) -> bool:
    """Make the staged password active. Return ``False`` if nothing was staged."""

    if user.reset_state is models.ResetState.IDLE:
        return False
    user.password_hash = user.temp_password_hash
    user.temp_password_hash = None
    return True


def build_reset_link(user: models.User) -> str:
    token = create_password_reset_token(user)
    return f"{CLIENT_URL}{PASSWORD_RESET_PATH}?{urlencode({'id': token})}"


def build_template_context(user: models.User, **extra: Any) -> dict[str, Any]:
    """Return template variables for ``user``; credential fields are left out."""

    context: dict[str, Any] = {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "temp_email": user.temp_email,
    }
    context.update(extra)
    return context


def send_password_reset(
    db: Session,
    mailer: Mailer,
    payload: schemas.PasswordResetSend | None,
) -> models.User:
    """Stage the requested password and mail a confirmation link.

    Raises ``ValidationFailed`` for missing input, ``ResourceGone`` when no
    account matches and ``ServerError`` when saving or sending fails. Nothing
    is mailed unless the stage was persisted.
    """

    email = (payload.email or "").strip() if payload else ""
    if not email:
        raise ValidationFailed(
            "Please supply an email address", field="email", reason="email_missing"
        )
    password = payload.password if payload else None
    if not password:
        raise ValidationFailed(
            "Please supply a new password", field="password", reason="password_missing"
        )

    user = _load(db, lambda: find_user_by_email(db, email))
    if user is None:
        raise ResourceGone("Email address not found", reason="email_unknown")

    logger.info(
        "Password reset requested",
        extra=_extra(
            "password_reset_requested",
            user,
            stage_replaced=user.reset_state is models.ResetState.STAGED,
        ),
    )

    stage_password(user, password)
    _save(db, user, detail="Could not save user", action="password_reset_stage_failed")

    reset_link = build_reset_link(user)
    template = mailer.get_template(PASSWORD_RESET_TEMPLATE)
    if template is None:
        logger.error(
            "Password reset mail template missing",
            extra=_extra(
                "password_reset_template_missing",
                user,
                mail_template=PASSWORD_RESET_TEMPLATE,
            ),
        )
        raise ServerError("Could not send", reason="password_reset_template_missing")

    sent = mailer.send_from_template(
        email,
        template,
        build_template_context(user, reset_link=reset_link),
        log_extra={"user_id": str(user.id)},
    )
    if not sent:
        raise ServerError("Could not send", reason="password_reset_email_failed")

    logger.info("Password reset email sent", extra=_extra("password_reset_email_sent", user))
    return user


def _user_id_from_claims(claims: dict[str, Any] | None) -> uuid.UUID | None:
    if not claims or claims.get(PASSWORD_RESET_CLAIM) is not True:
        return None
    raw_id = claims.get("id")
    if raw_id is None:
        return None
    try:
        return uuid.UUID(str(raw_id))
    except ValueError:
        return None


def confirm_password_reset(
    db: Session,
    payload: schemas.PasswordResetConfirm | None,
) -> tuple[ResetOutcome, models.User]:
    """Promote the staged password of the account named by ``resetToken``.

    Confirming when nothing is staged succeeds without changes, so replaying a
    link that was already used is harmless.
    """

    if payload is None or not payload.token_supplied:
        raise ValidationFailed("Please supply confirmation code", reason="token_missing")

    reset_token = payload.reset_token
    if not isinstance(reset_token, str) or not reset_token:
        raise ValidationFailed("Invalid confirmation code", reason="token_malformed")

    user_id = _user_id_from_claims(dry_verify(reset_token))
    if user_id is None:
        raise ValidationFailed("Invalid token", reason="token_rejected")

    user = _load(db, lambda: find_user_by_id(db, user_id))
    if user is None:
        raise Unauthorized("Confirmation code expired", reason="user_missing")

    if not promote_staged_password(user):
        logger.info(
            "Password reset confirmation with nothing staged",
            extra=_extra("password_reset_noop", user),
        )
        return ResetOutcome.NOTHING_STAGED, user

    _save(db, user, detail="Could not update user", action="password_reset_promote_failed")
    logger.info("Password reset completed", extra=_extra("password_reset_completed", user))
    return ResetOutcome.PROMOTED, user


def notify_password_changed(mailer: Mailer, user: models.User) -> bool:
    """Tell ``user`` their password changed. Failures are logged only."""

    template = mailer.get_template(PASSWORD_RESET_COMPLETE_TEMPLATE)
    if template is None:
        logger.warning(
            "Password changed mail template missing",
            extra=_extra(
                "password_reset_notice_skipped",
                user,
                mail_template=PASSWORD_RESET_COMPLETE_TEMPLATE,
            ),
        )
        return False
    sent = mailer.send_from_template(
        user.email,
        template,
        build_template_context(user),
        log_extra={"user_id": str(user.id)},
    )
    if not sent:
        logger.warning(
            "Password changed notice was not delivered",
            extra=_extra("password_reset_notice_failed", user),
        )
    return sent
