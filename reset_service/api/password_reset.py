"""Password reset endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..utils.mailer import Mailer, get_mailer
from ..utils.password_reset import (
    ResetOutcome,
    confirm_password_reset,
    notify_password_changed,
    send_password_reset,
)

router = APIRouter(prefix="/auth/password-reset", tags=["password-reset"])

_db_dependency = Depends(get_db)
_mailer_dependency = Depends(get_mailer)

_CACHE_BUSTER_HEADER_VALUES = {"Cache-Control": "no-store", "Pragma": "no-cache"}

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.Message},
    status.HTTP_401_UNAUTHORIZED: {"model": schemas.Message},
    status.HTTP_410_GONE: {"model": schemas.Message},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.Message},
}


def _no_content() -> Response:
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers=_CACHE_BUSTER_HEADER_VALUES.copy(),
    )


@router.post(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_ERROR_RESPONSES,
)
def request_password_reset(
    payload: schemas.PasswordResetSend | None = Body(default=None),
    db: Session = _db_dependency,
    mailer: Mailer = _mailer_dependency,
) -> Response:
    """Stage a new password and email a confirmation link (also used to resend)."""

    send_password_reset(db, mailer, payload)
    return _no_content()


@router.post(
    "/confirm",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_ERROR_RESPONSES,
)
def confirm_reset(
    payload: schemas.PasswordResetConfirm | None = Body(default=None),
    db: Session = _db_dependency,
    mailer: Mailer = _mailer_dependency,
) -> Response:
    """Promote the staged password named by ``resetToken``."""

    outcome, user = confirm_password_reset(db, payload)
    if outcome is ResetOutcome.PROMOTED:
        notify_password_changed(mailer, user)
    return _no_content()
