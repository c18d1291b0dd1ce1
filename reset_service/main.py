"""FastAPI application providing the password reset API."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from .api import password_reset_router
from .config import ALLOWED_ORIGINS, SECURITY_HEADERS
from .errors import PasswordResetError
from .logging import configure_logging
from .middleware.logging import LoggingMiddleware
from .middleware.security import SecureHeadersMiddleware

configure_logging()

logger = logging.getLogger("reset_service.main")

_DB_RETRY_AFTER_SECONDS = "600"
_NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _check_env_vars() -> None:
    """Fail fast if required environment variables are missing or invalid."""

    missing = [
        name
        for name in ("DATABASE_URL", "CLIENT_URL", "SMTP_HOST")
        if not (os.getenv(name) or "").strip()
    ]
    secret = (os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY") or "").strip()
    if not secret:
        missing.append("JWT_SECRET")
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    if len(secret) < 32:
        raise RuntimeError("JWT_SECRET must be at least 32 characters long")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    _check_env_vars()
    yield


app = FastAPI(
    title="Password Reset API",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)
app.add_middleware(SecureHeadersMiddleware, headers=SECURITY_HEADERS)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def _error_response(
    request: Request,
    status_code: int,
    content: dict[str, object],
    headers: dict[str, str] | None = None,
) -> Response:
    response = ORJSONResponse(status_code=status_code, content=content, headers=headers)
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def _request_extra(request: Request, status_code: int, action: str, **fields: object) -> dict[str, object]:
    return {
        "event_dataset": "password-reset-api.app",
        "event_action": action,
        "http_status_code": status_code,
        "http_request_method": request.method,
        "url_path": request.url.path,
        **fields,
    }


@app.exception_handler(PasswordResetError)
async def password_reset_error_handler(request: Request, exc: PasswordResetError) -> Response:
    """Report a failed reset step with its status and a client-safe detail."""

    logger.log(
        exc.log_level,
        "Password reset request failed",
        extra=_request_extra(
            request,
            exc.status_code,
            "password_reset_failed",
            error_type=type(exc).__name__,
            failure_reason=exc.reason,
        ),
    )
    return _error_response(request, exc.status_code, exc.to_payload(), dict(_NO_STORE_HEADERS))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    """Answer malformed bodies with 400 and the validation error list."""

    errors = exc.errors()
    logger.warning(
        "Request validation failed",
        extra=_request_extra(
            request,
            status.HTTP_400_BAD_REQUEST,
            "validation_failed",
            error_type="RequestValidationError",
            error_message=",".join(sorted({err.get("type", "unknown") for err in errors}))[:128],
            validation_error_count=len(errors),
        ),
    )
    content = {
        "detail": jsonable_encoder(errors, exclude={"input", "ctx"}),
        "status": "invalid",
    }
    return _error_response(
        request, status.HTTP_400_BAD_REQUEST, content, dict(_NO_STORE_HEADERS)
    )


@app.exception_handler(HTTPException)
async def http_exception_handler_logged(request: Request, exc: HTTPException) -> Response:
    """Log framework HTTP errors (404, 405, ...) and pass them through."""

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "HTTP exception raised",
        extra=_request_extra(
            request,
            exc.status_code,
            "http_exception",
            error_type=type(exc).__name__,
            error_message=detail[:256],
        ),
    )
    return _error_response(request, exc.status_code, {"detail": exc.detail}, exc.headers)


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> Response:
    """Turn database errors that escaped a handler into a retryable 503."""

    logger.exception(
        "Database error while handling request",
        extra=_request_extra(
            request,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "database_error",
            error_type=type(exc).__name__,
        ),
    )
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        {"detail": "Temporary database issue. Please retry later."},
        {"Retry-After": _DB_RETRY_AFTER_SECONDS, **_NO_STORE_HEADERS},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """Hide unexpected failures behind a generic 500 that keeps the request id."""

    logger.error(
        "Unhandled error while handling request",
        extra=_request_extra(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "unhandled_error",
            error_type=type(exc).__name__,
        ),
        exc_info=exc,
    )
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, {"detail": "Internal Server Error"}
    )


@app.get("/")
def read_root() -> dict[str, str]:
    """Liveness probe."""
    return {"message": "Password Reset API"}


app.include_router(password_reset_router)
