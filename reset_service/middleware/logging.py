"""Request/response logging middleware that emits structured JSON logs."""

from __future__ import annotations

import logging
import os
import random
import time
import traceback
import uuid

from fastapi import Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from ..logging import bind_request_context, reset_request_context
from ..utils.network import get_client_ip


def _load_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one ECS compatible access log record per request."""

    noise_paths = {"/", "/health", "/healthz"}

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self.logger = logging.getLogger("reset_service.access")
        self.sample_rate = max(0.0, min(1.0, _load_float_env("ACCESS_LOG_SAMPLE", 1.0)))
        self.slow_request_ns = int(_load_float_env("SLOW_REQUEST_MS", 500.0) * 1_000_000)
        self.random = random.SystemRandom()

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_ns = time.perf_counter_ns()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        client_ip = get_client_ip(request)
        context_token = bind_request_context(request_id=request_id, client_ip=client_ip)

        status_code = 500
        error: dict[str, str] = {}
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        except StarletteHTTPException as exc:
            status_code = exc.status_code
            error["error_type"] = type(exc).__name__
            if isinstance(exc.detail, str):
                error["error_message"] = exc.detail
            raise
        except Exception as exc:  # noqa: BLE001 - logged below, then re-raised
            error["error_type"] = type(exc).__name__
            error["error_message"] = str(exc)
            error["error_stack"] = "".join(traceback.format_exception(exc))
            raise
        finally:
            duration_ns = time.perf_counter_ns() - start_ns
            if self._should_log(request, status_code, duration_ns):
                self._log(request, status_code, duration_ns, client_ip, error)
            reset_request_context(context_token)

    def _log(
        self,
        request: Request,
        status_code: int,
        duration_ns: int,
        client_ip: str,
        error: dict[str, str],
    ) -> None:
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        extra = {
            "http_request_method": request.method,
            "url_path": request.url.path,
            "url_query": request.url.query or None,
            "http_status_code": status_code,
            "event_duration": duration_ns,
            "client_ip": client_ip,
            "user_agent": request.headers.get("User-Agent") or None,
            "event_dataset": "password-reset-api.access",
            **error,
        }
        if duration_ns >= self.slow_request_ns:
            extra["event_action"] = "slow_request"
        self.logger.log(
            level,
            f"{request.method} {request.url.path} -> {status_code}",
            extra=extra,
        )

    def _should_log(self, request: Request, status_code: int, duration_ns: int) -> bool:
        if status_code >= 400 or duration_ns >= self.slow_request_ns:
            return True
        if request.url.path in self.noise_paths:
            return False
        if self.sample_rate >= 1.0:
            return True
        return self.random.random() < self.sample_rate


__all__ = ["LoggingMiddleware"]
