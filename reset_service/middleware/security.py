"""Middleware that injects security headers for every response."""

from collections.abc import Mapping

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp


def _is_https(request: Request) -> bool:
    forwarded_proto = request.headers.get("x-forwarded-proto", "").lower()
    return request.url.scheme == "https" or forwarded_proto == "https"


class SecureHeadersMiddleware(BaseHTTPMiddleware):
    """Apply configured security headers to success and error responses alike.

    ``Strict-Transport-Security`` is only sent over HTTPS.
    """

    def __init__(self, app: ASGIApp, headers: Mapping[str, str | None] | None = None) -> None:
        super().__init__(app)
        self._headers = {name: value for name, value in (headers or {}).items() if value}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        https = _is_https(request)
        for header, value in self._headers.items():
            if header.lower() == "strict-transport-security" and not https:
                continue
            response.headers[header] = value
        return response
