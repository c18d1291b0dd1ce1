"""Per-request values attached to every log record."""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RequestContext:
    request_id: str | None = None
    # raw address; each handler decides how much of it to keep
    client_ip: str | None = None


_EMPTY = RequestContext()
_request_context: ContextVar[RequestContext] = ContextVar("request_context", default=_EMPTY)


def current_request_context() -> RequestContext:
    return _request_context.get()


def bind_request_context(request_id: str, client_ip: str | None = None) -> Token[RequestContext]:
    """Bind the current request and return the token that undoes it."""

    return _request_context.set(RequestContext(request_id=request_id, client_ip=client_ip))


def reset_request_context(token: Token[RequestContext]) -> None:
    _request_context.reset(token)
