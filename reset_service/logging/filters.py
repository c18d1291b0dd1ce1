"""Logging filters that enrich and sanitise records."""

from __future__ import annotations

import logging

from .context import current_request_context
from .ip_utils import anonymize_ip
from .privacy import sanitize_value

_UNTOUCHED_ATTRS = {"exc_info", "exc_text", "stack_info", "msg", "args"}


class PrivacyFilter(logging.Filter):
    """Ensure sensitive headers or payloads never hit the logs."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for key, value in list(record.__dict__.items()):
            if key in _UNTOUCHED_ATTRS:
                continue
            record.__dict__[key] = sanitize_value(key, value)
        if isinstance(record.args, tuple):
            record.args = tuple(sanitize_value("arg", arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: sanitize_value(k, v) for k, v in record.args.items()}
        return True


class RequestContextFilter(logging.Filter):
    """Attach request scoped context variables to log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        context = current_request_context()
        if context.request_id and not getattr(record, "request_id", None):
            record.request_id = context.request_id
        if not hasattr(record, "client_ip_raw"):
            record.client_ip_raw = getattr(record, "client_ip", None) or context.client_ip
        return True


class IPOverrideFilter(logging.Filter):
    """Render ``client_ip`` for one handler as the raw or anonymised address."""

    def __init__(self, mode: str) -> None:
        super().__init__()
        if mode not in {"raw", "anonymized", "configured"}:
            raise ValueError(f"Unsupported IP override mode: {mode}")
        self.mode = mode

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        raw_ip = getattr(record, "client_ip_raw", None) or getattr(record, "client_ip", None)
        if raw_ip is not None:
            if self.mode == "raw":
                record.client_ip = raw_ip
            elif self.mode == "anonymized":
                record.client_ip = anonymize_ip(raw_ip, mode="anonymized")
            else:
                record.client_ip = anonymize_ip(raw_ip)
        return True
