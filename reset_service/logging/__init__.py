"""Structured logging for the password reset service."""

from .config import configure_logging
from .context import (
    RequestContext,
    bind_request_context,
    current_request_context,
    reset_request_context,
)
from .filters import IPOverrideFilter, PrivacyFilter, RequestContextFilter
from .formatter import ECSJsonFormatter, FIELD_MAP, SERVICE_NAME
from .handlers import SecureWatchedFileHandler
from .ip_utils import anonymize_ip
from .privacy import MASKED_VALUE, sanitize_value

__all__ = [
    "configure_logging",
    "RequestContext",
    "bind_request_context",
    "current_request_context",
    "reset_request_context",
    "IPOverrideFilter",
    "PrivacyFilter",
    "RequestContextFilter",
    "ECSJsonFormatter",
    "FIELD_MAP",
    "SERVICE_NAME",
    "SecureWatchedFileHandler",
    "anonymize_ip",
    "MASKED_VALUE",
    "sanitize_value",
]
