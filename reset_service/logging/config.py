"""Public entry point for configuring service logging."""

from __future__ import annotations

import logging
import logging.config
import os
from typing import Any

from .formatter import SERVICE_NAME


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def configure_logging() -> None:
    """Configure structured logging for the service.

    Output goes to stdout and optionally to ``LOG_FILE_ANON`` (or ``LOG_FILE``)
    with anonymised client addresses and ``LOG_FILE_RAW`` with full addresses.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    formatter_name = "json" if _truthy(os.getenv("LOG_JSON", "true")) else "plain"
    anon_log_file = os.getenv("LOG_FILE_ANON") or os.getenv("LOG_FILE")
    raw_log_file = os.getenv("LOG_FILE_RAW")

    if anon_log_file and raw_log_file:
        if os.path.abspath(anon_log_file) == os.path.abspath(raw_log_file):
            raise ValueError("LOG_FILE_ANON and LOG_FILE_RAW must point to different files")

    formatters: dict[str, dict[str, Any]] = {
        "json": {
            "()": "reset_service.logging.formatter.ECSJsonFormatter",
            "service_name": SERVICE_NAME,
        },
        "plain": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    }

    filters = {
        "context": {"()": "reset_service.logging.filters.RequestContextFilter"},
        "privacy": {"()": "reset_service.logging.filters.PrivacyFilter"},
        "ip_configured": {"()": "reset_service.logging.filters.IPOverrideFilter", "mode": "configured"},
        "ip_anonymized": {"()": "reset_service.logging.filters.IPOverrideFilter", "mode": "anonymized"},
        "ip_raw": {"()": "reset_service.logging.filters.IPOverrideFilter", "mode": "raw"},
    }

    handlers: dict[str, dict[str, Any]] = {
        "stdout": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": formatter_name,
            "filters": ["context", "privacy", "ip_configured"],
            "stream": "ext://sys.stdout",
        }
    }

    def _add_file_handler(name: str, path: str, ip_filter: str) -> None:
        abs_path = os.path.abspath(path)
        os.makedirs(os.path.dirname(abs_path) or ".", exist_ok=True)
        handlers[name] = {
            "class": "reset_service.logging.handlers.SecureWatchedFileHandler",
            "level": log_level,
            "formatter": formatter_name,
            "filters": ["context", "privacy", ip_filter],
            "filename": abs_path,
            "delay": True,
        }

    if anon_log_file:
        _add_file_handler("file_anon", anon_log_file, "ip_anonymized")
    if raw_log_file:
        _add_file_handler("file_raw", raw_log_file, "ip_raw")

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "filters": filters,
            "handlers": handlers,
            "root": {"level": log_level, "handlers": list(handlers)},
            "loggers": {
                name: {"level": "INFO", "handlers": [], "propagate": True}
                for name in (
                    "uvicorn",
                    "uvicorn.error",
                    "uvicorn.access",
                    "gunicorn.error",
                    "gunicorn.access",
                )
            },
        }
    )
    logging.captureWarnings(True)
