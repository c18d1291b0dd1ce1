"""Custom JSON formatter compatible with ECS."""

from __future__ import annotations

import logging
import os
import traceback
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

SERVICE_NAME = os.getenv("SERVICE_NAME", "password-reset-api")

FIELD_MAP = {
    "request_id": "http.request.id",
    "user_id": "user.id",
    "client_ip": "client.ip",
    "http_request_method": "http.request.method",
    "url_path": "url.path",
    "url_query": "url.query",
    "http_status_code": "http.response.status_code",
    "event_duration": "event.duration",
    "user_agent": "user_agent.original",
    "event_dataset": "event.dataset",
    "event_action": "event.action",
    "event_kind": "event.kind",
    "failure_reason": "event.reason",
    "error_stack": "error.stack",
    "error_type": "error.type",
    "error_message": "error.message",
    "validation_error_count": "validation.error.count",
    "mail_template": "email.template",
    "smtp_attempts": "email.delivery.attempts",
}

_TRANSIENT_FIELDS = ("client_ip_raw",)


class ECSJsonFormatter(jsonlogger.JsonFormatter):
    """Render records as one JSON object per line using ECS field names."""

    def __init__(self, *args: Any, service_name: str = SERVICE_NAME, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def _base_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            "@timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "log.level": record.levelname,
            "log.logger": record.name,
            "message": record.getMessage(),
            "service.name": self.service_name,
            "event.dataset": f"{self.service_name}.app",
        }

    def add_fields(
        self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        for key, value in self._base_fields(record).items():
            log_record.setdefault(key, value)
        for attr, ecs_name in FIELD_MAP.items():
            value = log_record.pop(attr, getattr(record, attr, None))
            if value is not None:
                log_record[ecs_name] = value
        for transient in _TRANSIENT_FIELDS:
            log_record.pop(transient, None)

        if record.exc_info and "error.stack" not in log_record:
            log_record["error.stack"] = "".join(traceback.format_exception(*record.exc_info)).strip()

        for key in [key for key, value in log_record.items() if value is None]:
            del log_record[key]
