"""SMTP transport for account mail."""

from __future__ import annotations

import logging
import os
import smtplib
import ssl
from collections.abc import Callable
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Any, TypeVar

logger = logging.getLogger("reset_service.smtp")

_DATASET = "password-reset-api.mail"
_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_SMTP_PORT = 587
DEFAULT_SMTP_TIMEOUT = 10.0

N = TypeVar("N", int, float)


def _env_number(name: str, default: N, parse: Callable[[str], N]) -> N:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return parse(raw)
    except ValueError:
        return default


@dataclass(slots=True, frozen=True)
class SMTPSettings:
    """Where and how outgoing mail is handed over."""

    host: str | None
    port: int = DEFAULT_SMTP_PORT
    use_ssl: bool = False
    user: str | None = None
    password: str | None = None
    from_addr: str = "accounts@localhost"
    timeout: float = DEFAULT_SMTP_TIMEOUT

    @property
    def authenticates(self) -> bool:
        return bool(self.user and self.password)


def load_smtp_settings(*, default_from: str) -> SMTPSettings:
    """Read ``SMTP_*`` variables; ``SMTP_FROM`` overrides ``default_from``."""

    host = (os.getenv("SMTP_HOST") or "").strip()
    return SMTPSettings(
        host=host or None,
        port=_env_number("SMTP_PORT", DEFAULT_SMTP_PORT, int),
        use_ssl=os.getenv("SMTP_SSL", "").strip().lower() in _TRUTHY,
        user=os.getenv("SMTP_USER"),
        password=os.getenv("SMTP_PASSWORD"),
        from_addr=os.getenv("SMTP_FROM", default_from),
        timeout=_env_number("SMTP_TIMEOUT", DEFAULT_SMTP_TIMEOUT, float),
    )


def build_email(
    *,
    subject: str,
    from_addr: str,
    to_addr: str,
    body: str,
    reply_to: str | None = None,
) -> EmailMessage:
    """Return a plain text message flagged as machine generated."""

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = from_addr
    message["To"] = to_addr
    message["Date"] = formatdate(localtime=True)
    # RFC 3834; keeps vacation responders from answering reset mail
    message["Auto-Submitted"] = "auto-generated"
    message["X-Auto-Response-Suppress"] = "All"
    domain = from_addr.rpartition("@")[2] if "@" in from_addr else None
    message["Message-ID"] = make_msgid(domain=domain)
    if reply_to:
        message["Reply-To"] = reply_to
    message.set_content(body)
    return message


def _tls_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def _connect(settings: SMTPSettings, context: ssl.SSLContext, *, implicit_tls: bool) -> smtplib.SMTP:
    if implicit_tls:
        return smtplib.SMTP_SSL(
            settings.host, settings.port, context=context, timeout=settings.timeout
        )
    return smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout)


def _deliver(
    settings: SMTPSettings,
    message: EmailMessage,
    context: ssl.SSLContext,
    *,
    implicit_tls: bool,
) -> None:
    with _connect(settings, context, implicit_tls=implicit_tls) as server:
        server.ehlo()
        encrypted = implicit_tls
        if not implicit_tls and server.has_extn("starttls"):
            server.starttls(context=context)
            server.ehlo()
            encrypted = True
        if settings.authenticates:
            if not encrypted:
                raise smtplib.SMTPNotSupportedError(
                    "Refusing to send credentials without STARTTLS"
                )
            server.login(settings.user, settings.password)
        server.send_message(message)


def send_email_via_smtp(
    *,
    settings: SMTPSettings,
    message: EmailMessage,
    log_extra: dict[str, Any] | None = None,
) -> bool:
    """Hand ``message`` to the SMTP server and report whether it was accepted.

    With ``use_ssl`` an implicit TLS connection is tried first and a failed
    attempt is retried once over STARTTLS. Rejected credentials are not retried.
    """

    extra: dict[str, Any] = {"event_dataset": _DATASET, **(log_extra or {})}
    if not settings.host:
        logger.error(
            "SMTP host is not configured",
            extra={**extra, "event_action": "mail_send_failed"},
        )
        return False

    context = _tls_context()
    attempts: list[str] = []
    for implicit_tls in ([True, False] if settings.use_ssl else [False]):
        attempts.append("ssl" if implicit_tls else "starttls")
        extra["smtp_attempts"] = ",".join(attempts)
        try:
            _deliver(settings, message, context, implicit_tls=implicit_tls)
        except smtplib.SMTPAuthenticationError:
            logger.error(
                "SMTP authentication failed",
                extra={**extra, "event_action": "mail_auth_failed"},
                exc_info=True,
            )
            return False
        except (smtplib.SMTPException, OSError):
            if implicit_tls:
                logger.warning(
                    "SMTP SSL delivery failed, retrying with STARTTLS",
                    extra={**extra, "event_action": "mail_ssl_retry"},
                    exc_info=True,
                )
                continue
            logger.error(
                "Failed to send email",
                extra={**extra, "event_action": "mail_send_failed"},
                exc_info=True,
            )
            return False
        return True
    return False
