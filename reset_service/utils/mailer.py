"""Named mail templates rendered with Jinja2 and delivered over SMTP."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError

from ..config import MAIL_FROM, MAIL_TEMPLATE_DIR
from .email_sender import build_email, load_smtp_settings, send_email_via_smtp

logger = logging.getLogger("reset_service.mailer")

_SUBJECT_PREFIX = "subject:"


@dataclass(slots=True, frozen=True)
class MailTemplate:
    """Unrendered subject and body of a named email."""

    subject: str
    body: str


DEFAULT_TEMPLATES: dict[str, MailTemplate] = {
    "pw-reset": MailTemplate(
        subject="Confirm your password reset",
        body=(
            "Hi {{ name or email }},\n\n"
            "We received a request to change the password for {{ email }}.\n\n"
            "Open the link below to confirm the new password:\n\n"
            "{{ reset_link }}\n\n"
            "Until you confirm, your current password keeps working. If you did "
            "not request this change, you can safely ignore this email.\n"
        ),
    ),
    "pw-reset-complete": MailTemplate(
        subject="Your password was changed",
        body=(
            "Hi {{ name or email }},\n\n"
            "This is a confirmation that the password for {{ email }} was just "
            "changed. If you did not perform this action, request a new password "
            "reset and contact support immediately.\n"
        ),
    ),
}


def load_templates(directory: str | Path) -> dict[str, MailTemplate]:
    """Read ``<name>.txt`` templates whose first line is ``Subject: ...``."""

    templates: dict[str, MailTemplate] = {}
    for path in sorted(Path(directory).glob("*.txt")):
        first_line, _, body = path.read_text(encoding="utf-8").partition("\n")
        if not first_line.lower().startswith(_SUBJECT_PREFIX):
            logger.warning(
                "Skipping mail template without subject line",
                extra={
                    "event_dataset": "password-reset-api.mail",
                    "event_action": "mail_template_skipped",
                    "mail_template": path.stem,
                },
            )
            continue
        subject = first_line[len(_SUBJECT_PREFIX):].strip()
        templates[path.stem] = MailTemplate(subject=subject, body=body.lstrip("\n"))
    return templates


class Mailer:
    """Resolve named templates and send them to a single recipient."""

    def __init__(
        self,
        templates: Mapping[str, MailTemplate] | None = None,
        *,
        default_from: str = MAIL_FROM,
    ) -> None:
        self.templates: dict[str, MailTemplate] = dict(
            DEFAULT_TEMPLATES if templates is None else templates
        )
        self.default_from = default_from
        self._env = Environment(
            loader=BaseLoader(),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def get_template(self, name: str) -> MailTemplate | None:
        return self.templates.get(name)

    def render(self, template: MailTemplate, context: Mapping[str, Any]) -> tuple[str, str]:
        """Return the rendered ``(subject, body)`` pair."""

        subject = self._env.from_string(template.subject).render(**context)
        body = self._env.from_string(template.body).render(**context)
        # Header injection guard; subjects are single line.
        return " ".join(subject.split()), body

    def send_from_template(
        self,
        address: str,
        template: MailTemplate,
        context: Mapping[str, Any],
        *,
        log_extra: dict[str, str] | None = None,
    ) -> bool:
        """Render ``template`` with ``context`` and deliver it to ``address``."""

        extra = dict(log_extra or {})
        try:
            subject, body = self.render(template, context)
        except TemplateError:
            logger.exception(
                "Failed to render mail template",
                extra={
                    "event_dataset": "password-reset-api.mail",
                    "event_action": "mail_render_failed",
                    **extra,
                },
            )
            return False

        settings = load_smtp_settings(default_from=self.default_from)
        message = build_email(
            subject=subject,
            from_addr=settings.from_addr,
            to_addr=address,
            body=body,
        )
        return send_email_via_smtp(settings=settings, message=message, log_extra=extra)


@lru_cache(maxsize=1)
def get_mailer() -> Mailer:
    """Return the process-wide mailer, applying ``MAIL_TEMPLATE_DIR`` overrides."""

    templates = dict(DEFAULT_TEMPLATES)
    if MAIL_TEMPLATE_DIR:
        templates.update(load_templates(MAIL_TEMPLATE_DIR))
    return Mailer(templates)
