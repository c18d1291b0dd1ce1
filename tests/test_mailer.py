import logging

import pytest

from reset_service.utils import mailer as mailer_module
from reset_service.utils.mailer import DEFAULT_TEMPLATES, Mailer, MailTemplate, load_templates


def test_default_templates_cover_reset_flow():
    assert {"pw-reset", "pw-reset-complete"} <= set(DEFAULT_TEMPLATES)


def test_render_fills_context_and_flattens_subject():
    mailer = Mailer(
        {"greeting": MailTemplate(subject="Hello\r\nBcc: x@evil.test {{ name }}", body="Hi {{ name }}!\n")}
    )

    subject, body = mailer.render(mailer.get_template("greeting"), {"name": "Alice"})

    assert subject == "Hello Bcc: x@evil.test Alice"
    assert body == "Hi Alice!\n"


def test_send_from_template_delivers_rendered_message(sent_emails):
    mailer = Mailer(default_from="accounts@example.com")
    template = mailer.get_template("pw-reset")

    sent = mailer.send_from_template(
        "a@x.com",
        template,
        {"name": None, "email": "a@x.com", "reset_link": "http://client.test/password-reset?id=abc"},
    )

    assert sent is True
    message = sent_emails[0]
    assert message["To"] == "a@x.com"
    body = message.get_content()
    assert "Hi a@x.com," in body
    assert "http://client.test/password-reset?id=abc" in body


def test_send_from_template_does_not_send_on_missing_variable(sent_emails, caplog):
    mailer = Mailer()
    caplog.set_level(logging.ERROR, logger="reset_service.mailer")

    sent = mailer.send_from_template(
        "a@x.com",
        mailer.get_template("pw-reset"),
        {"email": "a@x.com", "name": "Alice"},
    )

    assert sent is False
    assert sent_emails == []
    assert any(getattr(r, "event_action", None) == "mail_render_failed" for r in caplog.records)


def test_send_from_template_reports_transport_result(monkeypatch):
    monkeypatch.setattr(mailer_module, "send_email_via_smtp", lambda **kwargs: False)
    mailer = Mailer()

    sent = mailer.send_from_template(
        "a@x.com",
        mailer.get_template("pw-reset-complete"),
        {"email": "a@x.com", "name": "Alice"},
    )

    assert sent is False


def test_unknown_template_is_none():
    assert Mailer(templates={}).get_template("pw-reset") is None


def test_load_templates_reads_subject_line(tmp_path):
    (tmp_path / "pw-reset.txt").write_text(
        "Subject: Reset for {{ email }}\n\nFollow {{ reset_link }}\n", encoding="utf-8"
    )
    (tmp_path / "broken.txt").write_text("No subject here\nbody", encoding="utf-8")
    (tmp_path / "notes.md").write_text("Subject: ignored", encoding="utf-8")

    templates = load_templates(tmp_path)

    assert set(templates) == {"pw-reset"}
    assert templates["pw-reset"].subject == "Reset for {{ email }}"
    assert templates["pw-reset"].body == "Follow {{ reset_link }}\n"


def test_get_mailer_applies_template_directory(monkeypatch, tmp_path):
    (tmp_path / "pw-reset.txt").write_text("Subject: Custom\nBody {{ reset_link }}", encoding="utf-8")
    monkeypatch.setattr(mailer_module, "MAIL_TEMPLATE_DIR", str(tmp_path))
    mailer_module.get_mailer.cache_clear()
    try:
        mailer = mailer_module.get_mailer()
        assert mailer.get_template("pw-reset").subject == "Custom"
        assert mailer.get_template("pw-reset-complete") == DEFAULT_TEMPLATES["pw-reset-complete"]
    finally:
        mailer_module.get_mailer.cache_clear()


@pytest.mark.parametrize("name", ["pw-reset", "pw-reset-complete"])
def test_default_templates_do_not_mention_password_values(name):
    template = DEFAULT_TEMPLATES[name]
    assert "password_hash" not in template.body
    assert "temp_password_hash" not in template.body
