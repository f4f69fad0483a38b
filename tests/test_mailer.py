"""Unit tests for mail/sender.py -- activation mail rendering and delivery.

Covers:
- The activation template renders the user's name and the code
- An unconfigured Mailer logs instead of sending
- A configured Mailer hands the message to SMTP
- SMTP failures surface as MailDeliveryError
"""

from __future__ import annotations

import logging
import smtplib
from unittest.mock import patch

import pytest

from mail.sender import MailDeliveryError, Mailer, redact_email

DATA = {"user": {"name": "Ada"}, "activation_code": "4821"}


def _configured(**overrides) -> Mailer:
    params = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_user": "mailer",
        "smtp_password": "pw",
        "from_email": "noreply@example.com",
    }
    params.update(overrides)
    return Mailer(**params)


def test_activation_template_renders_name_and_code():
    html = Mailer().render("activation_mail.html", DATA)
    assert "Ada" in html
    assert "4821" in html


def test_template_escapes_user_input():
    html = Mailer().render("activation_mail.html", {"user": {"name": "<script>x</script>"}, "activation_code": "1"})
    assert "<script>" not in html


def test_missing_template_raises_delivery_error():
    with pytest.raises(MailDeliveryError):
        Mailer().render("nope.html", DATA)


def test_unconfigured_mailer_logs_instead_of_sending(caplog):
    mailer = Mailer()
    assert not mailer.is_configured
    with patch("mail.sender.smtplib.SMTP") as smtp, caplog.at_level(logging.INFO, logger="elearning.mail"):
        mailer.send("ada@example.com", "Please Activate Your Account", "activation_mail.html", DATA)
    smtp.assert_not_called()
    assert "4821" in caplog.text


def test_configured_mailer_sends_over_smtp():
    mailer = _configured()
    with patch("mail.sender.smtplib.SMTP") as smtp:
        mailer.send("ada@example.com", "Please Activate Your Account", "activation_mail.html", DATA)
    server = smtp.return_value.__enter__.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("mailer", "pw")
    from_addr, to_addr, _body = server.sendmail.call_args.args
    assert from_addr == "noreply@example.com"
    assert to_addr == "ada@example.com"


def test_smtp_failure_raises_delivery_error():
    mailer = _configured()
    with patch("mail.sender.smtplib.SMTP") as smtp:
        smtp.return_value.__enter__.return_value.sendmail.side_effect = smtplib.SMTPException("boom")
        with pytest.raises(MailDeliveryError):
            mailer.send("ada@example.com", "Subject", "activation_mail.html", DATA)


def test_redact_email():
    assert redact_email("alice@example.com") == "al***@example.com"
    assert redact_email("nonsense") == "redacted"
