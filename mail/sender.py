"""
mail/sender.py -- Template rendering and SMTP dispatch for transactional mail.

Mailer.send(email, subject, template, data) renders a Jinja2 template from
mail/templates/ and delivers it over SMTP. When SMTP_HOST is not configured
(local development, tests) the message is logged instead of sent, so the
registration flow can be exercised without a mail server.

Delivery failures raise MailDeliveryError. The auth service turns that into a
400 for the client; nothing is retried here.

Layer rule: no imports from api/, auth/, cache/, or media/. Import from core/
is allowed.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from core.config import Settings

logger = logging.getLogger("elearning.mail")

_TEMPLATE_DIR = Path(__file__).parent / "templates"


class MailDeliveryError(Exception):
    """Raised when a message could not be rendered or handed to the SMTP server."""


def redact_email(email: str) -> str:
    """Redact an address for log lines: 'alice@example.com' -> 'al***@example.com'."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class Mailer:
    def __init__(
        self,
        *,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        smtp_use_tls: bool = True,
        from_email: str = "",
        template_dir: Path = _TEMPLATE_DIR,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email or smtp_user
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            smtp_use_tls=settings.smtp_use_tls,
            from_email=settings.mail_from,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def render(self, template: str, data: dict[str, Any]) -> str:
        """Render template (e.g. "activation_mail.html") with data."""
        try:
            return self._env.get_template(template).render(**data)
        except TemplateError as exc:
            raise MailDeliveryError(f"Could not render mail template {template!r}") from exc

    def send(self, email: str, subject: str, template: str, data: dict[str, Any]) -> None:
        html_body = self.render(template, data)

        if not self.is_configured:
            # Dev mode: log instead of send
            logger.info(
                "Mail not sent (SMTP not configured) to=%s subject=%r body=%s",
                redact_email(email),
                subject,
                html_body,
            )
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = email
        msg.attach(MIMEText(html_body, "html"))

        try:
            self._deliver(email, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail delivery failed to=%s subject=%r: %s", redact_email(email), subject, exc)
            raise MailDeliveryError(f"Could not send mail to {email}") from exc
        logger.info("Mail sent to=%s subject=%r", redact_email(email), subject)

    def _deliver(self, email: str, msg: MIMEMultipart) -> None:
        context = ssl.create_default_context()
        if self.smtp_use_tls:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls(context=context)
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, email, msg.as_string())
        else:
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context, timeout=30) as server:
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, email, msg.as_string())
