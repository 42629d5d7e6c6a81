"""Outbound email over SMTP, configured from Settings."""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from accounts.core.config import Settings

logger = logging.getLogger(__name__)

# Port that speaks implicit TLS; any other port upgrades with STARTTLS.
SMTPS_PORT = 465


class EmailSender(Protocol):
    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        """Send an HTML email. Returns False instead of raising on delivery failure."""
        ...


class SmtpEmailSender:
    """EmailSender backed by smtplib; the blocking SMTP exchange runs in a worker thread."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def is_configured(self) -> bool:
        s = self.settings
        return bool(s.SMTP_HOST and s.SMTP_USER and s.SMTP_PASSWORD and s.SMTP_FROM)

    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        if not self.is_configured():
            logger.warning("SMTP is not configured; skipping email", extra={"subject": subject})
            return False
        return await asyncio.to_thread(self._send, to, subject, html_body)

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEText:
        msg = MIMEText(html_body, "html", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.settings.SMTP_FROM
        msg["To"] = to
        return msg

    def _send(self, to: str, subject: str, html_body: str) -> bool:
        s = self.settings
        msg = self._build_message(to, subject, html_body)
        password = s.SMTP_PASSWORD.get_secret_value() if s.SMTP_PASSWORD else ""
        try:
            if s.SMTP_PORT == SMTPS_PORT:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(s.SMTP_HOST, s.SMTP_PORT, context=context) as server:
                    server.login(s.SMTP_USER, password)
                    server.sendmail(s.SMTP_FROM, [to], msg.as_string())
            else:
                with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT) as server:
                    server.ehlo()
                    server.starttls(context=ssl.create_default_context())
                    server.login(s.SMTP_USER, password)
                    server.sendmail(s.SMTP_FROM, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Email delivery failed",
                extra={"subject": subject, "reason": str(e)[:500]},
            )
            return False
        logger.info("Email sent", extra={"subject": subject})
        return True
