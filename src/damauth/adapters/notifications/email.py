"""SMTP mail dispatcher."""

import asyncio
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import urlencode

import structlog

from damauth.adapters.notifications.templates import (
    RenderedEmail,
    password_reset_email,
    verification_email,
)
from damauth.core.exceptions import MailDispatchError

logger = structlog.get_logger()


@dataclass
class EmailConfig:
    """Email configuration."""

    smtp_host: str
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    from_email: str = "no-reply@damauth.local"
    from_name: str = "DAM"
    use_tls: bool = True


class SmtpMailDispatcher:
    """Delivers verification and reset mail via SMTP."""

    def __init__(self, config: EmailConfig, frontend_url: str, api_base_url: str) -> None:
        """Initialize the dispatcher.

        Args:
            config: Email configuration settings.
            frontend_url: Base URL of the web app, hosting the verify page.
            api_base_url: Base URL of the auth API, hosting password reset.
        """
        self.config = config
        self._frontend_url = frontend_url.rstrip("/")
        self._api_base_url = api_base_url.rstrip("/")

    def verification_url(self, token: str) -> str:
        """Build the verification link for a token."""
        return f"{self._frontend_url}/verify-email?{urlencode({'token': token})}"

    def reset_url(self, token: str) -> str:
        """Build the password reset link for a token."""
        return f"{self._api_base_url}/reset-password?{urlencode({'token': token})}"

    async def send_verification_email(self, email: str, token: str) -> None:
        """Send the email verification link."""
        await self._deliver(email, verification_email(self.verification_url(token)))

    async def send_password_reset_email(self, email: str, token: str) -> None:
        """Send the password reset link."""
        await self._deliver(email, password_reset_email(self.reset_url(token)))

    async def _deliver(self, to_email: str, rendered: RenderedEmail) -> None:
        try:
            await asyncio.to_thread(self._send, to_email, rendered)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "email_error",
                to=to_email,
                subject=rendered.subject,
                error=str(e),
            )
            raise MailDispatchError(f"Failed to send email: {rendered.subject}") from e

        logger.info("email_sent", to=to_email, subject=rendered.subject)

    def _send(self, to_email: str, rendered: RenderedEmail) -> None:
        """Send synchronously; runs in a worker thread."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = rendered.subject
        msg["From"] = f"{self.config.from_name} <{self.config.from_email}>"
        msg["To"] = to_email

        msg.attach(MIMEText(rendered.body_text, "plain"))
        msg.attach(MIMEText(rendered.body_html, "html"))

        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port) as server:
            if self.config.use_tls:
                server.starttls()

            if self.config.smtp_user and self.config.smtp_password:
                server.login(self.config.smtp_user, self.config.smtp_password)

            server.sendmail(self.config.from_email, [to_email], msg.as_string())
