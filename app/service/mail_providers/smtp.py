"""SMTP mail service provider.

Sends emails using SMTP protocol.
"""

import asyncio
import concurrent.futures
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import smtplib
from typing import Any

from app.config import settings
from app.log import log

from ._base import MailDeliveryError, MailServiceProvider

logger = log("SMTP")


class SMTPProvider(MailServiceProvider):
    """SMTP mail service provider.

    Configured through ``email_provider_config``; STARTTLS and login are used
    when a username and password are set.
    """

    def __init__(
        self,
        smtp_server: str = "localhost",
        smtp_port: int = 587,
        smtp_username: str = "",
        smtp_password: str = "",
        from_email: str | None = None,
        from_name: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.from_email = from_email or settings.from_email
        self.from_name = from_name or settings.from_name
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=2)

    async def _run_in_executor(self, func, *args):
        """Run synchronous operation in thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        content: str,
        html_content: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, str]:
        _ = metadata  # SMTP doesn't use metadata

        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        if content:
            msg.attach(MIMEText(content, "plain", "utf-8"))
        if html_content:
            msg.attach(MIMEText(html_content, "html", "utf-8"))

        def send_smtp_email():
            timeout = settings.email_delivery_timeout_seconds
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=timeout) as server:
                if self.smtp_username and self.smtp_password:
                    server.starttls()
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

        try:
            await self._run_in_executor(send_smtp_email)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via SMTP to {to_email}: {e}")
            raise MailDeliveryError(str(e)) from e

        logger.info(f"Sent email via SMTP to {to_email}")
        return {"id": ""}  # SMTP doesn't return message IDs


# Export as MailServiceProvider for consistent module interface
MailServiceProvider = SMTPProvider
