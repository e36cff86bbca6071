"""
E-mail notification handling for the ticket watcher.
"""
import asyncio
import html
import logging
import smtplib
from datetime import datetime
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

from .exceptions import SendError
from .models import EmailConfig, NotificationResult

logger = logging.getLogger(__name__)

SUBJECT = "🎫 Tickets available!"

HTML_TEMPLATE = """\
<html>
  <body style="font-family: sans-serif;">
    <h2>🎫 Tickets are available!</h2>
    <p>The ticket watcher detected available seats on the monitored page.</p>
    <p><strong>Matched area:</strong> {matched}</p>
    <p><strong>Detected at:</strong> {detected_at}</p>
    <p><a href="{url}" style="font-size: 1.2em;">👉 Go buy tickets now</a></p>
    <p style="color: #888;">{url}</p>
  </body>
</html>
"""


class MailSender(Protocol):
    """Interface of the mail collaborator."""

    async def send(self, sender: str, recipient: str, subject: str, html_body: str) -> None:
        """Deliver one message. Raises SendError on failure."""
        ...


class SmtpMailSender:
    """Sends mail through an SMTP server using STARTTLS and an app password."""

    def __init__(self, config: EmailConfig):
        self.config = config

    async def send(self, sender: str, recipient: str, subject: str, html_body: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, self._send_sync, sender, recipient, subject, html_body
        )

    def _send_sync(self, sender: str, recipient: str, subject: str, html_body: str) -> None:
        message = MIMEMultipart("alternative")
        message["From"] = sender
        message["To"] = recipient
        message["Subject"] = Header(subject, "utf-8")
        message.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=self.config.timeout
            ) as server:
                server.starttls()
                server.login(sender, self.config.app_password or "")
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise SendError(
                f"SMTP delivery via {self.config.smtp_host}:{self.config.smtp_port} failed: {e}"
            ) from e


def render_email(url: str, matched_text: str, detected_at: Optional[datetime] = None) -> str:
    """Render the alert body for `url`."""
    detected_at = detected_at or datetime.now()
    return HTML_TEMPLATE.format(
        url=html.escape(url, quote=True),
        matched=html.escape(matched_text.strip()) or "(marker element visible)",
        detected_at=detected_at.strftime("%Y-%m-%d %H:%M:%S"),
    )


class NotificationDispatcher:
    """Formats and sends one-shot availability alerts.

    Each call makes exactly one delivery attempt. Failures are returned in
    the NotificationResult rather than raised.
    """

    def __init__(self, config: EmailConfig, target_url: str, sender: Optional[MailSender] = None):
        self.config = config
        self.target_url = target_url
        self.mail_sender = sender or SmtpMailSender(config)

    async def notify(self, matched_text: str = "") -> NotificationResult:
        """Send an availability alert for the target URL."""
        if not self.config.enabled:
            error = SendError("E-mail notifications are not configured")
            logger.warning(f"⚠️ {error}")
            return NotificationResult(error=error)

        body = render_email(self.target_url, matched_text)
        try:
            await self.mail_sender.send(
                self.config.sender,
                self.config.recipient,
                SUBJECT,
                body,
            )
        except SendError as e:
            logger.error(f"❌ Failed to send notification e-mail: {e}")
            return NotificationResult(error=e)
        except Exception as e:
            logger.error(f"❌ Unexpected error sending notification e-mail: {e}", exc_info=True)
            return NotificationResult(error=SendError(str(e)))

        logger.info(f"📧 Notification e-mail sent to {self.config.recipient}")
        return NotificationResult()
