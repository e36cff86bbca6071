"""Tests for the notifications module."""
import smtplib
from datetime import datetime

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from tixcraft_watch.exceptions import SendError
from tixcraft_watch.models import EmailConfig
from tixcraft_watch.notifications import (
    SUBJECT, NotificationDispatcher, SmtpMailSender, render_email
)

TARGET_URL = "https://tixcraft.com/ticket/area/24_test/12345"


@pytest.fixture
def email_config():
    """Create a complete EmailConfig for testing."""
    return EmailConfig(
        recipient="fan@example.com",
        sender="watcher@example.com",
        app_password="app-password",
        smtp_host="smtp.example.com",
        smtp_port=587,
    )


class TestRenderEmail:
    """Tests for the HTML alert template."""

    def test_contains_url_and_match(self):
        body = render_email(TARGET_URL, "剩餘 5 張", datetime(2024, 3, 1, 12, 30, 0))

        assert f'href="{TARGET_URL}"' in body
        assert "剩餘 5 張" in body
        assert "2024-03-01 12:30:00" in body

    def test_escapes_html(self):
        body = render_email(TARGET_URL, "<b>熱賣中</b>")

        assert "&lt;b&gt;熱賣中&lt;/b&gt;" in body
        assert "<b>熱賣中</b>" not in body

    def test_empty_match_for_simple_marker(self):
        body = render_email(TARGET_URL, "")

        assert "(marker element visible)" in body


class TestNotificationDispatcher:
    """Tests for the NotificationDispatcher class."""

    @pytest.mark.asyncio
    async def test_notify_success(self, email_config):
        """Test a successful send through the mail collaborator."""
        sender = MagicMock()
        sender.send = AsyncMock()
        dispatcher = NotificationDispatcher(email_config, TARGET_URL, sender=sender)

        result = await dispatcher.notify("剩餘 5 張")

        assert result.ok is True
        sender.send.assert_awaited_once()
        args, _ = sender.send.await_args
        assert args[0] == "watcher@example.com"
        assert args[1] == "fan@example.com"
        assert args[2] == SUBJECT
        assert TARGET_URL in args[3]
        assert "剩餘 5 張" in args[3]

    @pytest.mark.asyncio
    async def test_notify_failure_is_returned_not_raised(self, email_config):
        sender = MagicMock()
        sender.send = AsyncMock(side_effect=SendError("connection refused"))
        dispatcher = NotificationDispatcher(email_config, TARGET_URL, sender=sender)

        result = await dispatcher.notify("熱賣中")

        assert result.ok is False
        assert isinstance(result.error, SendError)
        sender.send.assert_awaited_once()  # no retry

    @pytest.mark.asyncio
    async def test_notify_unexpected_error_is_wrapped(self, email_config):
        sender = MagicMock()
        sender.send = AsyncMock(side_effect=ValueError("bad header"))
        dispatcher = NotificationDispatcher(email_config, TARGET_URL, sender=sender)

        with patch("tixcraft_watch.notifications.logger") as mock_logger:
            result = await dispatcher.notify()

        assert result.ok is False
        assert isinstance(result.error, SendError)
        mock_logger.error.assert_called()

    @pytest.mark.asyncio
    async def test_notify_without_email_settings(self):
        sender = MagicMock()
        sender.send = AsyncMock()
        dispatcher = NotificationDispatcher(EmailConfig(), TARGET_URL, sender=sender)

        result = await dispatcher.notify("剩餘 1 張")

        assert result.ok is False
        sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notify_unreachable_smtp_endpoint(self, email_config):
        """Test an unreachable SMTP server gives a send error without raising."""
        dispatcher = NotificationDispatcher(email_config, TARGET_URL)

        with patch(
            "tixcraft_watch.notifications.smtplib.SMTP",
            side_effect=ConnectionRefusedError(111, "Connection refused")
        ):
            result = await dispatcher.notify("剩餘 5 張")

        assert result.ok is False
        assert isinstance(result.error, SendError)
        assert "smtp.example.com:587" in str(result.error)


class TestSmtpMailSender:
    """Tests for the SmtpMailSender class."""

    @pytest.mark.asyncio
    async def test_send_uses_starttls_and_login(self, email_config):
        with patch("tixcraft_watch.notifications.smtplib.SMTP") as mock_smtp:
            server = mock_smtp.return_value.__enter__.return_value

            await SmtpMailSender(email_config).send(
                "watcher@example.com", "fan@example.com", SUBJECT, "<p>hi</p>"
            )

        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("watcher@example.com", "app-password")
        server.send_message.assert_called_once()
        message = server.send_message.call_args[0][0]
        assert message["To"] == "fan@example.com"
        assert message["From"] == "watcher@example.com"

    @pytest.mark.asyncio
    async def test_send_auth_failure_raises_send_error(self, email_config):
        with patch("tixcraft_watch.notifications.smtplib.SMTP") as mock_smtp:
            server = mock_smtp.return_value.__enter__.return_value
            server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

            with pytest.raises(SendError):
                await SmtpMailSender(email_config).send(
                    "watcher@example.com", "fan@example.com", SUBJECT, "<p>hi</p>"
                )
