"""
Tests for OTP email delivery.
"""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from app.core.config import settings
from app.services import email_service


@pytest.fixture
def smtp_settings(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_USER", "mailer@chemsus.in")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "app-password")


class TestOtpEmailContent:
    def test_templates_contain_code_and_expiry(self):
        html = email_service.get_otp_email_html("482913", 10)
        text = email_service.get_otp_email_text("482913", 10)

        assert "482913" in html
        assert "10 minutes" in html
        assert "482913" in text
        assert "10 minutes" in text

    def test_message_headers(self):
        msg = email_service._build_otp_message("buyer@example.com", "482913", 10)

        assert msg["To"] == "buyer@example.com"
        assert "482913" in msg["Subject"]
        assert settings.EMAIL_FROM_ADDRESS in msg["From"]


class TestSendOtpEmail:
    @pytest.mark.asyncio
    async def test_not_configured_returns_false(self):
        with patch("app.services.email_service.smtplib.SMTP") as mock_smtp:
            assert await email_service.send_otp_email("buyer@example.com", "482913", 10) is False
        mock_smtp.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_through_smtp(self, smtp_settings):
        server = MagicMock()
        with patch("app.services.email_service.smtplib.SMTP") as mock_smtp:
            mock_smtp.return_value.__enter__.return_value = server

            assert await email_service.send_otp_email("buyer@example.com", "482913", 10) is True

        mock_smtp.assert_called_once_with(
            settings.SMTP_HOST,
            settings.SMTP_PORT,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer@chemsus.in", "app-password")
        from_addr, to_addr, body = server.sendmail.call_args.args
        assert to_addr == "buyer@example.com"
        assert "482913" in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            smtplib.SMTPAuthenticationError(535, b"bad credentials"),
            ConnectionRefusedError("refused"),
            TimeoutError("timed out"),
        ],
    )
    async def test_transport_errors_return_false(self, smtp_settings, error):
        with patch("app.services.email_service.smtplib.SMTP", side_effect=error):
            assert await email_service.send_otp_email("buyer@example.com", "482913", 10) is False
