"""Tests for verification email delivery."""

import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from src.config import Settings
from src.models.enums import OtpPurpose
from src.services.email import EmailService
from src.services.errors import EmailDeliveryError
from src.tasks.email import send_otp_email


@pytest.fixture
def smtp_settings():
    return Settings(
        environment="development",
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer@example.com",
        smtp_password="secret",
    )


class TestBuildMessage:
    """Tests for the email content."""

    def test_signup_message(self, smtp_settings):
        message = EmailService(smtp_settings).build_message(
            "a@x.com", "A1B2C3", OtpPurpose.ENROLLMENT
        )

        assert message["Subject"] == "Complete your registration"
        assert message["To"] == "a@x.com"
        assert "mailer@example.com" in message["From"]
        assert "Story" in message["From"]

        text = message.get_body(preferencelist=("plain",)).get_content()
        html = message.get_body(preferencelist=("html",)).get_content()
        assert "A1B2C3" in text
        assert "10 minutes" in text
        assert "A1B2C3" in html

    def test_login_subject(self, smtp_settings):
        message = EmailService(smtp_settings).build_message(
            "a@x.com", "A1B2C3", OtpPurpose.REAUTHENTICATION
        )
        assert message["Subject"] == "Login verification code"


class TestSendOtp:
    """Tests for SMTP and sandbox delivery."""

    def test_sends_over_starttls(self, smtp_settings):
        with patch("src.services.email.smtplib.SMTP") as mock_smtp:
            smtp = mock_smtp.return_value.__enter__.return_value

            EmailService(smtp_settings).send_otp("a@x.com", "A1B2C3", OtpPurpose.ENROLLMENT)

            mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=15.0)
            smtp.starttls.assert_called_once()
            smtp.login.assert_called_once_with("mailer@example.com", "secret")
            smtp.send_message.assert_called_once()

    def test_port_465_uses_implicit_tls(self, smtp_settings):
        smtp_settings.smtp_port = 465
        with patch("src.services.email.smtplib.SMTP_SSL") as mock_smtp_ssl:
            smtp = mock_smtp_ssl.return_value.__enter__.return_value

            EmailService(smtp_settings).send_otp("a@x.com", "A1B2C3", OtpPurpose.ENROLLMENT)

            mock_smtp_ssl.assert_called_once_with("smtp.example.com", 465, timeout=15.0)
            smtp.starttls.assert_not_called()
            smtp.send_message.assert_called_once()

    def test_smtp_error_raises_delivery_error(self, smtp_settings):
        with patch("src.services.email.smtplib.SMTP") as mock_smtp:
            smtp = mock_smtp.return_value.__enter__.return_value
            smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

            with pytest.raises(EmailDeliveryError):
                EmailService(smtp_settings).send_otp("a@x.com", "A1B2C3", OtpPurpose.ENROLLMENT)

    def test_connection_error_raises_delivery_error(self, smtp_settings):
        with patch("src.services.email.smtplib.SMTP", side_effect=ConnectionRefusedError()):
            with pytest.raises(EmailDeliveryError):
                EmailService(smtp_settings).send_otp("a@x.com", "A1B2C3", OtpPurpose.ENROLLMENT)

    def test_unconfigured_smtp_logs_code(self, caplog):
        settings = Settings(environment="development")

        with patch("src.services.email.smtplib.SMTP") as mock_smtp:
            with caplog.at_level(logging.WARNING, logger="src.services.email"):
                EmailService(settings).send_otp("a@x.com", "A1B2C3", OtpPurpose.ENROLLMENT)

        mock_smtp.assert_not_called()
        assert "A1B2C3" in caplog.text
        assert "a@x.com" in caplog.text


class TestSendOtpEmailTask:
    """Tests for the queued delivery task."""

    def test_sends_email(self):
        with patch("src.tasks.email.EmailService") as mock_service_cls:
            result = send_otp_email.run("a@x.com", "A1B2C3", "enrollment")

        assert result == {"status": "sent"}
        mock_service_cls.return_value.send_otp.assert_called_once_with(
            "a@x.com", "A1B2C3", OtpPurpose.ENROLLMENT
        )

    def test_retries_on_failure(self):
        with (
            patch("src.tasks.email.EmailService") as mock_service_cls,
            patch.object(send_otp_email, "retry", return_value=RuntimeError("retrying")) as mock_retry,
        ):
            mock_service_cls.return_value.send_otp.side_effect = EmailDeliveryError("down")

            with pytest.raises(RuntimeError, match="retrying"):
                send_otp_email.run("a@x.com", "A1B2C3", "reauthentication")

        mock_retry.assert_called_once()

    def test_gives_up_after_max_retries(self):
        send_otp_email.push_request(retries=send_otp_email.max_retries)
        try:
            with patch("src.tasks.email.EmailService") as mock_service_cls:
                mock_service_cls.return_value.send_otp.side_effect = EmailDeliveryError("down")
                result = send_otp_email.run("a@x.com", "A1B2C3", "enrollment")
        finally:
            send_otp_email.pop_request()

        assert result["status"] == "failed"


class TestSettings:
    """Tests for production configuration checks."""

    def test_production_requires_smtp(self):
        with pytest.raises(ValueError, match="SMTP"):
            Settings(environment="production", database_url="postgresql://db:5432/story")

    def test_production_with_smtp(self):
        settings = Settings(
            environment="production",
            database_url="postgresql://db:5432/story",
            smtp_host="smtp.example.com",
            smtp_user="mailer@example.com",
            smtp_password="secret",
        )
        assert settings.session_cookie_secure is True

    def test_production_refuses_error_detail(self):
        with pytest.raises(ValueError, match="EXPOSE_ERROR_DETAIL"):
            Settings(
                environment="production",
                database_url="postgresql://db:5432/story",
                smtp_host="smtp.example.com",
                smtp_user="mailer@example.com",
                smtp_password="secret",
                expose_error_detail=True,
            )

    def test_development_cookie_not_secure(self):
        assert Settings(environment="development").session_cookie_secure is False
