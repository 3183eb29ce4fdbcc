from unittest.mock import MagicMock, patch

import pytest

from socialhub.services import email


def test_without_smtp_the_message_is_logged(caplog):
    with caplog.at_level("INFO", logger="socialhub.services.email"):
        assert email.send_password_reset_email("a@example.com", "Ada", "tok123") is False
    assert "http://frontend.test/reset-password?token=tok123" in caplog.text


@patch("socialhub.services.email.smtplib.SMTP")
def test_sends_over_smtp(mock_smtp, monkeypatch):
    monkeypatch.setattr(email.settings, "smtp_host", "smtp.example.com")
    monkeypatch.setattr(email.settings, "smtp_user", "mailer")
    monkeypatch.setattr(email.settings, "smtp_password", "pw")
    server = MagicMock()
    mock_smtp.return_value.__enter__.return_value = server

    assert email.send_password_reset_email("a@example.com", "Ada", "tok123") is True

    server.starttls.assert_called_once()
    server.login.assert_called_once_with("mailer", "pw")
    msg = server.send_message.call_args[0][0]
    assert msg["To"] == "a@example.com"
    assert "reset-password?token=tok123" in msg.get_content()


@patch("socialhub.services.email.smtplib.SMTP")
def test_smtp_failure_raises(mock_smtp, monkeypatch):
    monkeypatch.setattr(email.settings, "smtp_host", "smtp.example.com")
    mock_smtp.side_effect = OSError("connection refused")
    with pytest.raises(email.EmailSendError):
        email.send_email("a@example.com", "s", "t")
