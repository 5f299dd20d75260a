"""
Unit tests for outbound email; SMTP is replaced by a recorder.
"""

import aiosmtplib
import pytest

from codecollab.core.config import settings
from codecollab.services import email_service


@pytest.fixture
def smtp_outbox(monkeypatch) -> list:
    outbox = []

    async def fake_send(message, **kwargs):
        outbox.append((message, kwargs))

    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    return outbox


@pytest.mark.unit
class TestPasswordResetEmail:

    @pytest.mark.asyncio
    async def test_link_carries_token(self, smtp_outbox):
        await email_service.send_password_reset_email("someone@example.com", "tok-123")

        assert len(smtp_outbox) == 1
        message, kwargs = smtp_outbox[0]
        assert message["To"] == "someone@example.com"
        assert settings.APP_NAME in message["Subject"]
        assert f"{settings.FRONTEND_URL}/reset-password?token=tok-123" in message.get_content()
        assert kwargs["hostname"] == settings.EMAIL_HOST
        assert kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_smtp_failure_propagates(self, monkeypatch):
        async def failing_send(message, **kwargs):
            raise aiosmtplib.SMTPException("connection refused")

        monkeypatch.setattr(aiosmtplib, "send", failing_send)

        with pytest.raises(aiosmtplib.SMTPException):
            await email_service.send_email("someone@example.com", "Hi", "<p>hi</p>")
