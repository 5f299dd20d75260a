"""
Email service.

Outbound SMTP through aiosmtplib (STARTTLS on the configured port).
Used by the password-reset flow to deliver the one-time reset link.
"""

import logging
from email.message import EmailMessage

import aiosmtplib

from codecollab.core.config import settings

logger = logging.getLogger(__name__)


async def send_email(to: str, subject: str, html_body: str) -> None:
    """Send an HTML email via the configured SMTP server."""
    message = EmailMessage()
    message["From"] = settings.SENDER_EMAIL
    message["To"] = to
    message["Subject"] = subject
    message.set_content(html_body, subtype="html")

    try:
        await aiosmtplib.send(
            message,
            hostname=settings.EMAIL_HOST,
            port=settings.EMAIL_PORT,
            username=settings.SENDER_EMAIL,
            password=settings.EMAIL_PASSWORD,
            start_tls=True,
        )
        logger.info("Email sent to %s", to)
    except aiosmtplib.SMTPException:
        logger.exception("Failed to send email to %s", to)
        raise


async def send_password_reset_email(to_email: str, reset_token: str) -> None:
    """
    Send the password-reset link.

    The link points to the frontend, which will call
    POST /api/auth/password-reset/confirm with the token.
    """
    reset_link = f"{settings.FRONTEND_URL}/reset-password?token={reset_token}"

    subject = f"Reset your {settings.APP_NAME} password"
    html_body = (
        "<html><body>"
        f"<p>A password reset was requested for your {settings.APP_NAME} account.</p>"
        f'<p><a href="{reset_link}">Choose a new password</a></p>'
        f"<p>The link is valid for {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes and works once. "
        "If you did not request it, ignore this email and your password stays the same.</p>"
        "</body></html>"
    )

    await send_email(to_email, subject, html_body)
