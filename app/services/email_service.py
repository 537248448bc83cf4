"""
Email Service

Sends order verification codes over SMTP.

Delivery is best effort: every function here reports failure through its
return value and never raises, so the caller decides how to degrade.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.core.config import settings


logger = logging.getLogger(__name__)


def get_otp_email_html(otp_code: str, expires_in_minutes: int) -> str:
    """Generate HTML content for the order verification email."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 0; background-color: #f5f5f5; }}
            .container {{ max-width: 600px; margin: 40px auto; background: white; border-radius: 12px; overflow: hidden; }}
            .header {{ background: #0f766e; padding: 32px; text-align: center; }}
            .header h1 {{ color: white; margin: 0; font-size: 26px; }}
            .content {{ padding: 32px; }}
            .otp-code {{ font-size: 34px; font-weight: bold; letter-spacing: 8px; color: #0f766e; font-family: monospace; text-align: center; margin: 24px 0; }}
            p {{ color: #374151; line-height: 1.6; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>{settings.EMAIL_FROM_NAME}</h1>
            </div>
            <div class="content">
                <p>Use the code below to confirm your email and place your order:</p>
                <div class="otp-code">{otp_code}</div>
                <p>This code will expire in <strong>{expires_in_minutes} minutes</strong>.</p>
                <p>If you didn't start an order, you can safely ignore this email.</p>
            </div>
        </div>
    </body>
    </html>
    """


def get_otp_email_text(otp_code: str, expires_in_minutes: int) -> str:
    """Generate plain text content for the order verification email."""
    return f"""
Use the code below to confirm your email and place your order:

Your verification code: {otp_code}

This code will expire in {expires_in_minutes} minutes.

If you didn't start an order, you can safely ignore this email.
    """


def _build_otp_message(to_email: str, otp_code: str, expires_in_minutes: int) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"Your {settings.EMAIL_FROM_NAME} order code - {otp_code}"
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"
    msg["To"] = to_email

    msg.attach(MIMEText(get_otp_email_text(otp_code, expires_in_minutes), "plain"))
    msg.attach(MIMEText(get_otp_email_html(otp_code, expires_in_minutes), "html"))
    return msg


def _deliver(to_email: str, msg: MIMEMultipart) -> None:
    with smtplib.SMTP(
        settings.SMTP_HOST,
        settings.SMTP_PORT,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    ) as server:
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.EMAIL_FROM_ADDRESS, to_email, msg.as_string())


async def send_otp_email(
    to_email: str,
    otp_code: str,
    expires_in_minutes: int,
) -> bool:
    """
    Send an order verification OTP.

    The SMTP exchange runs in a worker thread so the event loop keeps
    serving other requests.

    Args:
        to_email: Recipient email address.
        otp_code: The OTP code to send.
        expires_in_minutes: Shown to the recipient.

    Returns:
        bool: True if the message was handed to the SMTP server.
    """
    if not settings.smtp_configured:
        logger.warning(f"SMTP is not configured; OTP email to {to_email} not sent")
        return False

    try:
        msg = _build_otp_message(to_email, otp_code, expires_in_minutes)
        await asyncio.to_thread(_deliver, to_email, msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send OTP email to {to_email}: {e}")
        return False

    logger.info(f"OTP email sent to {to_email}")
    return True
