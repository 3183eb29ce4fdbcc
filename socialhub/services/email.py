# socialhub/services/email.py
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from socialhub.config import settings
from socialhub.errors import SocialHubError

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Reset your SocialHub password"

RESET_TEMPLATE = """Hello {name},

We received a request to reset the password of your SocialHub account.
Open the link below to choose a new password. The link is valid for one hour.

{link}

If you did not ask for this, you can ignore this email.
"""


class EmailSendError(SocialHubError):
    status_code = 500


def send_email(to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
    """
    Send a plain-text email (with optional HTML alternative) over SMTP.
    Without SMTP_HOST the message is logged instead and False is returned.
    """
    if not settings.smtp_host:
        logger.info("[email] SMTP not configured; would send to=%s subject=%r\n%s", to, subject, text)
        return False

    msg = EmailMessage()
    msg["From"] = settings.smtp_from
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=20) as server:
            server.ehlo()
            if settings.smtp_starttls:
                server.starttls()
                server.ehlo()
            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("[email] send to %s failed: %s", to, e)
        raise EmailSendError("Could not send email") from e

    logger.info("[email] sent %r to %s", subject, to)
    return True


def reset_password_link(token: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/reset-password?token={token}"


def send_password_reset_email(to: str, name: str, token: str) -> bool:
    text = RESET_TEMPLATE.format(name=name or "there", link=reset_password_link(token))
    return send_email(to, RESET_SUBJECT, text)
