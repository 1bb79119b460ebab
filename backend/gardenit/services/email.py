"""Outbound email transport."""
import logging
import smtplib
from collections.abc import Callable
from email.mime.text import MIMEText

from gardenit.config import get_settings
from gardenit.exceptions import MessageDeliveryError

logger = logging.getLogger(__name__)

# deliver(to, subject, body) -> delivered
SendEmail = Callable[[str, str, str], bool]


def format_subject(title: str) -> str:
    """Prefix a subject line with the configured app tag."""
    prefix = get_settings().email_subject_prefix
    return f"{prefix} {title}" if prefix else title


def _deliver(to_email: str, subject: str, body: str) -> None:
    settings = get_settings()
    msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from_email
    msg["To"] = to_email

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise MessageDeliveryError(f"Failed to send email to {to_email}: {exc}") from exc


def send_email(to_email: str, subject: str, body: str) -> bool:
    """Send a plain-text email over SMTP.
    
    Returns False when SMTP is not configured or delivery fails; failures are
    logged and never retried here.
    """
    if not get_settings().smtp_host:
        logger.info("SMTP not configured, skipping email to %s: %s", to_email, subject)
        return False

    try:
        _deliver(to_email, subject, body)
    except MessageDeliveryError as exc:
        logger.warning("%s", exc)
        return False
    return True
