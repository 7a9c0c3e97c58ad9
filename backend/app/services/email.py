"""
Email sending service using SMTP.
"""
import smtplib
from email.mime.application import MIMEApplication
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from pathlib import Path
from typing import Iterable, List, Optional, Union
import logging
from app.core.config import (
    SMTP_HOST,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USE_SSL,
    SMTP_USERNAME,
    SMTP_PASSWORD,
    SMTP_FROM_EMAIL,
    SMTP_FROM_NAME,
)

logger = logging.getLogger(__name__)


def build_from_header(from_name: Optional[str], from_email: Optional[str]) -> Optional[str]:
    """Return "Name <address>" when both are set, otherwise just the address."""
    if from_name and from_email:
        return f"{from_name} <{from_email}>"
    return from_email or None


def parse_recipients(value: Union[str, Iterable[str], None]) -> List[str]:
    """Normalize a comma-separated string or a list into a list of addresses."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [address.strip() for address in value if address and address.strip()]


def send_email(
    to_emails: List[str],
    subject: str,
    text_body: str,
    from_header: Optional[str] = None,
    attachments: Optional[List[Path]] = None
) -> bool:
    """
    Send a plain-text email with optional file attachments via SMTP.

    Args:
        to_emails: Recipient email addresses
        subject: Email subject
        text_body: Plain text email body
        from_header: "From" header (defaults to SMTP_FROM_NAME <SMTP_FROM_EMAIL>)
        attachments: Files to attach

    Returns:
        True if email sent successfully, False otherwise
    """
    if not SMTP_HOST:
        logger.error("SMTP configuration is missing. Cannot send email.")
        return False

    if not to_emails:
        logger.warning(f"No recipients for email '{subject}', nothing sent")
        return False

    try:
        msg = MIMEMultipart()
        msg['Subject'] = subject
        msg['From'] = from_header or build_from_header(SMTP_FROM_NAME, SMTP_FROM_EMAIL) or SMTP_USERNAME
        msg['To'] = ", ".join(to_emails)
        msg.attach(MIMEText(text_body or "", 'plain', 'utf-8'))

        for attachment in attachments or []:
            path = Path(attachment)
            part = MIMEApplication(path.read_bytes(), Name=path.name)
            part['Content-Disposition'] = f'attachment; filename="{path.name}"'
            msg.attach(part)

        if SMTP_USE_SSL:
            server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=10)
        else:
            server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10)
            if SMTP_USE_TLS:
                server.starttls()
        try:
            if SMTP_USERNAME and SMTP_PASSWORD:
                server.login(SMTP_USERNAME, SMTP_PASSWORD)
            server.send_message(msg)
        finally:
            server.quit()

        logger.info(f"Email '{subject}' sent to {len(to_emails)} recipient(s)")
        return True

    except Exception as e:
        logger.error(f"Failed to send email '{subject}' to {to_emails}: {str(e)}", exc_info=True)
        return False
