import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional
from esahayak.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    ok: bool
    rejected: List[str] = field(default_factory=list)
    error: Optional[str] = None


def build_message(to_email: str, subject: str, html: str, text: Optional[str] = None, from_name: Optional[str] = None):
    if text:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
    else:
        msg = MIMEText(html, "html", "utf-8")
    msg["Subject"] = subject
    msg["From"] = formataddr((from_name or settings.mail_from_name, settings.mail_from))
    msg["To"] = to_email
    return msg


def send_email(to_email: str, subject: str, html: str, text: Optional[str] = None, from_name: Optional[str] = None) -> SendResult:
    """
    Send an email via SMTP.

    Never raises: SMTP and connection failures come back as ``ok=False`` with
    the refused recipients in ``rejected`` so callers can decide whether the
    failure matters.
    """
    if not settings.smtp_server:
        logger.warning("SMTP_SERVER not configured; email to %s not sent", to_email)
        return SendResult(ok=False, rejected=[to_email], error="SMTP not configured")

    msg = build_message(to_email, subject, html, text=text, from_name=from_name)
    try:
        # Add timeout to prevent indefinite hangs
        with smtplib.SMTP(settings.smtp_server, settings.smtp_port, timeout=30) as server:
            server.starttls()
            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password)
            refused = server.sendmail(settings.mail_from, [to_email], msg.as_string())
    except smtplib.SMTPRecipientsRefused as e:
        return SendResult(ok=False, rejected=list(e.recipients), error=str(e))
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("SMTP error sending email to %s: %s", to_email, e)
        return SendResult(ok=False, rejected=[to_email], error=str(e))

    rejected = list(refused or {})
    return SendResult(ok=not rejected, rejected=rejected)
