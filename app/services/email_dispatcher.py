"""
Outgoing email for visitor notifications.

notify() is the only entry point the rest of the app uses. It renders a short
plain-text message for the template kind and hands it to the SMTP relay on a
worker thread, bounded by SMTP_TIMEOUT_SECONDS per recipient. It returns
True/False and never raises: a slow or broken relay must not hold up a status
change or a registration.
"""

import asyncio
import enum
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from app.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)


class TemplateKind(str, enum.Enum):
    STAFF_NEW_VISITOR = "staff_new_visitor"
    VISITOR_REGISTERED = "visitor_registered"
    VISITOR_APPROVED = "visitor_approved"
    VISITOR_REJECTED = "visitor_rejected"
    VISITOR_CHECKED_IN = "visitor_checked_in"
    VISITOR_CHECKED_OUT = "visitor_checked_out"


DEFAULT_REJECTION_REASON = "Your visit request has been reviewed and cannot be approved at this time."

_TEMPLATES = {
    TemplateKind.STAFF_NEW_VISITOR: (
        "New visitor awaiting approval: {full_name}",
        "{full_name} ({company_name}) has registered to meet {meet_with} on {scheduled_at}.\n"
        "Purpose: {purpose_of_visit}\n\n"
        "Approve: {approve_url}\n"
        "Reject:  {reject_url}\n\n"
        "These links work for today only.",
    ),
    TemplateKind.VISITOR_REGISTERED: (
        "Visit request received",
        "Hello {full_name},\n\nYour request to meet {meet_with} on {scheduled_at} has been received "
        "and is awaiting approval. You will get another email once it has been reviewed.",
    ),
    TemplateKind.VISITOR_APPROVED: (
        "Your visit has been approved",
        "Hello {full_name},\n\nYour visit on {scheduled_at} has been approved. "
        "Please check in at reception when you arrive.",
    ),
    TemplateKind.VISITOR_REJECTED: (
        "Your visit request was not approved",
        "Hello {full_name},\n\n{reason}",
    ),
    TemplateKind.VISITOR_CHECKED_IN: (
        "You are checked in",
        "Hello {full_name},\n\nYou were checked in at {check_in_at}. Welcome!",
    ),
    TemplateKind.VISITOR_CHECKED_OUT: (
        "You are checked out",
        "Hello {full_name},\n\nYou were checked out at {check_out_at}. Thank you for visiting.",
    ),
}


class _Blank(dict):
    def __missing__(self, key):
        return ""


def render(kind: TemplateKind, visitor_id, details: Optional[dict] = None) -> tuple[str, str]:
    """Return (subject, body) for kind. Missing details render as empty strings."""
    values = _Blank(visitor_id=visitor_id)
    values.update({k: v for k, v in (details or {}).items() if v is not None})
    if kind == TemplateKind.VISITOR_REJECTED and not values.get("reason"):
        values["reason"] = DEFAULT_REJECTION_REASON
    subject, body = _TEMPLATES[kind]
    return subject.format_map(values), body.format_map(values)


class EmailDispatcher:
    def __init__(self, host: Optional[str] = None, port: int = 587, use_tls: bool = True,
                 username: Optional[str] = None, password: Optional[str] = None,
                 from_email: str = "visitors@localhost", from_name: str = "",
                 timeout: float = 10.0):
        self.host = host
        self.port = port
        self.use_tls = use_tls
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "EmailDispatcher":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            use_tls=settings.SMTP_USE_TLS,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM_EMAIL,
            from_name=settings.SMTP_FROM_NAME,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )

    def build_message(self, recipient_email: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = recipient_email
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    def _send(self, msg: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(msg)

    async def notify(self, recipient_email: str, visitor_id, kind: TemplateKind,
                     details: Optional[dict] = None) -> bool:
        """Send one notification. True only if the relay accepted the message."""
        if not recipient_email:
            logger.warning(f"[EMAIL] No recipient for {kind.value} (visitor {visitor_id}) - skipped")
            return False
        if not self.host:
            logger.warning(f"[EMAIL] SMTP_HOST not configured - {kind.value} to {recipient_email} not sent")
            return False

        try:
            subject, body = render(kind, visitor_id, details)
            msg = self.build_message(recipient_email, subject, body)
            await asyncio.wait_for(asyncio.to_thread(self._send, msg), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"[EMAIL] Timed out after {self.timeout}s sending {kind.value} to {recipient_email}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL] SMTP error sending {kind.value} to {recipient_email}: {e}")
            return False
        except Exception as e:
            logger.error(f"[EMAIL] Failed to send {kind.value} to {recipient_email}: {e}", exc_info=True)
            return False

        logger.info(f"[EMAIL] Sent {kind.value} to {recipient_email} (visitor {visitor_id})")
        return True

    def check_connection(self) -> str:
        """Synchronous relay probe for the health endpoint."""
        if not self.host:
            return "disabled"
        try:
            with smtplib.SMTP(self.host, self.port, timeout=3) as smtp:
                code, _ = smtp.noop()
            return "ok" if code == 250 else f"smtp_{code}"
        except (smtplib.SMTPException, OSError):
            return "unreachable"
