"""
Capability tokens for the unauthenticated approve/reject links in staff emails.

A token is HMAC-SHA256(secret, "<visitor_id>:<YYYY-MM-DD>") in URL-safe base64,
cut to 16 characters. Nothing is stored: verification recomputes the token for
today's UTC date, so a link is valid for the rest of the calendar day it was
issued on and stops working at midnight UTC. The same token is handed to every
recipient notified that day and works for anyone holding the link; it is a
day-scoped capability, not a single-use credential.
"""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Optional

from app.config import settings

TOKEN_LENGTH = 16
MIN_SECRET_LENGTH = 32


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionTokenService:
    def __init__(self, secret: Optional[str], clock: Callable[[], datetime] = _utc_now):
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"EMAIL_ACTION_SECRET must be set to at least {MIN_SECRET_LENGTH} characters"
            )
        self._key = secret.encode("utf-8")
        self._clock = clock

    def _today(self) -> str:
        return self._clock().astimezone(timezone.utc).date().isoformat()

    def _derive(self, visitor_id, day: str) -> str:
        digest = hmac.new(self._key, f"{visitor_id}:{day}".encode("utf-8"), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii")[:TOKEN_LENGTH]

    def issue(self, visitor_id) -> str:
        """Token for visitor_id valid until the end of the current UTC day."""
        return self._derive(visitor_id, self._today())

    def verify(self, visitor_id, token) -> bool:
        """
        Constant-time check of token against today's token for visitor_id.
        Wrong, expired and malformed tokens all take the same path and return False.
        """
        expected = self.issue(visitor_id).encode("ascii")
        if isinstance(token, str):
            presented = token.encode("utf-8", errors="replace")
        else:
            presented = b""
        return hmac.compare_digest(expected, presented)

    def action_links(self, visitor_id, base_url: str) -> dict:
        """Approve and reject-form URLs to embed in a staff notification."""
        token = self.issue(visitor_id)
        base = base_url.rstrip("/")
        return {
            "approve_url": f"{base}/approve/{visitor_id}/{token}",
            "reject_url": f"{base}/reject-form/{visitor_id}/{token}",
        }


@lru_cache(maxsize=1)
def get_action_token_service() -> ActionTokenService:
    """Process-wide token service built from settings. Also used as a FastAPI dependency."""
    return ActionTokenService(settings.EMAIL_ACTION_SECRET)
