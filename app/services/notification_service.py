"""
Fire-and-forget notification runner.

The state machine and registration call the schedule_* methods after their
commit. Each job runs as its own asyncio task with its own DB session, records
every delivery attempt in notification_log and logs failures. Nothing here
raises into the request that scheduled it.
"""

import asyncio
from datetime import datetime
from functools import lru_cache
from typing import Optional

from app.config import settings
from app.database import SessionLocal
from app.models.notification_log import NotificationLog
from app.models.visitor import Visitor, VisitorStatus
from app.services.action_tokens import get_action_token_service
from app.services.email_dispatcher import EmailDispatcher, TemplateKind
from app.services.notification_resolver import NotificationResolver, DeliveryAttempt
from app.services.staff_directory import SqlStaffDirectory
from app.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_TEMPLATES = {
    VisitorStatus.APPROVED: TemplateKind.VISITOR_APPROVED,
    VisitorStatus.REJECTED: TemplateKind.VISITOR_REJECTED,
    VisitorStatus.CHECKED_IN: TemplateKind.VISITOR_CHECKED_IN,
    VisitorStatus.CHECKED_OUT: TemplateKind.VISITOR_CHECKED_OUT,
}


def visitor_details(visitor: Visitor) -> dict:
    """Template values for a visitor. Timestamps are formatted like the registration form."""
    def fmt(dt):
        return dt.strftime("%Y-%m-%d %H:%M") if dt else None

    return {
        "full_name": visitor.full_name,
        "company_name": visitor.company_name or "N/A",
        "purpose_of_visit": visitor.purpose_of_visit,
        "meet_with": visitor.meet_with,
        "scheduled_at": fmt(visitor.scheduled_at),
        "check_in_at": fmt(visitor.check_in_at),
        "check_out_at": fmt(visitor.check_out_at),
    }


class VisitorNotifier:
    def __init__(self, dispatcher, token_service=None, session_factory=SessionLocal,
                 action_base_url: Optional[str] = None):
        self.dispatcher = dispatcher
        self.token_service = token_service
        self.session_factory = session_factory
        self.action_base_url = action_base_url or settings.EMAIL_ACTIONS_URL
        self._pending: set[asyncio.Task] = set()

    # ── Scheduling ───────────────────────────────────────────────────────
    def _spawn(self, coro, name: str):
        task = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def schedule_registration(self, visitor_id):
        return self._spawn(self.notify_registration(visitor_id), f"notify-registration-{visitor_id}")

    def schedule_status_notification(self, visitor_id, status: VisitorStatus, reason: Optional[str] = None):
        if status not in STATUS_TEMPLATES:
            return None
        return self._spawn(self.notify_status_change(visitor_id, status, reason),
                           f"notify-{status.value}-{visitor_id}")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self):
        """Wait for every scheduled job. Used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── Jobs ─────────────────────────────────────────────────────────────
    def _record(self, db, visitor_id, kind: TemplateKind, attempts: list[DeliveryAttempt]):
        now = datetime.utcnow()
        for a in attempts:
            db.add(NotificationLog(visitor_id=visitor_id, recipient=a.recipient,
                                   template_kind=kind.value, tier=a.tier,
                                   delivered=1 if a.delivered else 0, created_at=now))
        db.commit()

    async def notify_registration(self, visitor_id):
        """Confirmation to the visitor, then the staff cascade with approve/reject links."""
        db = self.session_factory()
        try:
            visitor = db.query(Visitor).filter(Visitor.id == visitor_id).first()
            if not visitor:
                logger.warning(f"[NOTIFY] Visitor {visitor_id} vanished before registration emails")
                return None

            details = visitor_details(visitor)
            if visitor.email:
                ok = await self.dispatcher.notify(visitor.email, visitor_id,
                                                  TemplateKind.VISITOR_REGISTERED, details)
                self._record(db, visitor_id, TemplateKind.VISITOR_REGISTERED,
                             [DeliveryAttempt(tier=None, recipient=visitor.email, delivered=ok)])

            if self.token_service is not None:
                details.update(self.token_service.action_links(visitor_id, self.action_base_url))
            resolver = NotificationResolver(SqlStaffDirectory(db), self.dispatcher)
            result = await resolver.resolve(visitor_id, visitor.meet_with, visitor.location_id, details)
            self._record(db, visitor_id, TemplateKind.STAFF_NEW_VISITOR, result.attempts)
            return result
        except Exception as e:
            logger.error(f"[NOTIFY] Registration notifications failed for visitor {visitor_id}: {e}",
                         exc_info=True)
            return None
        finally:
            db.close()

    async def notify_status_change(self, visitor_id, status: VisitorStatus, reason: Optional[str] = None):
        kind = STATUS_TEMPLATES.get(status)
        if kind is None:
            return None
        db = self.session_factory()
        try:
            visitor = db.query(Visitor).filter(Visitor.id == visitor_id).first()
            if not visitor or not visitor.email:
                logger.info(f"[NOTIFY] No visitor email for {kind.value} (visitor {visitor_id}) - skipped")
                return False
            details = visitor_details(visitor)
            details["reason"] = reason
            ok = await self.dispatcher.notify(visitor.email, visitor_id, kind, details)
            self._record(db, visitor_id, kind,
                         [DeliveryAttempt(tier=None, recipient=visitor.email, delivered=ok)])
            return ok
        except Exception as e:
            logger.error(f"[NOTIFY] {kind.value} failed for visitor {visitor_id}: {e}", exc_info=True)
            return False
        finally:
            db.close()


@lru_cache(maxsize=1)
def get_visitor_notifier() -> VisitorNotifier:
    """Process-wide notifier. Also used as a FastAPI dependency."""
    try:
        token_service = get_action_token_service()
    except ValueError as e:
        logger.error(f"[NOTIFY] {e} - staff emails will go out without approve/reject links")
        token_service = None
    return VisitorNotifier(EmailDispatcher.from_settings(), token_service=token_service)
