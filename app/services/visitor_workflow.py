"""
Visitor lifecycle state machine - the only write path for a visitor's status.

Legal moves (target ← allowed sources):

    Approved     ← AwaitingApproval
    Rejected     ← AwaitingApproval
    CheckedIn    ← Approved
    CheckedOut   ← CheckedIn
    Rescheduled  ← AwaitingApproval | Approved | Rejected

Approve, reject and reschedule are single-use decisions: asking for one once the
visitor is already settled (Approved, Rejected, Rescheduled or CheckedIn) raises
AlreadyProcessed with that status. Any other move outside the table, such as
CheckedOut → Approved, raises IllegalTransition.

Writes are a compare-and-set on the status read just before, so two callers
racing on the same visitor cannot both win; the loser gets AlreadyProcessed.
Notifications are scheduled after the commit and never undo it.

Who may act is the caller's business (admin API key or a verified email token).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.visitor import Visitor, VisitorStatus
from app.services.exceptions import VisitorNotFound, AlreadyProcessed, IllegalTransition
from app.utils.logger import get_logger

logger = get_logger(__name__)

S = VisitorStatus

TRANSITIONS: dict[VisitorStatus, frozenset] = {
    S.APPROVED: frozenset({S.AWAITING_APPROVAL}),
    S.REJECTED: frozenset({S.AWAITING_APPROVAL}),
    S.CHECKED_IN: frozenset({S.APPROVED}),
    S.CHECKED_OUT: frozenset({S.CHECKED_IN}),
    S.RESCHEDULED: frozenset({S.AWAITING_APPROVAL, S.APPROVED, S.REJECTED}),
}

DECISION_STATUSES = frozenset({S.APPROVED, S.REJECTED, S.RESCHEDULED})

# A decision was already taken for these; CheckedOut is terminal and stays illegal
SETTLED_STATUSES = DECISION_STATUSES | {S.CHECKED_IN}

MAX_OVERRIDE_ATTEMPTS = 3


@dataclass
class TransitionResult:
    visitor: Visitor
    previous_status: VisitorStatus
    status: VisitorStatus


def check_transition(visitor_id, current: VisitorStatus, target: VisitorStatus):
    """Raise unless current → target is in the transition table."""
    if current in TRANSITIONS.get(target, frozenset()):
        return
    if target in DECISION_STATUSES and current in SETTLED_STATUSES:
        raise AlreadyProcessed(visitor_id, current)
    raise IllegalTransition(visitor_id, current, target)


class VisitorWorkflow:
    def __init__(self, db: Session, notifier=None, clock=None):
        self.db = db
        self.notifier = notifier
        self.clock = clock or datetime.utcnow

    def _read_visitor(self, visitor_id) -> Visitor:
        visitor = self.db.query(Visitor).filter(Visitor.id == visitor_id).first()
        if visitor is None:
            raise VisitorNotFound(visitor_id)
        return visitor

    def _current_status(self, visitor_id) -> VisitorStatus:
        self.db.expire_all()
        return self._read_visitor(visitor_id).status

    def _effects(self, target: VisitorStatus, actor: str, reason: Optional[str],
                 scheduled_at: Optional[datetime]) -> dict:
        now = self.clock()
        values = {"status": target, "updated_at": now}
        if target == S.APPROVED:
            values["approved_by"] = actor
            values["approved_at"] = now
        elif target == S.REJECTED:
            values["notes"] = reason
        elif target == S.CHECKED_IN:
            values["check_in_at"] = now
        elif target == S.CHECKED_OUT:
            values["check_out_at"] = now
        elif target == S.RESCHEDULED:
            values["check_in_at"] = None
            values["check_out_at"] = None
            if scheduled_at is not None:
                values["scheduled_at"] = scheduled_at
            if reason:
                values["notes"] = reason
        return values

    def _compare_and_set(self, visitor_id, expected: VisitorStatus, values: dict) -> bool:
        updated = (
            self.db.query(Visitor)
            .filter(Visitor.id == visitor_id, Visitor.status == expected)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1

    def _finish(self, visitor_id, previous: VisitorStatus, target: VisitorStatus,
                actor: str, reason: Optional[str]) -> TransitionResult:
        self.db.expire_all()
        visitor = self._read_visitor(visitor_id)
        logger.info(f"[APPROVAL] Visitor {visitor_id}: {previous.value} → {target.value} by {actor}")

        if self.notifier is not None:
            try:
                self.notifier.schedule_status_notification(visitor_id, target, reason)
            except Exception as e:
                logger.error(f"[APPROVAL] Could not schedule {target.value} notification "
                             f"for visitor {visitor_id}: {e}", exc_info=True)

        return TransitionResult(visitor=visitor, previous_status=previous, status=target)

    async def attempt_transition(self, visitor_id, target: VisitorStatus, actor: str,
                                 reason: Optional[str] = None,
                                 scheduled_at: Optional[datetime] = None) -> TransitionResult:
        """
        Apply a guarded transition.

        Raises VisitorNotFound, AlreadyProcessed (carrying the current status),
        IllegalTransition, or ValueError when rescheduling without a new date.
        """
        target = VisitorStatus(target)
        if target == S.RESCHEDULED and scheduled_at is None:
            raise ValueError("scheduled_at is required to reschedule a visit")

        current = self._read_visitor(visitor_id).status
        check_transition(visitor_id, current, target)

        values = self._effects(target, actor, reason, scheduled_at)
        if not self._compare_and_set(visitor_id, current, values):
            latest = self._current_status(visitor_id)
            logger.info(f"[APPROVAL] Visitor {visitor_id} changed to {latest.value} "
                        f"before {actor} could set {target.value}")
            raise AlreadyProcessed(visitor_id, latest)

        return self._finish(visitor_id, current, target, actor, reason)

    async def override_status(self, visitor_id, target: VisitorStatus, actor: str,
                              reason: Optional[str] = None,
                              scheduled_at: Optional[datetime] = None) -> TransitionResult:
        """
        Administrative override: set any status regardless of the table.
        Still compare-and-set against the status just read, and still notifies.
        """
        target = VisitorStatus(target)
        for _ in range(MAX_OVERRIDE_ATTEMPTS):
            current = self._read_visitor(visitor_id).status
            values = self._effects(target, actor, reason, scheduled_at)
            if self._compare_and_set(visitor_id, current, values):
                if current not in TRANSITIONS.get(target, frozenset()):
                    logger.warning(f"[APPROVAL] Override by {actor}: visitor {visitor_id} "
                                   f"{current.value} → {target.value} outside the normal flow")
                return self._finish(visitor_id, current, target, actor, reason)
            self.db.expire_all()

        raise AlreadyProcessed(visitor_id, self._current_status(visitor_id))
