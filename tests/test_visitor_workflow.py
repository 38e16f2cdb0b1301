"""Tests for the visitor lifecycle state machine against an in-memory SQLite store."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock, patch
from datetime import datetime
from app.models.visitor import Visitor, VisitorStatus as S
from app.services.exceptions import VisitorNotFound, AlreadyProcessed, IllegalTransition
from app.services.visitor_workflow import VisitorWorkflow, TRANSITIONS, check_transition

NOW = datetime(2024, 1, 1, 12, 0)


def status_of(db, visitor_id):
    db.expire_all()
    return db.query(Visitor).filter(Visitor.id == visitor_id).first().status


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def workflow(db, notifier):
    return VisitorWorkflow(db, notifier=notifier, clock=lambda: NOW)


class TestTransitionTable:
    @pytest.mark.parametrize("current,target", [
        (S.AWAITING_APPROVAL, S.APPROVED),
        (S.AWAITING_APPROVAL, S.REJECTED),
        (S.APPROVED, S.CHECKED_IN),
        (S.CHECKED_IN, S.CHECKED_OUT),
        (S.AWAITING_APPROVAL, S.RESCHEDULED),
        (S.APPROVED, S.RESCHEDULED),
        (S.REJECTED, S.RESCHEDULED),
    ])
    def test_legal(self, current, target):
        check_transition(1, current, target)

    @pytest.mark.parametrize("current,target", [
        (S.APPROVED, S.APPROVED), (S.APPROVED, S.REJECTED),
        (S.REJECTED, S.APPROVED), (S.REJECTED, S.REJECTED),
        (S.RESCHEDULED, S.APPROVED), (S.RESCHEDULED, S.REJECTED),
        (S.RESCHEDULED, S.RESCHEDULED),
        (S.CHECKED_IN, S.APPROVED), (S.CHECKED_IN, S.REJECTED),
        (S.CHECKED_IN, S.RESCHEDULED),
    ])
    def test_settled_decision_is_already_processed(self, current, target):
        with pytest.raises(AlreadyProcessed) as exc:
            check_transition(1, current, target)
        assert exc.value.current_status == current

    @pytest.mark.parametrize("current,target", [
        (S.CHECKED_OUT, S.APPROVED),
        (S.AWAITING_APPROVAL, S.CHECKED_IN),
        (S.REJECTED, S.CHECKED_IN),
        (S.APPROVED, S.CHECKED_OUT),
        (S.CHECKED_OUT, S.CHECKED_OUT),
        (S.CHECKED_OUT, S.REJECTED),
        (S.CHECKED_OUT, S.RESCHEDULED),
        (S.CHECKED_IN, S.AWAITING_APPROVAL),
    ])
    def test_illegal(self, current, target):
        with pytest.raises(IllegalTransition):
            check_transition(1, current, target)

    def test_awaiting_approval_is_never_a_target(self):
        assert S.AWAITING_APPROVAL not in TRANSITIONS


class TestAttemptTransition:
    @pytest.mark.asyncio
    async def test_approve_then_reject_is_already_processed(self, workflow, make_visitor, db, notifier):
        visitor = make_visitor()
        result = await workflow.attempt_transition(visitor.id, S.APPROVED, actor="email")

        assert result.previous_status == S.AWAITING_APPROVAL
        assert result.visitor.status == S.APPROVED
        assert result.visitor.approved_at == NOW
        assert result.visitor.approved_by == "email"

        with pytest.raises(AlreadyProcessed) as exc:
            await workflow.attempt_transition(visitor.id, S.REJECTED, actor="admin")
        assert exc.value.current_status == S.APPROVED

        db.expire_all()
        assert db.query(Visitor).filter(Visitor.id == visitor.id).first().status == S.APPROVED
        notifier.schedule_status_notification.assert_called_once_with(visitor.id, S.APPROVED, None)

    @pytest.mark.asyncio
    async def test_double_approve_changes_state_once(self, workflow, make_visitor, notifier):
        visitor = make_visitor()
        await workflow.attempt_transition(visitor.id, S.APPROVED, actor="a")
        with pytest.raises(AlreadyProcessed):
            await workflow.attempt_transition(visitor.id, S.APPROVED, actor="b")
        assert notifier.schedule_status_notification.call_count == 1

    @pytest.mark.asyncio
    async def test_reject_stores_reason(self, workflow, make_visitor, notifier):
        visitor = make_visitor()
        result = await workflow.attempt_transition(visitor.id, S.REJECTED, actor="admin",
                                                   reason="No meeting booked")
        assert result.visitor.status == S.REJECTED
        assert result.visitor.notes == "No meeting booked"
        assert result.visitor.approved_at is None
        notifier.schedule_status_notification.assert_called_once_with(
            visitor.id, S.REJECTED, "No meeting booked")

    @pytest.mark.asyncio
    async def test_full_visit(self, workflow, make_visitor):
        visitor = make_visitor()
        await workflow.attempt_transition(visitor.id, S.APPROVED, actor="admin")
        checked_in = await workflow.attempt_transition(visitor.id, S.CHECKED_IN, actor="reception")
        assert checked_in.visitor.check_in_at == NOW
        checked_out = await workflow.attempt_transition(visitor.id, S.CHECKED_OUT, actor="reception")
        assert checked_out.visitor.status == S.CHECKED_OUT
        assert checked_out.visitor.check_out_at == NOW
        assert checked_out.visitor.updated_at == NOW

    @pytest.mark.asyncio
    async def test_reschedule_clears_visit_times(self, workflow, make_visitor):
        visitor = make_visitor(status=S.APPROVED, check_in_at=datetime(2024, 1, 1, 9, 0))
        new_time = datetime(2024, 2, 1, 14, 30)
        result = await workflow.attempt_transition(visitor.id, S.RESCHEDULED, actor="admin",
                                                   scheduled_at=new_time, reason="Host is away")
        assert result.visitor.status == S.RESCHEDULED
        assert result.visitor.scheduled_at == new_time
        assert result.visitor.check_in_at is None
        assert result.visitor.check_out_at is None
        assert result.visitor.notes == "Host is away"

    @pytest.mark.asyncio
    async def test_reschedule_requires_date(self, workflow, make_visitor):
        visitor = make_visitor()
        with pytest.raises(ValueError):
            await workflow.attempt_transition(visitor.id, S.RESCHEDULED, actor="admin")

    @pytest.mark.asyncio
    async def test_double_reschedule_is_already_processed(self, workflow, make_visitor, db):
        visitor = make_visitor()
        first = datetime(2024, 2, 1, 9, 0)
        await workflow.attempt_transition(visitor.id, S.RESCHEDULED, actor="admin", scheduled_at=first)

        with pytest.raises(AlreadyProcessed) as exc:
            await workflow.attempt_transition(visitor.id, S.RESCHEDULED, actor="admin",
                                              scheduled_at=datetime(2024, 3, 1, 9, 0))
        assert exc.value.current_status == S.RESCHEDULED
        db.expire_all()
        assert db.query(Visitor).filter(Visitor.id == visitor.id).first().scheduled_at == first

    @pytest.mark.asyncio
    async def test_reject_after_reschedule_is_already_processed(self, workflow, make_visitor, db, notifier):
        visitor = make_visitor()
        await workflow.attempt_transition(visitor.id, S.RESCHEDULED, actor="admin",
                                          scheduled_at=datetime(2024, 2, 1, 9, 0))
        with pytest.raises(AlreadyProcessed) as exc:
            await workflow.attempt_transition(visitor.id, S.REJECTED, actor="email")
        assert exc.value.current_status == S.RESCHEDULED
        assert status_of(db, visitor.id) == S.RESCHEDULED
        notifier.schedule_status_notification.assert_called_once_with(visitor.id, S.RESCHEDULED, None)

    @pytest.mark.asyncio
    async def test_late_approve_on_checked_in_visitor(self, workflow, make_visitor, db):
        visitor = make_visitor(status=S.CHECKED_IN)
        with pytest.raises(AlreadyProcessed) as exc:
            await workflow.attempt_transition(visitor.id, S.APPROVED, actor="email")
        assert exc.value.current_status == S.CHECKED_IN
        assert status_of(db, visitor.id) == S.CHECKED_IN

    @pytest.mark.asyncio
    async def test_reject_without_reason_clears_registration_notes(self, workflow, make_visitor):
        visitor = make_visitor(notes="Bringing a laptop")
        result = await workflow.attempt_transition(visitor.id, S.REJECTED, actor="admin")
        assert result.visitor.notes is None

    @pytest.mark.asyncio
    async def test_unknown_visitor(self, workflow):
        with pytest.raises(VisitorNotFound):
            await workflow.attempt_transition(999, S.APPROVED, actor="admin")

    @pytest.mark.asyncio
    async def test_illegal_transition_leaves_record_alone(self, workflow, make_visitor, db, notifier):
        visitor = make_visitor(status=S.CHECKED_OUT)
        with pytest.raises(IllegalTransition):
            await workflow.attempt_transition(visitor.id, S.APPROVED, actor="admin")
        db.expire_all()
        assert db.query(Visitor).filter(Visitor.id == visitor.id).first().status == S.CHECKED_OUT
        notifier.schedule_status_notification.assert_not_called()

    @pytest.mark.asyncio
    async def test_accepts_plain_string_target(self, workflow, make_visitor):
        visitor = make_visitor()
        result = await workflow.attempt_transition(visitor.id, "Approved", actor="admin")
        assert result.status == S.APPROVED


class TestCompareAndSet:
    @pytest.mark.asyncio
    async def test_lost_race_reports_winner_status(self, workflow, make_visitor, db, notifier):
        visitor = make_visitor()
        # Another request approves between our read and our write
        stale = MagicMock(status=S.AWAITING_APPROVAL)
        db.query(Visitor).filter(Visitor.id == visitor.id).update({"status": S.APPROVED})
        db.commit()

        real_read = workflow._read_visitor
        reads = iter([stale])
        with patch.object(workflow, "_read_visitor",
                          side_effect=lambda vid: next(reads, None) or real_read(vid)):
            with pytest.raises(AlreadyProcessed) as exc:
                await workflow.attempt_transition(visitor.id, S.REJECTED, actor="admin")

        assert exc.value.current_status == S.APPROVED
        db.expire_all()
        assert db.query(Visitor).filter(Visitor.id == visitor.id).first().status == S.APPROVED
        notifier.schedule_status_notification.assert_not_called()

    @pytest.mark.asyncio
    async def test_deleted_between_read_and_write(self, workflow, make_visitor, db):
        visitor = make_visitor()
        stale = MagicMock(status=S.AWAITING_APPROVAL)
        db.query(Visitor).filter(Visitor.id == visitor.id).delete()
        db.commit()

        reads = iter([stale])
        real_read = workflow._read_visitor
        with patch.object(workflow, "_read_visitor",
                          side_effect=lambda vid: next(reads, None) or real_read(vid)):
            with pytest.raises(VisitorNotFound):
                await workflow.attempt_transition(visitor.id, S.APPROVED, actor="admin")


class TestNotificationIsolation:
    @pytest.mark.asyncio
    async def test_scheduling_failure_does_not_roll_back(self, db, make_visitor):
        notifier = MagicMock()
        notifier.schedule_status_notification.side_effect = RuntimeError("loop closed")
        workflow = VisitorWorkflow(db, notifier=notifier, clock=lambda: NOW)
        visitor = make_visitor()

        result = await workflow.attempt_transition(visitor.id, S.APPROVED, actor="admin")

        assert result.status == S.APPROVED
        db.expire_all()
        assert db.query(Visitor).filter(Visitor.id == visitor.id).first().status == S.APPROVED

    @pytest.mark.asyncio
    async def test_works_without_notifier(self, db, make_visitor):
        visitor = make_visitor()
        result = await VisitorWorkflow(db).attempt_transition(visitor.id, S.APPROVED, actor="admin")
        assert result.visitor.approved_at is not None


class TestOverride:
    @pytest.mark.asyncio
    async def test_override_bypasses_graph_and_notifies(self, workflow, make_visitor, notifier):
        visitor = make_visitor(status=S.CHECKED_OUT)
        result = await workflow.override_status(visitor.id, S.APPROVED, actor="root")

        assert result.previous_status == S.CHECKED_OUT
        assert result.visitor.status == S.APPROVED
        assert result.visitor.approved_by == "root"
        assert result.visitor.approved_at == NOW
        notifier.schedule_status_notification.assert_called_once_with(visitor.id, S.APPROVED, None)

    @pytest.mark.asyncio
    async def test_override_reject_sets_notes_and_notifies(self, workflow, make_visitor, notifier):
        visitor = make_visitor(status=S.APPROVED)
        result = await workflow.override_status(visitor.id, S.REJECTED, actor="root", reason="Badge revoked")
        assert result.visitor.notes == "Badge revoked"
        notifier.schedule_status_notification.assert_called_once_with(visitor.id, S.REJECTED, "Badge revoked")

    @pytest.mark.asyncio
    async def test_override_reschedule_keeps_date_when_not_given(self, workflow, make_visitor):
        original = datetime(2024, 1, 2, 10, 0)
        visitor = make_visitor(status=S.CHECKED_IN, scheduled_at=original, check_in_at=NOW)
        result = await workflow.override_status(visitor.id, S.RESCHEDULED, actor="root")
        assert result.visitor.scheduled_at == original
        assert result.visitor.check_in_at is None

    @pytest.mark.asyncio
    async def test_override_unknown_visitor(self, workflow):
        with pytest.raises(VisitorNotFound):
            await workflow.override_status(404, S.APPROVED, actor="root")

    @pytest.mark.asyncio
    async def test_override_gives_up_under_constant_contention(self, workflow, make_visitor):
        visitor = make_visitor()
        with patch.object(workflow, "_compare_and_set", return_value=False) as cas:
            with pytest.raises(AlreadyProcessed):
                await workflow.override_status(visitor.id, S.APPROVED, actor="root")
        assert cas.call_count == 3
