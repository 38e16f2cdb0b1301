# app/routers/visitors.py
"""
Visitor registration + admin approval endpoints.
POST /visitors is the public check-in form; everything else sits behind the API key.
Status changes go through VisitorWorkflow only.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_visitor_workflow
from app.models.visitor import Visitor, VisitorStatus
from app.schemas.visitor import (
    VisitorCreate, VisitorOut, ApproveRequest, RejectRequest,
    RescheduleRequest, StatusOverride, TransitionOut,
)
from app.services.exceptions import VisitorNotFound, AlreadyProcessed, IllegalTransition
from app.services.notification_service import get_visitor_notifier
from app.services.registration_service import register_visitor
from app.services.visitor_workflow import VisitorWorkflow, TransitionResult

router = APIRouter()


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, VisitorNotFound):
        return HTTPException(status_code=404, detail="Visitor not found")
    if isinstance(exc, AlreadyProcessed):
        return HTTPException(status_code=409, detail={
            "message": str(exc), "current_status": exc.current_status.value,
        })
    if isinstance(exc, IllegalTransition):
        return HTTPException(status_code=400, detail={
            "message": str(exc), "current_status": exc.current_status.value,
        })
    return HTTPException(status_code=400, detail=str(exc))


def _out(result: TransitionResult) -> TransitionOut:
    return TransitionOut(previous_status=result.previous_status, status=result.status,
                         visitor=VisitorOut.model_validate(result.visitor))


async def _transition(workflow: VisitorWorkflow, visitor_id: int, target: VisitorStatus,
                      actor: str, **kwargs) -> TransitionOut:
    try:
        result = await workflow.attempt_transition(visitor_id, target, actor=actor, **kwargs)
    except (VisitorNotFound, AlreadyProcessed, IllegalTransition, ValueError) as e:
        raise _to_http(e)
    return _out(result)


@router.post("/visitors", response_model=VisitorOut, status_code=status.HTTP_201_CREATED,
             summary="Register a visitor (public check-in form)")
async def create_visitor(body: VisitorCreate, db: Session = Depends(get_db),
                         notifier=Depends(get_visitor_notifier)):
    return await register_visitor(db, body, notifier)


@router.get("/visitors", response_model=list[VisitorOut], summary="List visitors")
def list_visitors(status_filter: Optional[VisitorStatus] = Query(None, alias="status"), location_id: Optional[int] = None,
                  limit: int = 50, db: Session = Depends(get_db)):
    q = db.query(Visitor)
    if status_filter:
        q = q.filter(Visitor.status == status_filter)
    if location_id is not None:
        q = q.filter(Visitor.location_id == location_id)
    return q.order_by(Visitor.scheduled_at.desc()).limit(limit).all()


@router.get("/visitors/{visitor_id}", response_model=VisitorOut)
def get_visitor(visitor_id: int, db: Session = Depends(get_db)):
    visitor = db.query(Visitor).filter(Visitor.id == visitor_id).first()
    if not visitor:
        raise HTTPException(status_code=404, detail="Visitor not found")
    return visitor


@router.put("/visitors/{visitor_id}/approve", response_model=TransitionOut)
async def approve_visitor(visitor_id: int, body: ApproveRequest = ApproveRequest(),
                          workflow: VisitorWorkflow = Depends(get_visitor_workflow)):
    return await _transition(workflow, visitor_id, VisitorStatus.APPROVED, body.approved_by)


@router.put("/visitors/{visitor_id}/reject", response_model=TransitionOut)
async def reject_visitor(visitor_id: int, body: RejectRequest = RejectRequest(),
                         workflow: VisitorWorkflow = Depends(get_visitor_workflow)):
    return await _transition(workflow, visitor_id, VisitorStatus.REJECTED, body.rejected_by,
                             reason=body.reason)


@router.put("/visitors/{visitor_id}/checkin", response_model=TransitionOut)
async def check_in_visitor(visitor_id: int, workflow: VisitorWorkflow = Depends(get_visitor_workflow)):
    return await _transition(workflow, visitor_id, VisitorStatus.CHECKED_IN, "reception")


@router.put("/visitors/{visitor_id}/checkout", response_model=TransitionOut)
async def check_out_visitor(visitor_id: int, workflow: VisitorWorkflow = Depends(get_visitor_workflow)):
    return await _transition(workflow, visitor_id, VisitorStatus.CHECKED_OUT, "reception")


@router.put("/visitors/{visitor_id}/reschedule", response_model=TransitionOut)
async def reschedule_visitor(visitor_id: int, body: RescheduleRequest,
                             workflow: VisitorWorkflow = Depends(get_visitor_workflow)):
    return await _transition(workflow, visitor_id, VisitorStatus.RESCHEDULED, "admin",
                             reason=body.reason, scheduled_at=body.scheduled_at)


@router.put("/visitors/{visitor_id}/status", response_model=TransitionOut,
            summary="Administrative override - set any status")
async def override_visitor_status(visitor_id: int, body: StatusOverride,
                                  workflow: VisitorWorkflow = Depends(get_visitor_workflow)):
    try:
        result = await workflow.override_status(visitor_id, body.status, actor=body.actor,
                                                reason=body.reason, scheduled_at=body.scheduled_at)
    except (VisitorNotFound, AlreadyProcessed) as e:
        raise _to_http(e)
    return _out(result)
