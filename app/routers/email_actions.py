# app/routers/email_actions.py
"""
Unauthenticated approve/reject links embedded in staff notification emails.

GET /email-actions/approve/{visitor_id}/{token}
GET /email-actions/reject/{visitor_id}/{token}?reason=...
GET /email-actions/reject-form/{visitor_id}/{token}

The token is the only credential. Every request verifies the token AND looks
up the visitor before branching, and a bad link and an unknown visitor get the
same page shape and status code, so neither timing nor response structure
tells a caller which check failed.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_visitor_workflow
from app.models.visitor import Visitor, VisitorStatus
from app.services.action_tokens import ActionTokenService, get_action_token_service
from app.services.exceptions import InvalidToken, VisitorNotFound, AlreadyProcessed, IllegalTransition
from app.services.visitor_workflow import VisitorWorkflow
from app.utils.action_pages import render_result_page, render_reject_form
from app.utils.logger import get_logger

router = APIRouter(prefix="/email-actions")
logger = get_logger(__name__)

EMAIL_ACTOR = "Email Action"
LINK_FAILURE_STATUS = 404
MAX_REASON_LENGTH = 1000


def _authorize(db: Session, tokens: ActionTokenService, visitor_id: int, token: str) -> Visitor:
    token_ok = tokens.verify(visitor_id, token)
    visitor = db.query(Visitor).filter(Visitor.id == visitor_id).first()
    if not token_ok:
        raise InvalidToken(visitor_id)
    if visitor is None:
        raise VisitorNotFound(visitor_id)
    return visitor


def _page(title: str, message: str, outcome: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(render_result_page(title, message, outcome), status_code=status_code)


def _link_failure(exc: Exception) -> HTMLResponse:
    if isinstance(exc, InvalidToken):
        logger.warning(f"[ACTION] Rejected link for visitor {exc.visitor_id}: bad or expired token")
        message = "This link is invalid or has expired. Action links only work on the day they were sent."
    else:
        logger.warning(f"[ACTION] Link for unknown visitor {exc.visitor_id}")
        message = "This visitor request could not be found."
    return _page("Link Not Valid", message, "error", LINK_FAILURE_STATUS)


def _already_processed(current_status: VisitorStatus) -> HTMLResponse:
    return _page("Already Processed",
                 f"This visitor request has already been {current_status.label}.", "info")


def _server_error(action: str, visitor_id: int, exc: Exception) -> HTMLResponse:
    logger.error(f"[ACTION] Error during {action} of visitor {visitor_id}: {exc}", exc_info=True)
    return _page("Error", f"An error occurred while processing the {action}.", "error", 500)


@router.get("/approve/{visitor_id}/{token}", response_class=HTMLResponse,
            name="approve_visitor_via_email", summary="Approve a visitor from an email link")
async def approve_via_email(
    visitor_id: int,
    token: str,
    db: Session = Depends(get_db),
    tokens: ActionTokenService = Depends(get_action_token_service),
    workflow: VisitorWorkflow = Depends(get_visitor_workflow),
):
    try:
        _authorize(db, tokens, visitor_id, token)
        result = await workflow.attempt_transition(visitor_id, VisitorStatus.APPROVED, actor=EMAIL_ACTOR)
    except (InvalidToken, VisitorNotFound) as e:
        return _link_failure(e)
    except (AlreadyProcessed, IllegalTransition) as e:
        return _already_processed(e.current_status)
    except Exception as e:
        return _server_error("approval", visitor_id, e)

    return _page("Approved!",
                 f"Visitor {result.visitor.full_name} has been approved. "
                 f"They will receive a confirmation email.", "success")


@router.get("/reject/{visitor_id}/{token}", response_class=HTMLResponse,
            name="reject_visitor_via_email", summary="Reject a visitor from an email link")
async def reject_via_email(
    visitor_id: int,
    token: str,
    reason: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    tokens: ActionTokenService = Depends(get_action_token_service),
    workflow: VisitorWorkflow = Depends(get_visitor_workflow),
):
    reason = (reason or "").strip()[:MAX_REASON_LENGTH] or None
    try:
        _authorize(db, tokens, visitor_id, token)
        result = await workflow.attempt_transition(visitor_id, VisitorStatus.REJECTED,
                                                   actor=EMAIL_ACTOR, reason=reason)
    except (InvalidToken, VisitorNotFound) as e:
        return _link_failure(e)
    except (AlreadyProcessed, IllegalTransition) as e:
        return _already_processed(e.current_status)
    except Exception as e:
        return _server_error("rejection", visitor_id, e)

    return _page("Rejected",
                 f"Visitor {result.visitor.full_name} has been rejected. "
                 f"They will receive a notification email.", "success")


@router.get("/reject-form/{visitor_id}/{token}", response_class=HTMLResponse,
            summary="Form to add a rejection reason before rejecting")
async def reject_form(
    visitor_id: int,
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    tokens: ActionTokenService = Depends(get_action_token_service),
):
    try:
        visitor = _authorize(db, tokens, visitor_id, token)
    except (InvalidToken, VisitorNotFound) as e:
        return _link_failure(e)
    except Exception as e:
        return _server_error("rejection form", visitor_id, e)

    if visitor.status != VisitorStatus.AWAITING_APPROVAL:
        return _already_processed(visitor.status)

    action_url = str(request.url_for("reject_visitor_via_email", visitor_id=visitor_id, token=token))
    return HTMLResponse(render_reject_form(visitor, action_url))
