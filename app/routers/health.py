# app/routers/health.py
"""
System health check endpoint.
Reports the database, the SMTP relay and whether email action links can be issued.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.services.action_tokens import get_action_token_service
from app.services.email_dispatcher import EmailDispatcher
from app.services.notification_service import get_visitor_notifier
from datetime import datetime

router = APIRouter()


def _email_actions_state() -> str:
    try:
        get_action_token_service()
    except ValueError:
        return "disabled"
    return "ok"


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Database connectivity
    - SMTP relay reachability ("disabled" when SMTP_HOST is unset)
    - Email action links ("disabled" without EMAIL_ACTION_SECRET)
    - Notification jobs still in flight
    """
    checks = {"database": "unknown"}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {str(e)}"

    checks["smtp"] = EmailDispatcher.from_settings().check_connection()
    checks["email_actions"] = _email_actions_state()

    healthy = checks["database"] == "ok" and checks["smtp"] in ("ok", "disabled")
    return {
        "status": "ok" if healthy else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        **checks,
        "pending_notifications": get_visitor_notifier().pending,
    }
