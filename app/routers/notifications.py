# app/routers/notifications.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.notification_log import NotificationLog
from app.schemas.notification_log import NotificationLogOut
from typing import Optional

router = APIRouter()

@router.get("/notifications", response_model=list[NotificationLogOut], summary="Email delivery attempts")
def get_notifications(
    visitor_id: Optional[int] = None,
    delivered: Optional[int] = None,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """Delivery log for staff cascades and visitor status emails. Filter by visitor_id or delivered (0/1)."""
    q = db.query(NotificationLog)
    if visitor_id is not None:
        q = q.filter(NotificationLog.visitor_id == visitor_id)
    if delivered is not None:
        q = q.filter(NotificationLog.delivered == delivered)
    return q.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc()).limit(limit).all()
