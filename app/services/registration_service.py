"""
Visitor registration - the public check-in form lands here.
Creates the visitor in AwaitingApproval and hands the notification work to the notifier.
"""

from datetime import datetime
from sqlalchemy.orm import Session
from app.models.visitor import Visitor, VisitorStatus
from app.schemas.visitor import VisitorCreate
from app.utils.logger import get_logger

logger = get_logger(__name__)


async def register_visitor(db: Session, data: VisitorCreate, notifier=None) -> Visitor:
    now = datetime.utcnow()
    visitor = Visitor(
        location_id=data.location_id,
        full_name=data.full_name,
        email=data.email,
        phone_number=data.phone_number,
        company_name=data.company_name,
        purpose_of_visit=data.purpose_of_visit,
        meet_with=data.meet_with,
        scheduled_at=data.scheduled_at or now,
        status=VisitorStatus.AWAITING_APPROVAL,
        notes=data.notes,
        created_at=now,
        updated_at=now,
    )
    db.add(visitor)
    db.commit()
    db.refresh(visitor)
    logger.info(f"[REGISTER] Visitor {visitor.id} ({visitor.full_name}) to meet '{visitor.meet_with}'")

    if notifier is not None:
        try:
            notifier.schedule_registration(visitor.id)
        except Exception as e:
            logger.error(f"[REGISTER] Could not schedule notifications for visitor {visitor.id}: {e}",
                         exc_info=True)
    return visitor
