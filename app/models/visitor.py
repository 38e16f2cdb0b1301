"""
Visitors table - one row per registered visit.
status is owned by services/visitor_workflow.py; nothing else writes it after creation.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Enum
from app.database import Base


class VisitorStatus(str, enum.Enum):
    AWAITING_APPROVAL = "AwaitingApproval"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CHECKED_IN = "CheckedIn"
    CHECKED_OUT = "CheckedOut"
    RESCHEDULED = "Rescheduled"

    @property
    def label(self) -> str:
        """Lower-case words for user-facing text, e.g. 'checked in'."""
        return {
            VisitorStatus.AWAITING_APPROVAL: "awaiting approval",
            VisitorStatus.CHECKED_IN: "checked in",
            VisitorStatus.CHECKED_OUT: "checked out",
        }.get(self, self.value.lower())


class Visitor(Base):
    __tablename__ = "visitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    location_id = Column(Integer, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(200))
    phone_number = Column(String(20))
    company_name = Column(String(200))
    purpose_of_visit = Column(String(200), nullable=False)
    meet_with = Column(String(200), nullable=False)       # free text, fuzzy-matched to staff
    scheduled_at = Column(DateTime, nullable=False, index=True)
    status = Column(
        Enum(VisitorStatus, native_enum=False, length=32,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=VisitorStatus.AWAITING_APPROVAL, index=True,
    )
    approved_by = Column(String(200))
    approved_at = Column(DateTime)
    check_in_at = Column(DateTime)
    check_out_at = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Visitor {self.id} name={self.full_name} status={self.status}>"
