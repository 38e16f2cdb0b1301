"""
Staff directory table. Read-only from the approval core: the notification
resolver only ever sees StaffDirectoryEntry snapshots built from these rows.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from app.database import Base


class StaffMember(Base):
    __tablename__ = "staff_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(200), nullable=False, index=True)
    role = Column(String(50), nullable=False, default="staff")   # admin | staff | reception
    location_id = Column(Integer, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<StaffMember {self.id} {self.first_name} {self.last_name} role={self.role}>"
