"""
Notification log - one row per email delivery attempt.
Written by services/notification_service.py after a staff cascade or a status email.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class NotificationLog(Base):
    __tablename__ = "notification_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visitor_id = Column(Integer, nullable=False, index=True)
    recipient = Column(String(200), nullable=False)
    template_kind = Column(String(50), nullable=False)
    tier = Column(String(50))                      # staff | location_admins | global_admins (cascade only)
    delivered = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<NotificationLog {self.id} visitor={self.visitor_id} to={self.recipient} delivered={self.delivered}>"
