# Visitor check-in - Database Models
# Import all models here for SQLAlchemy discovery

from app.models.visitor import Visitor, VisitorStatus     # noqa
from app.models.staff_member import StaffMember           # noqa
from app.models.notification_log import NotificationLog   # noqa
