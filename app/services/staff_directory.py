"""
Read-only staff directory snapshots for notification resolution.
The resolver only depends on the StaffDirectory protocol; SqlStaffDirectory
is the implementation backed by the staff_members table.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.staff_member import StaffMember

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class StaffDirectoryEntry:
    first_name: str
    last_name: str
    email: str
    role: str = "staff"
    location_id: Optional[int] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return (self.role or "").strip().lower() == ADMIN_ROLE


class StaffDirectory(Protocol):
    def list_active_staff(self) -> list[StaffDirectoryEntry]: ...

    def list_location_admins(self, location_id) -> list[StaffDirectoryEntry]: ...

    def list_global_admins(self) -> list[StaffDirectoryEntry]: ...


def _to_entry(row: StaffMember) -> StaffDirectoryEntry:
    return StaffDirectoryEntry(
        first_name=row.first_name or "",
        last_name=row.last_name or "",
        email=row.email or "",
        role=row.role or "staff",
        location_id=row.location_id,
        is_active=bool(row.is_active),
    )


class SqlStaffDirectory:
    """Snapshot queries over staff_members. Only active members with an email are returned."""

    def __init__(self, db: Session):
        self.db = db

    def _active(self):
        return self.db.query(StaffMember).filter(
            StaffMember.is_active.is_(True),
            StaffMember.email.isnot(None),
            StaffMember.email != "",
        )

    def list_active_staff(self) -> list[StaffDirectoryEntry]:
        return [_to_entry(s) for s in self._active().order_by(StaffMember.id).all()]

    def list_location_admins(self, location_id) -> list[StaffDirectoryEntry]:
        if location_id is None:
            return []
        q = self._active().filter(
            func.lower(StaffMember.role) == ADMIN_ROLE,
            StaffMember.location_id == location_id,
        )
        return [_to_entry(s) for s in q.order_by(StaffMember.id).all()]

    def list_global_admins(self) -> list[StaffDirectoryEntry]:
        q = self._active().filter(func.lower(StaffMember.role) == ADMIN_ROLE)
        return [_to_entry(s) for s in q.order_by(StaffMember.id).all()]
