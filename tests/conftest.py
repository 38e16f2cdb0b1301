"""Shared fixtures: in-memory SQLite store, fixed clocks, visitor/staff factories."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Settings are read at import time - pin them before anything imports app.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_ACTION_SECRET"] = "test-secret-0123456789abcdefghijklmnopqrstuvwxyz"
os.environ["API_KEY"] = ""
os.environ["SMTP_HOST"] = ""

import pytest
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models.visitor import Visitor, VisitorStatus
from app.models.staff_member import StaffMember
import app.models  # noqa - registers every table on Base.metadata

TEST_SECRET = os.environ["EMAIL_ACTION_SECRET"]


class FixedClock:
    """Callable clock whose time the test can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def utc_clock():
    return FixedClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_visitor(db):
    def _make(status=VisitorStatus.AWAITING_APPROVAL, meet_with="Jane Doe", location_id=1,
              email="visitor@example.com", **fields):
        now = datetime(2024, 1, 1, 9, 0)
        visitor = Visitor(
            full_name=fields.pop("full_name", "Alex Visitor"),
            purpose_of_visit=fields.pop("purpose_of_visit", "Meeting"),
            meet_with=meet_with,
            location_id=location_id,
            email=email,
            scheduled_at=fields.pop("scheduled_at", datetime(2024, 1, 2, 10, 0)),
            status=status,
            created_at=now,
            updated_at=now,
            **fields,
        )
        db.add(visitor)
        db.commit()
        db.refresh(visitor)
        return visitor
    return _make


@pytest.fixture
def make_staff(db):
    def _make(first_name, last_name, email, role="staff", location_id=1, is_active=True):
        staff = StaffMember(first_name=first_name, last_name=last_name, email=email,
                            role=role, location_id=location_id, is_active=is_active)
        db.add(staff)
        db.commit()
        return staff
    return _make
