# scripts/setup/add_staff.py
"""
Add a staff member to the directory used for visitor notifications.
Usage: python scripts/setup/add_staff.py Jane Doe jane@example.com --role admin --location 1
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import argparse
from datetime import datetime
from app.database import SessionLocal, create_tables
from app.models.staff_member import StaffMember


def main():
    parser = argparse.ArgumentParser(description="Add a staff member")
    parser.add_argument("first_name")
    parser.add_argument("last_name")
    parser.add_argument("email")
    parser.add_argument("--role", default="staff", help="admin | staff | reception")
    parser.add_argument("--location", type=int, default=None)
    parser.add_argument("--inactive", action="store_true")
    args = parser.parse_args()

    create_tables()
    db = SessionLocal()
    try:
        existing = db.query(StaffMember).filter(StaffMember.email == args.email).first()
        if existing:
            print(f"❌ {args.email} already exists (id={existing.id})")
            sys.exit(1)
        staff = StaffMember(first_name=args.first_name, last_name=args.last_name, email=args.email,
                            role=args.role, location_id=args.location, is_active=not args.inactive,
                            created_at=datetime.utcnow())
        db.add(staff)
        db.commit()
        print(f"✅ Added {staff.first_name} {staff.last_name} <{staff.email}> "
              f"role={staff.role} location={staff.location_id} (id={staff.id})")
    finally:
        db.close()


if __name__ == "__main__":
    main()
