# app/dependencies.py
"""FastAPI dependencies shared by the visitor and email-action routers."""

from fastapi import Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.services.notification_service import get_visitor_notifier
from app.services.visitor_workflow import VisitorWorkflow


def get_visitor_workflow(db: Session = Depends(get_db),
                         notifier=Depends(get_visitor_notifier)) -> VisitorWorkflow:
    return VisitorWorkflow(db, notifier=notifier)
