# app/schemas/visitor.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from app.models.visitor import VisitorStatus


class VisitorCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    purpose_of_visit: str = Field(min_length=1, max_length=200)
    meet_with: str = Field(min_length=1, max_length=200)   # free text - matched against staff names
    scheduled_at: Optional[datetime] = None                # defaults to now
    location_id: Optional[int] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    company_name: Optional[str] = None
    notes: Optional[str] = None


class VisitorOut(BaseModel):
    id: int
    location_id: Optional[int]
    full_name: str
    email: Optional[str]
    phone_number: Optional[str]
    company_name: Optional[str]
    purpose_of_visit: str
    meet_with: str
    scheduled_at: datetime
    status: VisitorStatus
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    check_in_at: Optional[datetime]
    check_out_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ApproveRequest(BaseModel):
    approved_by: str = "admin"


class RejectRequest(BaseModel):
    reason: Optional[str] = None
    rejected_by: str = "admin"


class RescheduleRequest(BaseModel):
    scheduled_at: datetime
    reason: Optional[str] = None


class StatusOverride(BaseModel):
    status: VisitorStatus
    reason: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    actor: str = "admin"


class TransitionOut(BaseModel):
    previous_status: VisitorStatus
    status: VisitorStatus
    visitor: VisitorOut
