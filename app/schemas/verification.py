"""
Doctor verification schemas
"""
import datetime
from typing import Optional
from pydantic import BaseModel, field_validator

from app.models import VerificationStatus


class VerificationResponse(BaseModel):
    id: int
    user_id: int
    doctor_name: str
    license_number: str
    license_image_url: Optional[str] = None
    status: VerificationStatus
    verified_by: Optional[int] = None
    verified_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    
    class Config:
        from_attributes = True


class VerificationDecision(BaseModel):
    status: VerificationStatus
    
    @field_validator("status")
    @classmethod
    def must_be_decision(cls, value: VerificationStatus) -> VerificationStatus:
        if value == VerificationStatus.PENDING:
            raise ValueError("status must be approved or rejected")
        return value
