"""
Appointment and therapy plan schemas
"""
import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models import AppointmentStatus


class AppointmentCreate(BaseModel):
    patient_id: int
    scheduled_datetime: datetime.datetime
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    scheduled_datetime: datetime.datetime
    reason: Optional[str] = None
    notes: Optional[str] = None
    status: AppointmentStatus
    created_at: datetime.datetime
    updated_at: Optional[datetime.datetime] = None
    
    class Config:
        from_attributes = True


class TherapyPlanBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


class TherapyPlanCreate(TherapyPlanBase):
    patient_id: int


class TherapyPlanUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


class TherapyPlanResponse(TherapyPlanBase):
    id: int
    patient_id: int
    doctor_id: int
    created_at: datetime.datetime
    updated_at: Optional[datetime.datetime] = None
    
    class Config:
        from_attributes = True
