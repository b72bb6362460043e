"""
Patient schemas
"""
import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.schemas.appointment import AppointmentResponse, TherapyPlanResponse
from app.schemas.measurement import MeasurementResponse


class PatientBase(BaseModel):
    patient_code: str = Field(..., min_length=1, max_length=50, description="Doctor-assigned patient ID, e.g. 100")
    name: str = Field(..., min_length=1, max_length=200)
    age: Optional[int] = Field(None, ge=0, le=150)
    date_of_birth: Optional[datetime.date] = None


class PatientCreate(PatientBase):
    pass


class PatientUpdate(BaseModel):
    patient_code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    age: Optional[int] = Field(None, ge=0, le=150)
    date_of_birth: Optional[datetime.date] = None


class PatientResponse(PatientBase):
    id: int
    doctor_id: int
    user_id: Optional[int] = None
    created_at: datetime.datetime
    updated_at: Optional[datetime.datetime] = None
    
    class Config:
        from_attributes = True


class PatientListResponse(PatientResponse):
    measurement_count: int = 0


class PatientLinkRequest(BaseModel):
    patient_code: str
    name: str


class PatientDashboardResponse(BaseModel):
    patient: PatientResponse
    measurements: List[MeasurementResponse]
    appointments: List[AppointmentResponse]
    therapy_plans: List[TherapyPlanResponse]
