"""
Bite-force measurement schemas
"""
import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field

from app.models import MeasurementCategory


class ManualMeasurementCreate(BaseModel):
    """Comma-separated readings per site, e.g. "60, 43, 65" """
    unilateral_left: Optional[str] = Field(None, examples=["60, 43, 65, 32, 80"])
    unilateral_right: Optional[str] = Field(None, examples=["43, 67, 54"])
    bilateral_left: Optional[str] = Field(None, examples=["20"])
    bilateral_right: Optional[str] = Field(None, examples=["10"])
    incisors: Optional[str] = Field(None, examples=["32, 54, 76, 87, 92"])
    notes: Optional[str] = Field(None, max_length=500)


class MeasurementResponse(BaseModel):
    id: int
    patient_id: int
    unilateral_left: str
    unilateral_right: str
    bilateral_left: str
    bilateral_right: str
    incisors: str
    notes: Optional[str] = None
    created_at: datetime.datetime
    
    class Config:
        from_attributes = True


class CategorySummary(BaseModel):
    count: int
    mean: Optional[float] = None
    max: Optional[float] = None
    latest: Optional[float] = None


class MeasurementSummaryResponse(BaseModel):
    patient_id: int
    record_count: int
    categories: Dict[MeasurementCategory, CategorySummary]
