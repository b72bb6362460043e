"""
Bite-force Measurement Model
One row per flushed measurement batch; each site column holds the
comma-separated readings recorded for that site
"""

import enum
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database import Base


class MeasurementCategory(str, enum.Enum):
    """Bite measurement sites. Values double as the column names on Measurement."""
    UNILATERAL_LEFT = "unilateral_left"
    UNILATERAL_RIGHT = "unilateral_right"
    BILATERAL_LEFT = "bilateral_left"
    BILATERAL_RIGHT = "bilateral_right"
    INCISORS = "incisors"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class Measurement(Base):
    __tablename__ = "measurements"
    
    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    
    # Readings per site, e.g. "60.00, 43.00, 65.00" (empty string when none)
    unilateral_left = Column(Text, nullable=False, default="")
    unilateral_right = Column(Text, nullable=False, default="")
    bilateral_left = Column(Text, nullable=False, default="")
    bilateral_right = Column(Text, nullable=False, default="")
    incisors = Column(Text, nullable=False, default="")
    
    # Provenance, e.g. "Recorded via Bluetooth ESP32"
    notes = Column(Text, nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    patient = relationship("Patient", back_populates="measurements")
    
    def series_text(self, category: MeasurementCategory) -> str:
        return getattr(self, category.value) or ""
    
    def __repr__(self):
        return f"<Measurement(id={self.id}, patient_id={self.patient_id}, created_at={self.created_at})>"
