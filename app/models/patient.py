"""
Patient Model
Patients are registered by a doctor and may later be linked to a patient account
"""

from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database import Base


class Patient(Base):
    __tablename__ = "patients"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Owning doctor
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    # Doctor-assigned display identifier (e.g. "100"), used for account linking
    patient_code = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    age = Column(Integer, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    
    # Linked patient account, set once the patient links their login
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, unique=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    measurements = relationship("Measurement", back_populates="patient", cascade="all, delete-orphan", passive_deletes=True)
    appointments = relationship("Appointment", back_populates="patient", cascade="all, delete-orphan", passive_deletes=True)
    therapy_plans = relationship("TherapyPlan", back_populates="patient", cascade="all, delete-orphan", passive_deletes=True)
    
    __table_args__ = (
        Index('ix_patients_code_name', 'patient_code', 'name'),
    )
    
    def __repr__(self):
        return f"<Patient(id={self.id}, patient_code='{self.patient_code}', name='{self.name}')>"
