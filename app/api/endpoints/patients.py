"""
Patient API Endpoints
Doctors manage their own patients; patients view their linked record
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func, desc, delete
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.core.auth import AuthSession
from app.middleware.permissions import require_doctor, require_patient
from app.models import Appointment, Measurement, Patient, TherapyPlan
from app.schemas.appointment import AppointmentResponse, TherapyPlanResponse
from app.schemas.measurement import MeasurementResponse
from app.schemas.patient import (
    PatientCreate,
    PatientDashboardResponse,
    PatientLinkRequest,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from app.services.patient_service import get_linked_patient, get_owned_patient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.get("", response_model=List[PatientListResponse])
async def list_patients(
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    """The calling doctor's patients, newest first, with measurement counts"""
    measurement_count = (
        select(Measurement.patient_id, func.count(Measurement.id).label("measurement_count"))
        .group_by(Measurement.patient_id)
        .subquery()
    )
    query = (
        select(Patient, func.coalesce(measurement_count.c.measurement_count, 0))
        .outerjoin(measurement_count, measurement_count.c.patient_id == Patient.id)
        .where(Patient.doctor_id == auth.user_id)
        .order_by(desc(Patient.created_at), desc(Patient.id))
    )
    result = await db.execute(query)
    return [
        PatientListResponse(
            **PatientResponse.model_validate(patient).model_dump(),
            measurement_count=count,
        )
        for patient, count in result.all()
    ]


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    patient = Patient(**patient_data.model_dump(), doctor_id=auth.user_id)
    db.add(patient)
    await db.commit()
    await db.refresh(patient)
    logger.info(f"Doctor {auth.user_id} added patient {patient.id}")
    return patient


@router.get("/me", response_model=PatientDashboardResponse)
async def get_my_dashboard(
    auth: AuthSession = Depends(require_patient),
    db: AsyncSession = Depends(get_async_session)
):
    """Linked patient record with measurements, appointments and therapy plans"""
    patient = await get_linked_patient(db, auth)
    if patient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No patient record is linked to this account"
        )
    
    measurements = await db.execute(
        select(Measurement)
        .where(Measurement.patient_id == patient.id)
        .order_by(desc(Measurement.created_at), desc(Measurement.id))
    )
    appointments = await db.execute(
        select(Appointment)
        .where(Appointment.patient_id == patient.id)
        .order_by(Appointment.scheduled_datetime)
    )
    plans = await db.execute(
        select(TherapyPlan)
        .where(TherapyPlan.patient_id == patient.id)
        .order_by(desc(TherapyPlan.created_at), desc(TherapyPlan.id))
    )
    return PatientDashboardResponse(
        patient=PatientResponse.model_validate(patient),
        measurements=[MeasurementResponse.model_validate(m) for m in measurements.scalars().all()],
        appointments=[AppointmentResponse.model_validate(a) for a in appointments.scalars().all()],
        therapy_plans=[TherapyPlanResponse.model_validate(p) for p in plans.scalars().all()],
    )


@router.post("/link", response_model=PatientResponse)
async def link_account(
    link_data: PatientLinkRequest,
    auth: AuthSession = Depends(require_patient),
    db: AsyncSession = Depends(get_async_session)
):
    """Attach the caller's account to the record a doctor created for them"""
    if await get_linked_patient(db, auth) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This account is already linked to a patient record"
        )
    
    result = await db.execute(
        select(Patient).where(
            Patient.patient_code == link_data.patient_code.strip(),
            Patient.name == link_data.name.strip(),
        )
    )
    patient = result.scalars().first()
    if patient is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No patient record found with this ID and name"
        )
    if patient.user_id is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This patient record is already linked to another account"
        )
    
    patient.user_id = auth.user_id
    await db.commit()
    await db.refresh(patient)
    logger.info(f"User {auth.user_id} linked to patient {patient.id}")
    return patient


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: int,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    return await get_owned_patient(db, auth, patient_id)


@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int,
    patient_data: PatientUpdate,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    patient = await get_owned_patient(db, auth, patient_id)
    for field, value in patient_data.model_dump(exclude_unset=True).items():
        setattr(patient, field, value)
    await db.commit()
    await db.refresh(patient)
    return patient


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(
    patient_id: int,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    """Delete a patient together with their measurements, appointments and plans"""
    patient = await get_owned_patient(db, auth, patient_id)
    await db.execute(delete(Measurement).where(Measurement.patient_id == patient.id))
    await db.execute(delete(Appointment).where(Appointment.patient_id == patient.id))
    await db.execute(delete(TherapyPlan).where(TherapyPlan.patient_id == patient.id))
    await db.delete(patient)
    await db.commit()
    logger.info(f"Doctor {auth.user_id} deleted patient {patient_id}")
