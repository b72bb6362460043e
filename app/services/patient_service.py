"""
Patient lookups scoped to the calling actor
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthSession
from app.core.error_handling import ForbiddenException, NotFoundException
from app.models import Patient


async def get_owned_patient(db: AsyncSession, auth: AuthSession, patient_id: int) -> Patient:
    """Patient owned by the calling doctor; other doctors' patients read as missing"""
    if not auth.is_doctor:
        raise ForbiddenException("Only doctors can manage patient records")
    result = await db.execute(
        select(Patient).where(Patient.id == patient_id, Patient.doctor_id == auth.user_id)
    )
    patient = result.scalar_one_or_none()
    if patient is None:
        raise NotFoundException("Patient not found", details={"patient_id": patient_id})
    return patient


async def get_linked_patient(db: AsyncSession, auth: AuthSession) -> Optional[Patient]:
    result = await db.execute(select(Patient).where(Patient.user_id == auth.user_id))
    return result.scalar_one_or_none()


async def get_readable_patient(db: AsyncSession, auth: AuthSession, patient_id: int) -> Patient:
    """Patient visible to the caller: the owning doctor or the linked patient account"""
    if auth.is_doctor:
        return await get_owned_patient(db, auth, patient_id)
    patient = await get_linked_patient(db, auth)
    if patient is None or patient.id != patient_id:
        raise NotFoundException("Patient not found", details={"patient_id": patient_id})
    return patient
