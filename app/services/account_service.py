"""
Account deletion
Removes a user's role-scoped records and then the identity itself, in one
transaction.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import lookup_role
from app.models import (
    Appointment,
    DoctorVerification,
    Measurement,
    Patient,
    Profile,
    TherapyPlan,
    User,
    UserRole,
    UserRoleAssignment,
)

logger = logging.getLogger(__name__)


async def _delete_patient_records(db: AsyncSession, patient_ids) -> None:
    if not patient_ids:
        return
    await db.execute(delete(Measurement).where(Measurement.patient_id.in_(patient_ids)))
    await db.execute(delete(Appointment).where(Appointment.patient_id.in_(patient_ids)))
    await db.execute(delete(TherapyPlan).where(TherapyPlan.patient_id.in_(patient_ids)))
    await db.execute(delete(Patient).where(Patient.id.in_(patient_ids)))


async def delete_user_account(db: AsyncSession, user_id: int) -> None:
    """
    Delete everything owned by the user, then the user.
    
    Doctors lose their patients (with all patient data) and any appointments
    or plans they authored. Patients lose their linked record and its data.
    Rolls back and re-raises on any failure.
    """
    try:
        role = await lookup_role(db, user_id)
        
        if role == UserRole.DOCTOR:
            result = await db.execute(select(Patient.id).where(Patient.doctor_id == user_id))
            await _delete_patient_records(db, list(result.scalars().all()))
            await db.execute(delete(Appointment).where(Appointment.doctor_id == user_id))
            await db.execute(delete(TherapyPlan).where(TherapyPlan.doctor_id == user_id))
        elif role == UserRole.PATIENT:
            result = await db.execute(select(Patient.id).where(Patient.user_id == user_id))
            await _delete_patient_records(db, list(result.scalars().all()))
        
        await db.execute(delete(DoctorVerification).where(DoctorVerification.user_id == user_id))
        await db.execute(
            DoctorVerification.__table__.update()
            .where(DoctorVerification.verified_by == user_id)
            .values(verified_by=None)
        )
        await db.execute(delete(UserRoleAssignment).where(UserRoleAssignment.user_id == user_id))
        await db.execute(delete(Profile).where(Profile.id == user_id))
        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    
    logger.info(f"Deleted account {user_id} (role: {role.value if role else 'none'})")
