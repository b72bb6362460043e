"""
Appointment and therapy plan endpoints (doctor side)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.core.auth import AuthSession
from app.core.error_handling import NotFoundException
from app.middleware.permissions import require_doctor
from app.models import Appointment, TherapyPlan
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    TherapyPlanCreate,
    TherapyPlanResponse,
    TherapyPlanUpdate,
)
from app.services.patient_service import get_owned_patient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])
therapy_router = APIRouter(prefix="/therapy-plans", tags=["Therapy Plans"])


async def _get_owned(db: AsyncSession, model, record_id: int, auth: AuthSession):
    result = await db.execute(
        select(model).where(model.id == record_id, model.doctor_id == auth.user_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundException(f"{model.__name__} not found", details={"id": record_id})
    return record


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    body: AppointmentCreate,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    await get_owned_patient(db, auth, body.patient_id)
    appointment = Appointment(**body.model_dump(), doctor_id=auth.user_id)
    db.add(appointment)
    await db.commit()
    await db.refresh(appointment)
    return appointment


@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    patient_id: Optional[int] = Query(None),
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    query = select(Appointment).where(Appointment.doctor_id == auth.user_id)
    if patient_id is not None:
        query = query.where(Appointment.patient_id == patient_id)
    result = await db.execute(query.order_by(Appointment.scheduled_datetime))
    return result.scalars().all()


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    body: AppointmentStatusUpdate,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    appointment = await _get_owned(db, Appointment, appointment_id, auth)
    appointment.status = body.status
    await db.commit()
    await db.refresh(appointment)
    return appointment


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    appointment = await _get_owned(db, Appointment, appointment_id, auth)
    await db.delete(appointment)
    await db.commit()


@therapy_router.post("", response_model=TherapyPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_therapy_plan(
    body: TherapyPlanCreate,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    await get_owned_patient(db, auth, body.patient_id)
    plan = TherapyPlan(**body.model_dump(), doctor_id=auth.user_id)
    db.add(plan)
    await db.commit()
    await db.refresh(plan)
    return plan


@therapy_router.get("", response_model=List[TherapyPlanResponse])
async def list_therapy_plans(
    patient_id: Optional[int] = Query(None),
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    query = select(TherapyPlan).where(TherapyPlan.doctor_id == auth.user_id)
    if patient_id is not None:
        query = query.where(TherapyPlan.patient_id == patient_id)
    result = await db.execute(query.order_by(desc(TherapyPlan.created_at), desc(TherapyPlan.id)))
    return result.scalars().all()


@therapy_router.patch("/{plan_id}", response_model=TherapyPlanResponse)
async def update_therapy_plan(
    plan_id: int,
    body: TherapyPlanUpdate,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    plan = await _get_owned(db, TherapyPlan, plan_id, auth)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(plan, field, value)
    await db.commit()
    await db.refresh(plan)
    return plan


@therapy_router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_therapy_plan(
    plan_id: int,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    plan = await _get_owned(db, TherapyPlan, plan_id, auth)
    await db.delete(plan)
    await db.commit()
