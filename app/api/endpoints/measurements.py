"""
Bite-force Measurement API Endpoints
Manual entry, history, per-site summaries and deletion
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.core.auth import AuthSession, get_auth_session
from app.middleware.permissions import require_doctor
from app.models import MeasurementCategory
from app.schemas.measurement import (
    CategorySummary,
    ManualMeasurementCreate,
    MeasurementResponse,
    MeasurementSummaryResponse,
)
from app.services.measurement_aggregator import MeasurementAggregator
from app.services.measurement_service import MANUAL_NOTE, MeasurementService, parse_series, summarize
from app.services.patient_service import get_readable_patient
from app.services.reading_classifier import ReadingClassifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Measurements"])


@router.post(
    "/patients/{patient_id}/measurements",
    response_model=MeasurementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_manual_measurement(
    patient_id: int,
    body: ManualMeasurementCreate,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    """
    Record readings typed in by the doctor. Each site's comma-separated
    values go through the same classify/aggregate/flush path as sensor
    readings, so zero and negative values are ignored.
    """
    classifier = ReadingClassifier()
    aggregator = MeasurementAggregator()
    for category in MeasurementCategory:
        classifier.select(category)
        for value in parse_series(getattr(body, category.value)):
            reading = classifier.capture_current(value)
            if reading is not None:
                aggregator.record(reading)
    
    service = MeasurementService(db, auth)
    return await service.flush(patient_id, aggregator, notes=body.notes or MANUAL_NOTE)


@router.get("/patients/{patient_id}/measurements", response_model=List[MeasurementResponse])
async def list_measurements(
    patient_id: int,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    auth: AuthSession = Depends(get_auth_session),
    db: AsyncSession = Depends(get_async_session)
):
    """Measurement history, newest first (owning doctor or linked patient)"""
    await get_readable_patient(db, auth, patient_id)
    return await MeasurementService(db, auth).list_for_patient(patient_id, limit=limit, offset=offset)


@router.get("/patients/{patient_id}/measurements/summary", response_model=MeasurementSummaryResponse)
async def measurement_summary(
    patient_id: int,
    auth: AuthSession = Depends(get_auth_session),
    db: AsyncSession = Depends(get_async_session)
):
    await get_readable_patient(db, auth, patient_id)
    rows = await MeasurementService(db, auth).list_for_patient(patient_id, limit=None)
    return MeasurementSummaryResponse(
        patient_id=patient_id,
        record_count=len(rows),
        categories={category: CategorySummary(**stats) for category, stats in summarize(rows).items()},
    )


@router.delete("/measurements/{measurement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_measurement(
    measurement_id: int,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    await MeasurementService(db, auth).delete(measurement_id)
