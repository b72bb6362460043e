"""
Bite-force measurement persistence
Serializes a measurement batch into a measurements row and stores it
against a patient on behalf of the authenticated doctor.
"""

import logging
import math
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthSession
from app.core.error_handling import (
    EmptyMeasurementBatch,
    NotFoundException,
    PersistenceFailed,
    ValidationException,
)
from app.models import Measurement, MeasurementCategory, Patient
from app.services.measurement_aggregator import MeasurementAggregator
from app.services.patient_service import get_owned_patient

logger = logging.getLogger(__name__)

DEVICE_NOTE = "Recorded via Bluetooth ESP32"
MANUAL_NOTE = "Recorded manually"

SERIES_SEPARATOR = ", "

SavedListener = Callable[[Measurement], None]


def format_series(values: List[float]) -> str:
    """[60, 43.5] -> "60.00, 43.50"; no values -> "" """
    return SERIES_SEPARATOR.join(f"{value:.2f}" for value in values)


def parse_series(text: Optional[str]) -> List[float]:
    """Inverse of format_series. Accepts any comma-separated numbers."""
    if text is None or not text.strip():
        return []
    values = []
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            value = float(token)
        except ValueError:
            raise ValidationException(
                f"'{token}' is not a number",
                details={"value": text},
            )
        if not math.isfinite(value):
            raise ValidationException(
                f"'{token}' is not a finite number",
                details={"value": text},
            )
        values.append(value)
    return values


def summarize(rows: List[Measurement]) -> Dict[MeasurementCategory, Dict[str, Optional[float]]]:
    """Per-site count, mean, max and most recent reading across rows given newest first"""
    summary = {}
    for category in MeasurementCategory:
        values: List[float] = []
        for row in reversed(rows):
            values.extend(parse_series(row.series_text(category)))
        summary[category] = {
            "count": len(values),
            "mean": round(sum(values) / len(values), 2) if values else None,
            "max": max(values) if values else None,
            "latest": values[-1] if values else None,
        }
    return summary


def _error_code(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return getattr(error, "code", None) or type(orig or error).__name__


class MeasurementService:
    """
    Persistence gateway for measurement batches.

    Listeners registered with add_listener are called with the stored row
    after every successful flush.
    """

    def __init__(self, db: AsyncSession, auth: AuthSession):
        self.db = db
        self.auth = auth
        self._listeners: List[SavedListener] = []

    def add_listener(self, listener: SavedListener) -> None:
        self._listeners.append(listener)

    async def flush(
        self,
        patient_id: int,
        aggregator: MeasurementAggregator,
        notes: str = DEVICE_NOTE,
    ) -> Measurement:
        """
        Store the aggregator's batch as one measurements row, then reset it.

        On a store error the batch is left as-is so the flush can be retried.
        """
        if aggregator.is_empty():
            raise EmptyMeasurementBatch()

        await get_owned_patient(self.db, self.auth, patient_id)

        batch = aggregator.batch
        row = Measurement(
            patient_id=patient_id,
            notes=notes,
            **{category.value: format_series(batch[category]) for category in MeasurementCategory},
        )

        try:
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
        except SQLAlchemyError as e:
            await self.db.rollback()
            code = _error_code(e)
            logger.error(f"Failed to save measurements for patient {patient_id} (Code: {code}): {e}")
            raise PersistenceFailed(code, str(getattr(e, "orig", None) or e))

        logger.info(f"Saved measurement {row.id} for patient {patient_id} ({len(aggregator)} readings)")
        aggregator.reset()
        for listener in list(self._listeners):
            listener(row)
        return row

    async def list_for_patient(
        self, patient_id: int, limit: Optional[int] = 100, offset: int = 0
    ) -> List[Measurement]:
        """Newest first; limit=None returns every row"""
        query = (
            select(Measurement)
            .where(Measurement.patient_id == patient_id)
            .order_by(desc(Measurement.created_at), desc(Measurement.id))
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def delete(self, measurement_id: int) -> None:
        """Delete a measurement belonging to one of the caller's patients"""
        result = await self.db.execute(
            select(Measurement)
            .join(Patient, Patient.id == Measurement.patient_id)
            .where(Measurement.id == measurement_id, Patient.doctor_id == self.auth.user_id)
        )
        measurement = result.scalar_one_or_none()
        if measurement is None:
            raise NotFoundException("Measurement not found", details={"measurement_id": measurement_id})
        await self.db.delete(measurement)
        await self.db.commit()
        logger.info(f"Deleted measurement {measurement_id}")
