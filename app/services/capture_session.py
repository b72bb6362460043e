"""
Device capture session
Ties the sensor link, the site classifier, the in-memory aggregator and the
measurement store together for one patient.
"""

import logging
from typing import Optional

from app.models import Measurement, MeasurementCategory
from app.services.device_link import DeviceLink
from app.services.measurement_aggregator import MeasurementAggregator
from app.services.measurement_service import DEVICE_NOTE, MeasurementService
from app.services.reading_classifier import Reading, ReadingClassifier

logger = logging.getLogger(__name__)


class CaptureSession:
    """
    One operator session against one patient.

    Entering the context connects the sensor and starts an empty batch;
    leaving it always disconnects, dropping anything not yet flushed.
    """

    def __init__(self, patient_id: int, link: DeviceLink, measurements: MeasurementService):
        self.patient_id = patient_id
        self.link = link
        self.measurements = measurements
        self.classifier = ReadingClassifier()
        self.aggregator = MeasurementAggregator()

    @property
    def current_force(self) -> float:
        return self.link.latest_force

    @property
    def active_category(self) -> MeasurementCategory:
        return self.classifier.active_category

    def select_category(self, category: MeasurementCategory) -> None:
        self.classifier.select(category)

    def capture(self) -> Optional[Reading]:
        """Record the latest sensor value under the active category, if positive"""
        reading = self.classifier.capture_current(self.link.latest_force)
        if reading is None:
            logger.debug("No sensor contact; nothing recorded")
            return None
        self.aggregator.record(reading)
        return reading

    async def flush(self) -> Measurement:
        return await self.measurements.flush(self.patient_id, self.aggregator, notes=DEVICE_NOTE)

    async def __aenter__(self) -> "CaptureSession":
        self.aggregator.reset()
        await self.link.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.aggregator.is_empty():
            logger.warning(f"Discarding {len(self.aggregator)} unsaved readings for patient {self.patient_id}")
        self.aggregator.reset()
        await self.link.disconnect()
