"""
Reading classification
Tags a captured force value with the measurement site the operator has selected.
"""

import math
from dataclasses import dataclass
from typing import Optional

from app.models.measurement import MeasurementCategory


@dataclass(frozen=True)
class Reading:
    value: float
    category: MeasurementCategory


class ReadingClassifier:
    """
    Holds the active measurement site and turns raw values into Readings.

    Values at or below zero mean the sensor is not being bitten; they produce
    no Reading. Neither do NaN or infinite values.
    """

    def __init__(self, active_category: MeasurementCategory = MeasurementCategory.UNILATERAL_LEFT):
        self.active_category = MeasurementCategory(active_category)

    def select(self, category: MeasurementCategory) -> None:
        self.active_category = MeasurementCategory(category)

    def capture_current(self, value: float) -> Optional[Reading]:
        if value is None or not math.isfinite(value) or not value > 0:
            return None
        return Reading(value=float(value), category=self.active_category)
