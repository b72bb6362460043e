"""
In-memory accumulation of classified readings, one list per measurement site.
"""

from typing import Dict, List

from app.models.measurement import MeasurementCategory
from app.services.reading_classifier import Reading

MeasurementBatch = Dict[MeasurementCategory, List[float]]


def empty_batch() -> MeasurementBatch:
    return {category: [] for category in MeasurementCategory}


class MeasurementAggregator:
    def __init__(self):
        self._batch: MeasurementBatch = empty_batch()

    def record(self, reading: Reading) -> None:
        self._batch[reading.category].append(reading.value)

    def reset(self) -> None:
        for values in self._batch.values():
            values.clear()

    def is_empty(self) -> bool:
        return all(not values for values in self._batch.values())

    def series(self, category: MeasurementCategory) -> List[float]:
        return list(self._batch[MeasurementCategory(category)])

    @property
    def batch(self) -> MeasurementBatch:
        """Copy of the current batch; every category key is present"""
        return {category: list(values) for category, values in self._batch.items()}

    def __len__(self) -> int:
        return sum(len(values) for values in self._batch.values())
