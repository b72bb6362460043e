"""
Capture pipeline tests: classification, aggregation, series encoding,
flushing through MeasurementService and the CaptureSession wrapper
"""
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.auth import AuthSession
from app.core.error_handling import (
    EmptyMeasurementBatch,
    ForbiddenException,
    NotFoundException,
    PersistenceFailed,
    ValidationException,
)
from app.models import Measurement, MeasurementCategory, UserRole
from app.services.capture_session import CaptureSession
from app.services.device_link import LinkState
from app.services.measurement_aggregator import MeasurementAggregator
from app.services.measurement_service import (
    DEVICE_NOTE,
    MeasurementService,
    format_series,
    parse_series,
    summarize,
)
from app.services.reading_classifier import Reading, ReadingClassifier


class FakeLink:
    """Stands in for DeviceLink; tests set latest_force by hand"""

    def __init__(self):
        self.state = LinkState.DISCONNECTED
        self.latest_force = 0.0
        self.connect_calls = 0
        self.disconnect_calls = 0

    async def connect(self):
        self.connect_calls += 1
        self.state = LinkState.CONNECTED

    async def disconnect(self):
        self.disconnect_calls += 1
        self.state = LinkState.DISCONNECTED
        self.latest_force = 0.0


async def count_measurements(db) -> int:
    result = await db.execute(select(func.count(Measurement.id)))
    return result.scalar_one()


@pytest.mark.unit
def test_classifier_tags_active_category():
    classifier = ReadingClassifier()
    assert classifier.active_category == MeasurementCategory.UNILATERAL_LEFT

    classifier.select(MeasurementCategory.INCISORS)
    assert classifier.capture_current(42.5) == Reading(42.5, MeasurementCategory.INCISORS)


@pytest.mark.unit
@pytest.mark.parametrize("value", [0, 0.0, -3, float("nan"), float("inf"), None])
def test_classifier_ignores_no_contact(value):
    assert ReadingClassifier().capture_current(value) is None


@pytest.mark.unit
def test_aggregator_appends_only_to_reading_category():
    aggregator = MeasurementAggregator()
    assert aggregator.is_empty()

    aggregator.record(Reading(60.0, MeasurementCategory.UNILATERAL_RIGHT))
    aggregator.record(Reading(43.0, MeasurementCategory.UNILATERAL_RIGHT))

    assert aggregator.series(MeasurementCategory.UNILATERAL_RIGHT) == [60.0, 43.0]
    assert all(
        aggregator.series(category) == []
        for category in MeasurementCategory
        if category != MeasurementCategory.UNILATERAL_RIGHT
    )
    assert len(aggregator) == 2

    aggregator.reset()
    assert aggregator.is_empty()
    assert set(aggregator.batch) == set(MeasurementCategory)


@pytest.mark.unit
def test_batch_is_a_copy():
    aggregator = MeasurementAggregator()
    aggregator.record(Reading(10.0, MeasurementCategory.INCISORS))
    aggregator.batch[MeasurementCategory.INCISORS].append(99.0)
    assert aggregator.series(MeasurementCategory.INCISORS) == [10.0]


@pytest.mark.unit
def test_series_encoding():
    assert format_series([]) == ""
    assert format_series([60, 43.5, 20.456]) == "60.00, 43.50, 20.46"
    assert parse_series(format_series([60, 43.5, 20.456])) == [60.0, 43.5, 20.46]
    assert parse_series("") == []
    assert parse_series(None) == []
    assert parse_series("32,54 ,  76,") == [32.0, 54.0, 76.0]


@pytest.mark.unit
def test_parse_series_rejects_garbage():
    with pytest.raises(ValidationException):
        parse_series("32, lots")


@pytest.mark.unit
@pytest.mark.parametrize("text", ["inf", "20, -inf", "1e400", "nan"])
def test_parse_series_rejects_non_finite(text):
    with pytest.raises(ValidationException):
        parse_series(text)


@pytest.mark.unit
def test_summarize_uses_chronological_latest():
    newer = Measurement(incisors="50.00")
    older = Measurement(incisors="60.00, 40.00")
    summary = summarize([newer, older])
    assert summary[MeasurementCategory.INCISORS] == {"count": 3, "mean": 50.0, "max": 60.0, "latest": 50.0}
    assert summary[MeasurementCategory.BILATERAL_LEFT]["count"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_flush_stores_one_row_and_resets(db_session, doctor_auth, patient_record):
    aggregator = MeasurementAggregator()
    aggregator.record(Reading(60.0, MeasurementCategory.UNILATERAL_LEFT))
    aggregator.record(Reading(43.0, MeasurementCategory.UNILATERAL_LEFT))
    aggregator.record(Reading(32.0, MeasurementCategory.INCISORS))

    saved = []
    service = MeasurementService(db_session, doctor_auth)
    service.add_listener(saved.append)

    row = await service.flush(patient_record.id, aggregator)

    assert row.unilateral_left == "60.00, 43.00"
    assert row.incisors == "32.00"
    assert row.unilateral_right == ""
    assert row.notes == DEVICE_NOTE
    assert aggregator.is_empty()
    assert saved == [row]
    assert await count_measurements(db_session) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_flush_is_rejected_without_write(db_session, doctor_auth, patient_record):
    service = MeasurementService(db_session, doctor_auth)
    with pytest.raises(EmptyMeasurementBatch):
        await service.flush(patient_record.id, MeasurementAggregator())
    assert await count_measurements(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_store_error_keeps_batch_for_retry(db_session, doctor_auth, patient_record, monkeypatch):
    patient_id = patient_record.id
    aggregator = MeasurementAggregator()
    aggregator.record(Reading(20.5, MeasurementCategory.BILATERAL_LEFT))

    real_commit = db_session.commit
    failures = []

    async def failing_commit():
        if not failures:
            failures.append(True)
            raise OperationalError("INSERT INTO measurements", {}, Exception("database is locked"))
        await real_commit()

    monkeypatch.setattr(db_session, "commit", failing_commit)
    service = MeasurementService(db_session, doctor_auth)

    with pytest.raises(PersistenceFailed) as exc_info:
        await service.flush(patient_id, aggregator)
    assert exc_info.value.status_code == 500
    assert exc_info.value.code
    assert "database is locked" in exc_info.value.details["message"]
    assert aggregator.series(MeasurementCategory.BILATERAL_LEFT) == [20.5]

    row = await service.flush(patient_id, aggregator)
    assert row.bilateral_left == "20.50"
    assert aggregator.is_empty()
    assert await count_measurements(db_session) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_flush_for_unowned_patient_keeps_batch(db_session, other_doctor, patient_record):
    aggregator = MeasurementAggregator()
    aggregator.record(Reading(15.0, MeasurementCategory.INCISORS))
    service = MeasurementService(db_session, AuthSession(user_id=other_doctor.id, role=UserRole.DOCTOR))

    with pytest.raises(NotFoundException):
        await service.flush(patient_record.id, aggregator)
    assert len(aggregator) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_flush_requires_doctor(db_session, patient_user, patient_record):
    aggregator = MeasurementAggregator()
    aggregator.record(Reading(15.0, MeasurementCategory.INCISORS))
    service = MeasurementService(db_session, AuthSession(user_id=patient_user.id, role=UserRole.PATIENT))

    with pytest.raises(ForbiddenException):
        await service.flush(patient_record.id, aggregator)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_capture_session_records_only_positive_readings(db_session, doctor_auth, patient_record):
    link = FakeLink()
    session = CaptureSession(patient_record.id, link, MeasurementService(db_session, doctor_auth))

    async with session:
        assert link.state == LinkState.CONNECTED
        session.select_category(MeasurementCategory.BILATERAL_RIGHT)
        for force in (0.0, 20.5, -3.0):
            link.latest_force = force
            session.capture()
        row = await session.flush()

    assert row.bilateral_right == "20.50"
    for category in MeasurementCategory:
        if category != MeasurementCategory.BILATERAL_RIGHT:
            assert row.series_text(category) == ""
    assert link.disconnect_calls == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_capture_session_discards_unflushed_on_exit(db_session, doctor_auth, patient_record):
    link = FakeLink()
    session = CaptureSession(patient_record.id, link, MeasurementService(db_session, doctor_auth))

    async with session:
        link.latest_force = 55.0
        assert session.capture() == Reading(55.0, MeasurementCategory.UNILATERAL_LEFT)

    assert session.aggregator.is_empty()
    assert link.state == LinkState.DISCONNECTED
    assert await count_measurements(db_session) == 0
