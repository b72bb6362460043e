"""
Measurement endpoint tests
"""
import pytest

from app.models import Measurement
from tests.conftest import headers_for


@pytest.mark.asyncio
@pytest.mark.integration
async def test_manual_entry_normalizes_and_drops_non_positive(client, doctor_headers, patient_record):
    response = await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={
            "unilateral_left": "60, 43.5, 0, 65",
            "bilateral_right": "-3",
            "incisors": "32",
        },
        headers=doctor_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["unilateral_left"] == "60.00, 43.50, 65.00"
    assert data["unilateral_right"] == ""
    assert data["bilateral_right"] == ""
    assert data["incisors"] == "32.00"
    assert data["notes"] == "Recorded manually"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_manual_entry_without_readings_is_rejected(client, doctor_headers, patient_record):
    response = await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"unilateral_left": "0, -1", "notes": "nothing usable"},
        headers=doctor_headers
    )
    assert response.status_code == 422
    assert response.json()["error"]["type"] == "EmptyMeasurementBatch"

    response = await client.get(f"/api/v1/patients/{patient_record.id}/measurements", headers=doctor_headers)
    assert response.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_manual_entry_rejects_non_numeric(client, doctor_headers, patient_record):
    response = await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"incisors": "32, abc"},
        headers=doctor_headers
    )
    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationException"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_manual_entry_rejects_non_finite(client, doctor_headers, patient_record):
    response = await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"incisors": "1e400, 20"},
        headers=doctor_headers
    )
    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationException"

    response = await client.get(f"/api/v1/patients/{patient_record.id}/measurements", headers=doctor_headers)
    assert response.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_history_is_newest_first(client, doctor_headers, patient_record):
    for value in ("10", "20", "30"):
        await client.post(
            f"/api/v1/patients/{patient_record.id}/measurements",
            json={"incisors": value},
            headers=doctor_headers
        )

    response = await client.get(f"/api/v1/patients/{patient_record.id}/measurements", headers=doctor_headers)
    assert response.status_code == 200
    assert [m["incisors"] for m in response.json()] == ["30.00", "20.00", "10.00"]

    response = await client.get(
        f"/api/v1/patients/{patient_record.id}/measurements",
        params={"limit": 1, "offset": 1},
        headers=doctor_headers
    )
    assert [m["incisors"] for m in response.json()] == ["20.00"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_summary(client, doctor_headers, patient_record):
    await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"unilateral_left": "60, 40"},
        headers=doctor_headers
    )
    await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"unilateral_left": "50", "incisors": "20"},
        headers=doctor_headers
    )

    response = await client.get(
        f"/api/v1/patients/{patient_record.id}/measurements/summary",
        headers=doctor_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["record_count"] == 2
    left = data["categories"]["unilateral_left"]
    assert left == {"count": 3, "mean": 50.0, "max": 60.0, "latest": 50.0}
    assert data["categories"]["bilateral_left"]["count"] == 0
    assert data["categories"]["bilateral_left"]["mean"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_summary_counts_every_record(client, db_session, doctor_headers, patient_record):
    db_session.add_all([Measurement(patient_id=patient_record.id, incisors="10.00") for _ in range(150)])
    await db_session.commit()

    response = await client.get(
        f"/api/v1/patients/{patient_record.id}/measurements/summary",
        headers=doctor_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["record_count"] == 150
    assert data["categories"]["incisors"]["count"] == 150

    response = await client.get(
        f"/api/v1/patients/{patient_record.id}/measurements",
        headers=doctor_headers
    )
    assert len(response.json()) == 100


@pytest.mark.asyncio
@pytest.mark.integration
async def test_linked_patient_reads_own_history_only(
    client, doctor_headers, patient_headers, patient_record
):
    await client.post(
        "/api/v1/patients/link",
        json={"patient_code": "100", "name": "Pat Incisor"},
        headers=patient_headers
    )
    await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"incisors": "25"},
        headers=doctor_headers
    )

    response = await client.get(f"/api/v1/patients/{patient_record.id}/measurements", headers=patient_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1

    response = await client.get(f"/api/v1/patients/{patient_record.id + 1}/measurements", headers=patient_headers)
    assert response.status_code == 404

    response = await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"incisors": "25"},
        headers=patient_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_measurement(client, doctor_headers, other_doctor, patient_record):
    response = await client.post(
        f"/api/v1/patients/{patient_record.id}/measurements",
        json={"incisors": "25"},
        headers=doctor_headers
    )
    measurement_id = response.json()["id"]

    response = await client.delete(f"/api/v1/measurements/{measurement_id}", headers=headers_for(other_doctor))
    assert response.status_code == 404

    response = await client.delete(f"/api/v1/measurements/{measurement_id}", headers=doctor_headers)
    assert response.status_code == 204

    response = await client.get(f"/api/v1/patients/{patient_record.id}/measurements", headers=doctor_headers)
    assert response.json() == []
