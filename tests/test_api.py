"""
HTTP API tests with the store and side effects replaced by in-memory fakes.

The app lifespan (MongoDB, sweepers) is not entered: the client is used
without a ``with`` block.
"""

import pytest
from fastapi.testclient import TestClient

from clinicflow.api import deps
from clinicflow.app import app
from clinicflow.application.use_cases.side_effects import SideEffectDispatcher

from fakes import (
    InMemoryAppointmentRepository,
    InMemoryCheckInRepository,
    InMemoryDoctorStatusRepository,
    RecordingAuditService,
    RecordingPublisher,
)

STAFF = {"X-API-Key": "staff-key"}
NURSE = {"X-API-Key": "nurse-key"}
DOCTOR = {"X-API-Key": "doctor-key"}
DOCTOR2 = {"X-API-Key": "doctor2-key"}
ADMIN = {"X-API-Key": "admin-key"}
PATIENT = {"X-API-Key": "patient-key"}
PATIENT2 = {"X-API-Key": "patient2-key"}


@pytest.fixture
def client():
    checkins = InMemoryCheckInRepository()
    doctors = InMemoryDoctorStatusRepository()
    appointments = InMemoryAppointmentRepository()
    dispatcher = SideEffectDispatcher(RecordingAuditService(), RecordingPublisher())

    app.dependency_overrides[deps.get_checkin_repository] = lambda: checkins
    app.dependency_overrides[deps.get_doctor_status_repository] = lambda: doctors
    app.dependency_overrides[deps.get_appointment_repository] = lambda: appointments
    app.dependency_overrides[deps.get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[deps.get_inventory_service] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def check_in(client, patient_id="P-100", headers=STAFF, **extra):
    payload = {"patient_id": patient_id, "service_type": "General consultation"}
    payload.update(extra)
    return client.post("/checkups/check-in", json=payload, headers=headers)


def queue_patient(client, patient_id="P-100"):
    session_id = check_in(client, patient_id).json()["data"]["session_id"]
    client.post(f"/checkups/{session_id}/vital-signs", json={"temperature": 37.2}, headers=NURSE)
    client.post(f"/checkups/{session_id}/notify-doctor", headers=NURSE)
    return session_id


def test_missing_api_key_is_rejected(client):
    response = client.get("/checkups/today")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "UNAUTHORIZED"


def test_invalid_bearer_token_is_rejected(client):
    response = client.get("/checkups/today", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_full_visit_over_http(client):
    response = check_in(client, priority="High")
    assert response.status_code == 201
    session = response.json()["data"]
    session_id = session["session_id"]
    assert session["status"] == "waiting"
    assert session["priority"] == "High"

    response = client.post(
        f"/checkups/{session_id}/vital-signs",
        json={"temperature": 37.4, "heart_rate": 88, "systolic_bp": 118, "diastolic_bp": 76},
        headers=NURSE,
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "vitals-collected"
    assert response.json()["data"]["vital_signs"]["heart_rate"] == 88

    response = client.post(f"/checkups/{session_id}/notify-doctor", headers=NURSE)
    assert response.json()["data"]["status"] == "doctor-notified"

    assert client.post("/doctor-sessions/login", headers=DOCTOR).json()["data"]["status"] == "online"

    queue = client.get("/doctor-queue/", headers=DOCTOR).json()["data"]
    assert [entry["session"]["session_id"] for entry in queue] == [session_id]
    assert queue[0]["position"] == 1

    response = client.post(f"/doctor-queue/{session_id}/start", headers=DOCTOR)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "in-progress"
    assert response.json()["data"]["assigned_doctor_id"] == "DR-1"

    status = client.get("/doctor-sessions/status/DR-1", headers=STAFF).json()["data"]
    assert status["status"] == "busy"
    assert status["current_patient_id"] == "P-100"

    response = client.post(
        f"/doctor-queue/{session_id}/complete",
        json={
            "clinical_notes": {"chief_complaint": "Cough", "diagnosis": "URTI"},
            "prescriptions": [{"medication_name": "Paracetamol", "dosage": "500mg", "quantity": 10}],
        },
        headers=DOCTOR,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["session"]["status"] == "completed"
    assert data["session"]["clinical_notes"]["diagnosis"] == "URTI"
    assert data["stock_warnings"] == []

    assert client.get("/doctor-sessions/status/DR-1", headers=STAFF).json()["data"]["status"] == "online"

    stats = client.get("/checkups/stats/today", headers=STAFF).json()["data"]
    assert stats["total"] == 1
    assert stats["completed"] == 1

    history = client.get("/checkups/history/P-100", headers=PATIENT).json()["data"]
    assert [s["session_id"] for s in history] == [session_id]


def test_duplicate_check_in_conflicts(client):
    assert check_in(client).status_code == 201

    response = check_in(client)
    assert response.status_code == 409
    assert response.json()["error"] == "DUPLICATE_ACTIVE_SESSION"


def test_notify_before_vitals_conflicts(client):
    session_id = check_in(client).json()["data"]["session_id"]

    response = client.post(f"/checkups/{session_id}/notify-doctor", headers=NURSE)
    assert response.status_code == 409
    assert response.json()["error"] == "INVALID_TRANSITION"


def test_start_with_offline_doctor_conflicts(client):
    session_id = queue_patient(client)

    response = client.post(f"/doctor-queue/{session_id}/start", headers=DOCTOR)
    assert response.status_code == 409
    assert response.json()["error"] == "NOT_ONLINE"


def test_staff_must_name_the_doctor_when_starting(client):
    session_id = queue_patient(client)

    response = client.post(f"/doctor-queue/{session_id}/start", headers=ADMIN)
    assert response.status_code == 422


def test_patient_cannot_record_vitals(client):
    session_id = check_in(client).json()["data"]["session_id"]

    response = client.post(f"/checkups/{session_id}/vital-signs", json={"temperature": 37.0}, headers=PATIENT)
    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN_ACTION"


def test_patient_self_check_in(client):
    response = check_in(client, headers=PATIENT, check_in_method="self-service")
    assert response.status_code == 201
    session_id = response.json()["data"]["session_id"]

    assert client.get(f"/checkups/{session_id}", headers=PATIENT).status_code == 200
    assert client.get(f"/checkups/{session_id}", headers=PATIENT2).status_code == 403
    assert check_in(client, "P-300", headers=PATIENT, check_in_method="self-service").status_code == 403


def test_unknown_session_is_404(client):
    response = client.get("/checkups/CHK-20300115-00000000", headers=STAFF)
    assert response.status_code == 404
    assert response.json()["error"] == "CHECKIN_SESSION_NOT_FOUND"


def test_out_of_range_vitals_are_422(client):
    session_id = check_in(client).json()["data"]["session_id"]

    response = client.post(f"/checkups/{session_id}/vital-signs", json={"temperature": 60}, headers=NURSE)
    assert response.status_code == 422
    assert response.json()["error"] == "INVALID_INPUT"


def test_cancel_check_in_with_reason(client):
    session_id = check_in(client).json()["data"]["session_id"]

    response = client.post(f"/checkups/{session_id}/cancel", json={"reason": "Left the clinic"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"
    assert response.json()["data"]["cancellation_reason"] == "Left the clinic"
    assert check_in(client).status_code == 201


def test_heartbeat_and_logout(client):
    assert client.post("/doctor-sessions/heartbeat", headers=DOCTOR).json()["data"]["active"] is False

    client.post("/doctor-sessions/login", headers=DOCTOR)
    assert client.post("/doctor-sessions/heartbeat", headers=DOCTOR).json()["data"]["active"] is True

    response = client.post("/doctor-sessions/heartbeat", json={"doctor_id": "DR-1"}, headers=DOCTOR2)
    assert response.status_code == 403

    assert client.post("/doctor-sessions/logout", headers=DOCTOR).json()["data"]["status"] == "offline"
    statuses = client.get("/doctor-sessions/all", headers=STAFF).json()["data"]
    assert [(s["doctor_id"], s["status"]) for s in statuses] == [("DR-1", "offline")]


def test_stale_sweep_requires_admin(client):
    assert client.post("/doctor-sessions/maintenance/sweep-stale", headers=STAFF).status_code == 403

    response = client.post("/doctor-sessions/maintenance/sweep-stale", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["data"] == {"count": 0, "ids": []}


def test_appointment_flow(client):
    response = client.post(
        "/appointments/",
        json={
            "patient_id": "P-100",
            "appointment_date": "2030-01-15",
            "appointment_time": "09:00",
            "doctor_id": "DR-1",
            "notes": "Annual physical",
        },
        headers=STAFF,
    )
    assert response.status_code == 201
    appointment = response.json()["data"]
    appointment_id = appointment["appointment_id"]
    assert appointment["status"] == "Scheduled"

    clash = client.post(
        "/appointments/",
        json={"patient_id": "P-200", "appointment_date": "2030-01-15", "appointment_time": "09:15", "doctor_id": "DR-1"},
        headers=STAFF,
    )
    assert clash.status_code == 409
    assert clash.json()["error"] == "SLOT_CONFLICT"

    assert client.post(f"/appointments/{appointment_id}/accept", headers=PATIENT2).status_code == 403
    assert client.get(f"/appointments/{appointment_id}", headers=PATIENT2).status_code == 403

    response = client.post(f"/appointments/{appointment_id}/accept", headers=PATIENT)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "Confirmed"

    listed = client.get("/appointments/", params={"date": "2030-01-15"}, headers=DOCTOR).json()["data"]
    assert [a["appointment_id"] for a in listed] == [appointment_id]
    assert client.get("/appointments/", params={"date": "2030-01-15"}, headers=PATIENT).status_code == 403

    mine = client.get("/appointments/patient/P-100", headers=PATIENT).json()["data"]
    assert [a["appointment_id"] for a in mine] == [appointment_id]

    response = client.post(
        f"/appointments/{appointment_id}/complete",
        json={"diagnosis": "Healthy", "treatment": "None"},
        headers=DOCTOR,
    )
    assert response.status_code == 200
    completed = response.json()["data"]
    assert completed["status"] == "Completed"
    assert completed["notes"] == "Annual physical"

    again = client.post(f"/appointments/{appointment_id}/complete", headers=DOCTOR)
    assert again.status_code == 409


def test_appointment_validation(client):
    bad_time = client.post(
        "/appointments/",
        json={"patient_id": "P-100", "appointment_date": "2030-01-15", "appointment_time": "9am"},
        headers=STAFF,
    )
    assert bad_time.status_code == 422

    created = client.post(
        "/appointments/",
        json={"patient_id": "P-100", "appointment_date": "2030-01-15", "appointment_time": "09:00"},
        headers=STAFF,
    ).json()["data"]
    response = client.post(f"/appointments/{created['appointment_id']}/reject", json={"reason": ""}, headers=PATIENT)
    assert response.status_code == 422


def test_overdue_sweep_endpoint(client):
    client.post(
        "/appointments/",
        json={"patient_id": "P-100", "appointment_date": "2020-01-15", "appointment_time": "09:00"},
        headers=STAFF,
    )

    assert client.post("/appointments/maintenance/sweep-overdue", headers=STAFF).status_code == 403
    response = client.post("/appointments/maintenance/sweep-overdue", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["data"]["count"] == 1
