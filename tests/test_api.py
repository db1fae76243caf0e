from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import select

from app.main import app
from app.models import AppointmentLink, AuditLog, Notification, Patient, User
from app.utils import as_utc, create_jwt_token

DAY = (date.today() + timedelta(days=7)).isoformat()


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def staff(db):
    admin = User(first_name="Admin", last_name="Clinica", email="admin@clinic.test", role="admin")
    doctor = User(first_name="Ana", last_name="Garcia", email="ana@clinic.test", role="doctor", specialization="Retina")
    db.add(admin)
    db.add(doctor)
    patient = Patient(first_name="Juan", last_name="Perez", date_of_birth=date(1980, 1, 1), phone="555-0100", email="juan@example.com")
    db.add(patient)
    db.commit()
    for row in (admin, doctor, patient):
        db.refresh(row)
    return {
        "admin": admin,
        "doctor": doctor,
        "patient": patient,
        "headers": {"Authorization": f"Bearer {create_jwt_token({'sub': admin.id})}"},
        "doctor_headers": {"Authorization": f"Bearer {create_jwt_token({'sub': doctor.id})}"},
    }


def appointment_body(staff, start, end):
    return {
        "patientId": staff["patient"].id,
        "doctorId": staff["doctor"].id,
        "appointmentType": "eye_exam",
        "appointmentDate": DAY,
        "startTime": start,
        "endTime": end,
    }


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["scheduling"]["slot_minutes"] == 30


def test_staff_routes_require_token(client, staff):
    r = client.get("/appointments")
    assert r.status_code == 401
    assert r.json()["success"] is False
    r = client.get("/appointments", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_create_then_conflict(client, staff, db):
    r = client.post("/appointments", json=appointment_body(staff, "10:00", "10:30"), headers=staff["headers"])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["appointment"]["status"] == "scheduled"
    assert body["appointment"]["appointmentType"] == "eye_exam"
    assert body["appointment"]["doctor"]["firstName"] == "Ana"

    r = client.post("/appointments", json=appointment_body(staff, "10:15", "10:45"), headers=staff["headers"])
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Time slot is already booked", "error": "slot_conflict"}

    r = client.post("/appointments", json=appointment_body(staff, "10:30", "11:00"), headers=staff["headers"])
    assert r.status_code == 201

    assert len(db.exec(select(Notification)).all()) == 2
    actions = [a.action for a in db.exec(select(AuditLog)).all()]
    assert actions.count("APPOINTMENT_CREATED") == 2


def test_missing_fields_are_400(client, staff):
    body = appointment_body(staff, "10:00", "10:30")
    del body["startTime"]
    r = client.post("/appointments", json=body, headers=staff["headers"])
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"
    assert "startTime" in r.json()["message"]


def test_available_slots_and_cancel(client, staff):
    created = client.post("/appointments", json=appointment_body(staff, "09:00", "09:30"), headers=staff["headers"]).json()
    params = {"doctorId": staff["doctor"].id, "date": DAY}
    slots = client.get("/appointments/available-slots", params=params, headers=staff["headers"]).json()["availableSlots"]
    assert len(slots) == 15
    assert slots[0] == {"startTime": "09:30:00", "endTime": "10:00:00"}

    appt_id = created["appointment"]["id"]
    r = client.patch(f"/appointments/{appt_id}/cancel", headers=staff["headers"])
    assert r.status_code == 200
    assert r.json()["message"] == "Appointment cancelled successfully"
    slots = client.get("/appointments/available-slots", params=params, headers=staff["headers"]).json()["availableSlots"]
    assert len(slots) == 16


def test_list_get_update_and_status(client, staff):
    created = client.post("/appointments", json=appointment_body(staff, "11:00", "11:30"), headers=staff["headers"]).json()
    appt_id = created["appointment"]["id"]

    listed = client.get("/appointments", params={"date": DAY}, headers=staff["headers"]).json()
    assert listed["pagination"]["total"] == 1

    r = client.put(f"/appointments/{appt_id}", json={"startTime": "11:15", "endTime": "11:45", "notes": "dilate"}, headers=staff["doctor_headers"])
    assert r.status_code == 200, r.text
    assert r.json()["appointment"]["startTime"] == "11:15:00"
    assert r.json()["appointment"]["notes"] == "dilate"

    r = client.patch(f"/appointments/{appt_id}/status", json={"status": "completed"}, headers=staff["headers"])
    assert r.status_code == 400
    r = client.patch(f"/appointments/{appt_id}/status", json={"status": "confirmed"}, headers=staff["headers"])
    assert r.json()["appointment"]["status"] == "confirmed"

    assert client.get(f"/appointments/{appt_id}", headers=staff["headers"]).status_code == 200
    r = client.get("/appointments/does-not-exist", headers=staff["headers"])
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    schedule = client.get(f"/appointments/doctor/{staff['doctor'].id}/schedule", headers=staff["headers"]).json()["schedule"]
    assert [a["id"] for a in schedule] == [appt_id]


def test_doctor_cannot_send_reminders(client, staff):
    r = client.post("/appointments/reminders/send", params={"date": DAY}, headers=staff["doctor_headers"])
    assert r.status_code == 403
    r = client.post("/appointments/reminders/send", params={"date": DAY}, headers=staff["headers"])
    assert r.json() == {"success": True, "sent": 0}


def test_public_booking(client, staff, db):
    r = client.post("/appointments/public", json={
        "firstName": "Maria",
        "lastName": "Lopez",
        "email": "maria@example.com",
        "phone": "555-2000",
        "appointmentDate": DAY,
        "startTime": "14:00",
        "service": "Urgencias",
        "message": "Dolor de ojo",
    })
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["appointment"]["patientName"] == "Maria Lopez"
    assert body["appointment"]["time"] == "14:00:00"
    assert body["appointment"]["date"] == DAY

    maria = db.exec(select(Patient).where(Patient.email == "maria@example.com")).one()
    assert maria.date_of_birth == date(1900, 1, 1)
    assert maria.gender == "other"

    r = client.post("/appointments/public", json={"firstName": "Maria"})
    assert r.status_code == 400
    assert "lastName" in r.json()["message"]


def test_link_flow(client, staff, db):
    r = client.post("/appointment-links/generate", json={"doctorId": staff["doctor"].id}, headers=staff["headers"])
    assert r.status_code == 200, r.text
    token = r.json()["token"]
    assert r.json()["link"].endswith(f"/schedule-appointment/{token}")
    assert r.json()["maxUses"] == 1

    info = client.get(f"/appointment-links/public/{token}").json()
    assert info["link"]["doctor"]["lastName"] == "Garcia"

    slots = client.get(f"/appointment-links/public/{token}/slots", params={"doctorId": staff["doctor"].id, "date": DAY}).json()
    assert slots["availableSlots"][0]["displayTime"] == "9:00 AM"

    payload = {
        "doctorId": staff["doctor"].id,
        "appointmentDate": DAY,
        "startTime": "09:00",
        "endTime": "09:30",
        "patientInfo": {"firstName": "Rosa", "lastName": "Diaz", "phone": "555-3000", "email": "rosa@example.com"},
    }
    r = client.post(f"/appointment-links/public/{token}/schedule", json=payload)
    assert r.status_code == 201, r.text
    assert r.json()["message"] == "Cita programada exitosamente"
    assert r.json()["appointment"]["patient"]["firstName"] == "Rosa"
    # post-commit work ran as a background task
    assert len(db.exec(select(Notification)).all()) == 1
    assert [a.action for a in db.exec(select(AuditLog)).all()].count("APPOINTMENT_CREATED") == 1

    payload["startTime"], payload["endTime"] = "10:00", "10:30"
    r = client.post(f"/appointment-links/public/{token}/schedule", json=payload)
    assert r.status_code == 400
    assert r.json()["error"] == "link_exhausted"

    link = db.exec(select(AppointmentLink).where(AppointmentLink.token == token)).one()
    db.refresh(link)
    assert link.current_uses == 1


def test_link_errors(client, staff, db):
    r = client.get("/appointment-links/public/unknown")
    assert r.status_code == 404
    assert r.json()["message"] == "Link no encontrado"

    expired = AppointmentLink(token="e" * 64, expires_at=datetime.now(timezone.utc) - timedelta(minutes=1), max_uses=3)
    db.add(expired)
    db.commit()
    r = client.get(f"/appointment-links/public/{'e' * 64}")
    assert r.status_code == 400
    assert r.json()["error"] == "link_expired"

    generated = client.post("/appointment-links/generate", json={}, headers=staff["headers"])
    token = generated.json()["token"]
    row = db.exec(select(AppointmentLink).where(AppointmentLink.token == token)).one()
    assert as_utc(row.expires_at) > datetime.now(timezone.utc) + timedelta(days=89)
    r = client.patch(f"/appointment-links/{row.id}/deactivate", headers=staff["headers"])
    assert r.status_code == 200
    r = client.get(f"/appointment-links/public/{token}")
    assert r.json()["error"] == "link_inactive"
