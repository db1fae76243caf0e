import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from app.application.services.appointments_service import PatientInfo
from app.application.services.links_service import DEFAULT_LINK_REASON
from app.exceptions import (
    LinkDoctorMismatchError,
    LinkExhaustedError,
    LinkExpiredError,
    LinkInactiveError,
    LinkNotFoundError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
)
from app.infrastructure.locks.memory_lock import InMemoryKeyedLock

from fakes import FakeNotifier, Store, build_services, t

DAY = date(2030, 6, 3)


def patient_info(n: int = 1) -> PatientInfo:
    return PatientInfo(first_name=f"Paciente{n}", last_name="Prueba", email=f"p{n}@example.com", phone=f"555-01{n:02d}")


def schedule(links, token, doctor, start, end, n=1):
    return links.schedule_via_link(token, doctor.id, DAY, t(start), t(end), patient_info=patient_info(n))


def test_generate_link_defaults_and_url():
    store, _, links = build_services()
    doctor = store.add_doctor()
    out = links.generate_link(doctor_id=doctor.id)
    assert len(out.link.token) == 64
    assert out.link.max_uses == 1
    assert out.link.current_uses == 0
    assert out.url == f"https://clinic.test/schedule-appointment/{out.link.token}"
    assert out.link.expires_at - datetime.now(timezone.utc) > timedelta(days=89)
    assert links.audit.entries[0][0] == "LINK_GENERATED"


def test_generate_link_validation():
    _, _, links = build_services()
    with pytest.raises(ValidationError):
        links.generate_link(max_uses=0)
    with pytest.raises(ValidationError):
        links.generate_link(expires_in_days=0)
    with pytest.raises(NotFoundError):
        links.generate_link(doctor_id="ghost")


def test_single_use_link_is_exhausted_after_first_booking():
    store, _, links = build_services()
    doctor = store.add_doctor()
    link = links.generate_link(doctor_id=doctor.id).link
    token = link.token

    out = schedule(links, token, doctor, "10:00", "10:30")
    assert out.appointment.reason == DEFAULT_LINK_REASON
    assert store.links[link.id].current_uses == 1

    with pytest.raises(LinkExhaustedError):
        schedule(links, token, doctor, "15:00", "15:30", n=2)
    with pytest.raises(LinkExhaustedError):
        links.get_link_info(token)
    assert len(store.appts) == 1


def test_conflict_does_not_consume_a_use():
    store, svc, links = build_services()
    doctor = store.add_doctor()
    patient = store.add_patient()
    svc.create_appointment(patient.id, doctor.id, None, DAY, t("10:00"), t("10:30"))
    link = links.generate_link(doctor_id=doctor.id, max_uses=2).link

    with pytest.raises(SlotConflictError):
        schedule(links, link.token, doctor, "10:00", "10:30")
    assert store.links[link.id].current_uses == 0
    # the patient staged for the failed booking was rolled back too
    assert svc.patients.get_by_email("p1@example.com") is None

    schedule(links, link.token, doctor, "10:30", "11:00")
    assert store.links[link.id].current_uses == 1


def test_expired_link_fails_every_operation():
    now = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    store, _, links = build_services(clock=lambda: now)
    doctor = store.add_doctor()
    token = links.generate_link(doctor_id=doctor.id, max_uses=5, expires_in_days=1).link.token

    links.clock = lambda: now + timedelta(days=1, seconds=1)
    with pytest.raises(LinkExpiredError):
        links.resolve_link(token)
    with pytest.raises(LinkExpiredError):
        links.get_available_slots(token, doctor.id, DAY)
    with pytest.raises(LinkExpiredError):
        schedule(links, token, doctor, "10:00", "10:30")
    assert store.appts == []


def test_resolve_order_not_found_then_inactive():
    store, _, links = build_services()
    with pytest.raises(LinkNotFoundError):
        links.resolve_link("nope")
    link = links.generate_link().link
    links.deactivate_link(link.id)
    with pytest.raises(LinkInactiveError):
        links.resolve_link(link.token)
    with pytest.raises(LinkInactiveError):
        links.deactivate_link(link.id)
    with pytest.raises(LinkNotFoundError):
        links.deactivate_link("missing")


def test_inactive_wins_over_expired():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    store, _, links = build_services(clock=lambda: now)
    link = links.generate_link(expires_in_days=1).link
    links.deactivate_link(link.id)
    links.clock = lambda: now + timedelta(days=30)
    with pytest.raises(LinkInactiveError):
        links.resolve_link(link.token)


def test_doctor_scoped_link_rejects_other_doctor():
    store, _, links = build_services()
    doctor = store.add_doctor()
    other = store.add_doctor(first_name="Luis", last_name="Martinez")
    token = links.generate_link(doctor_id=doctor.id).link.token
    with pytest.raises(LinkDoctorMismatchError):
        links.get_available_slots(token, other.id, DAY)
    with pytest.raises(LinkDoctorMismatchError):
        schedule(links, token, other, "10:00", "10:30")
    assert links.links.get_by_token(token).current_uses == 0


def test_link_info_scoped_and_unscoped():
    store, _, links = build_services()
    doctor = store.add_doctor()
    store.add_doctor(first_name="Luis", last_name="Martinez")
    scoped = links.get_link_info(links.generate_link(doctor_id=doctor.id).link.token)
    assert scoped.doctor.id == doctor.id
    assert scoped.doctors == []
    open_link = links.get_link_info(links.generate_link().link.token)
    assert open_link.doctor is None
    assert [d.last_name for d in open_link.doctors] == ["Garcia", "Martinez"]


def test_link_slots_require_doctor_and_date():
    store, _, links = build_services()
    doctor = store.add_doctor()
    token = links.generate_link().link.token
    with pytest.raises(ValidationError):
        links.get_available_slots(token, None, DAY)
    assert len(links.get_available_slots(token, doctor.id, DAY)) == 16


def test_link_booking_requires_patient_info():
    store, _, links = build_services()
    doctor = store.add_doctor()
    token = links.generate_link().link.token
    with pytest.raises(ValidationError):
        links.schedule_via_link(token, doctor.id, DAY, t("10:00"), t("10:30"))
    with pytest.raises(ValidationError):
        links.schedule_via_link(token, doctor.id, DAY, t("10:00"), t("10:30"), patient_info=PatientInfo(email="new@example.com"))


def test_concurrent_single_use_link_yields_one_booking():
    store = Store()
    doctor = store.add_doctor()
    locks = InMemoryKeyedLock(timeout=5.0)
    _, _, links = build_services(store=store, locks=locks)
    token = links.generate_link(doctor_id=doctor.id, max_uses=1).link.token
    workers = 6
    barrier = threading.Barrier(workers)
    results = []

    def attempt(n):
        _, _, svc = build_services(store=store, locks=locks)
        barrier.wait()
        start = t(f"{9 + n}:00")
        try:
            svc.schedule_via_link(token, doctor.id, DAY, start, t(f"{9 + n}:30"), patient_info=patient_info(n))
            results.append("ok")
        except LinkExhaustedError:
            results.append("exhausted")

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(workers)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert results.count("ok") == 1
    assert results.count("exhausted") == workers - 1
    assert len(store.appts) == 1
    assert next(iter(store.links.values())).current_uses == 1


def test_slow_delivery_does_not_block_other_bookings_on_the_link():
    store = Store()
    doctor = store.add_doctor()
    locks = InMemoryKeyedLock(timeout=0.3)
    notifier = FakeNotifier(delay=1.0)
    _, _, links = build_services(store=store, locks=locks)
    token = links.generate_link(doctor_id=doctor.id, max_uses=5).link.token
    barrier = threading.Barrier(2)
    results = []

    def attempt(n):
        _, _, svc = build_services(store=store, notifier=notifier, locks=locks)
        barrier.wait()
        try:
            svc.schedule_via_link(token, doctor.id, DAY, t(f"{10 + n}:00"), t(f"{10 + n}:30"), patient_info=patient_info(n))
            results.append("ok")
        except Exception as e:
            results.append(type(e).__name__)

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(2)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert results == ["ok", "ok"]
    assert store.links[next(iter(store.links))].current_uses == 2
    assert len(notifier.emails) == 2


def test_link_booking_side_effects_wait_for_lock_release():
    store, svc, links = build_services()
    doctor = store.add_doctor()
    token = links.generate_link(doctor_id=doctor.id).link.token
    pending = []
    svc.dispatch = lambda task, *args: pending.append((task, args, dict(links.locks._locks)))

    out = schedule(links, token, doctor, "10:00", "10:30")
    assert svc.notifier.emails == []
    assert svc.audit.entries == []
    assert len(pending) == 1

    task, args, held = pending[0]
    assert held == {}
    task(*args)
    assert svc.notifier.emails == [("p1@example.com", "Appointment Scheduled")]
    assert svc.audit.entries == [("APPOINTMENT_CREATED", "Appointment", out.appointment.id, None)]