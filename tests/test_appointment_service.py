import threading
from unittest.mock import MagicMock

import pytest

from booking_core.config.database import build_engine, build_session_factory, create_tables
from booking_core.core.errors import (
    BusinessUnavailableError,
    ConflictError,
    NotFoundError,
    OptimisticLockError,
    ValidationError,
)
from booking_core.models import Appointment, AvailabilityException, NotificationQueueEntry
from booking_core.services.appointment.appointment_service import AppointmentService
from tests.conftest import MONDAY, TUESDAY, seed_business


@pytest.fixture
def store(session_factory):
    """Appointment store without notifications"""
    return AppointmentService(session_factory)


# ============================================================================
# CREATE
# ============================================================================


def test_create_books_pending_appointment(store, booking_request, seeded):
    _, service = seeded
    appointment = store.create(booking_request("09:00"))

    assert appointment.end_time == "10:00"
    assert appointment.status == "pending"
    assert appointment.version == 1
    assert appointment.service_price == service.price
    assert len(appointment.confirmation_number) == 8
    assert appointment.confirmation_number.isalnum()
    assert appointment.confirmation_number == appointment.confirmation_number.upper()


def test_touching_appointments_both_succeed(store, booking_request):
    first = store.create(booking_request("09:00"))
    second = store.create(booking_request("10:00", customer_email="bob@example.com"))

    assert (first.start_time, first.end_time) == ("09:00", "10:00")
    assert (second.start_time, second.end_time) == ("10:00", "11:00")


def test_overlapping_appointment_is_rejected(store, booking_request, db):
    store.create(booking_request("09:00"))

    with pytest.raises(ConflictError) as exc_info:
        store.create(booking_request("09:30"))

    assert exc_info.value.status_code == 409
    assert db.query(Appointment).count() == 1


def test_before_opening_is_outside_business_hours(store, booking_request):
    store.create(booking_request("09:00"))

    with pytest.raises(BusinessUnavailableError) as exc_info:
        store.create(booking_request("08:00"))

    assert exc_info.value.reason == "Appointment time is outside business hours (09:00 - 17:00)"


def test_closing_time_boundary(store, booking_request):
    assert store.create(booking_request("16:00")).end_time == "17:00"


def test_past_closing_time_is_outside_business_hours(store, booking_request):
    with pytest.raises(BusinessUnavailableError):
        store.create(booking_request("16:30"))


def test_conflict_is_reported_before_business_hours(store, booking_request):
    store.create(booking_request("16:00"))

    # Overlaps the 16:00 booking and also runs past closing
    with pytest.raises(ConflictError):
        store.create(booking_request("16:30"))


def test_day_without_hours_is_unavailable(store, booking_request):
    with pytest.raises(BusinessUnavailableError) as exc_info:
        store.create(booking_request("09:00", date=TUESDAY))

    assert exc_info.value.reason == "Business is not available on Tuesday"


def test_closed_exception_always_fails(store, booking_request, db, seeded):
    business, _ = seeded
    db.add(AvailabilityException(business_id=business.id, date=MONDAY, is_available=False, reason="Staff training"))
    db.commit()

    for start in ("09:00", "12:00", "16:00"):
        with pytest.raises(BusinessUnavailableError) as exc_info:
            store.create(booking_request(start))
        assert exc_info.value.reason == "Staff training"


def test_ending_after_midnight_is_a_validation_error(store, booking_request):
    with pytest.raises(ValidationError) as exc_info:
        store.create(booking_request("23:30"))

    assert exc_info.value.field == "start_time"


def test_unknown_service_is_not_found(store, booking_request):
    with pytest.raises(NotFoundError):
        store.create(booking_request("09:00", service_id="00000000-0000-0000-0000-000000000001"))


def test_service_of_another_business_is_not_found(store, booking_request, db):
    _, other_service = seed_business(db)

    with pytest.raises(NotFoundError):
        store.create(booking_request("09:00", service_id=str(other_service.id)))


def test_unknown_business_is_not_found(store, booking_request):
    with pytest.raises(NotFoundError):
        store.create(booking_request("09:00", business_id="00000000-0000-0000-0000-000000000002"))


def test_scheduler_failure_never_rolls_back_booking(session_factory, booking_request, db):
    scheduler = MagicMock()
    scheduler.schedule_booking_confirmation.side_effect = RuntimeError("queue down")
    store = AppointmentService(session_factory, notification_scheduler=scheduler)

    appointment = store.create(booking_request("09:00"))

    assert db.get(Appointment, appointment.id) is not None
    scheduler.schedule_booking_confirmation.assert_called_once()


def test_create_enqueues_confirmation(services, booking_request, db):
    appointment = services.appointments.create(booking_request("09:00"))

    types = sorted(entry.type for entry in db.query(NotificationQueueEntry).all())
    assert types == ["booking_confirmation", "business_new_booking"]
    assert all(e.payload["appointment_id"] == str(appointment.id) for e in db.query(NotificationQueueEntry))


# ============================================================================
# VALIDATE ONLY
# ============================================================================


def test_validate_booking_reports_failing_step(store, booking_request):
    from booking_core.schemas.booking import AvailabilityCheckRequest

    store.create(booking_request("09:00"))
    check = store.validate_booking(AvailabilityCheckRequest(**booking_request("09:30")))

    assert not check.ok
    assert check.step == "check_conflicts"
    assert check.error_code == "BOOKING_CONFLICT"
    assert check.end_time == "10:30"


def test_validate_booking_writes_nothing(store, booking_request, db):
    from booking_core.schemas.booking import AvailabilityCheckRequest

    check = store.validate_booking(AvailabilityCheckRequest(**booking_request("11:00")))

    assert check.ok
    assert check.end_time == "12:00"
    assert db.query(Appointment).count() == 0


# ============================================================================
# UPDATE
# ============================================================================


def test_stale_version_fails_and_leaves_row_untouched(store, booking_request, db):
    appointment = store.create(booking_request("09:00"))
    store.update(appointment.id, {"notes": "first edit"}, expected_version=1)

    with pytest.raises(OptimisticLockError):
        store.update(appointment.id, {"notes": "stale edit"}, expected_version=1)

    row = db.get(Appointment, appointment.id)
    assert row.notes == "first edit"
    assert row.version == 2


def test_update_with_current_version_increments_by_one(store, booking_request):
    appointment = store.create(booking_request("09:00"))

    updated = store.update(appointment.id, {"notes": "Window seat"}, expected_version=1)
    assert updated.version == 2
    assert updated.notes == "Window seat"

    updated = store.update(appointment.id, {"notes": "Aisle seat"})
    assert updated.version == 3


def test_expected_version_in_changes_is_honoured(store, booking_request):
    appointment = store.create(booking_request("09:00"))

    with pytest.raises(OptimisticLockError):
        store.update(appointment.id, {"notes": "x", "expected_version": 7})


def test_status_machine(store, booking_request):
    appointment = store.create(booking_request("09:00"))

    with pytest.raises(ValidationError) as exc_info:
        store.update_status(appointment.id, "completed")
    assert exc_info.value.field == "status"

    assert store.update_status(appointment.id, "confirmed").status == "confirmed"
    assert store.update_status(appointment.id, "completed").status == "completed"

    with pytest.raises(ValidationError):
        store.update_status(appointment.id, "cancelled")


def test_cancelled_is_terminal(store, booking_request):
    appointment = store.create(booking_request("09:00"))
    store.cancel(appointment.id)

    with pytest.raises(ValidationError):
        store.update_status(appointment.id, "confirmed")


def test_cancel_frees_the_slot(store, booking_request):
    appointment = store.create(booking_request("09:00"))
    store.cancel(appointment.id, expected_version=1)

    rebooked = store.create(booking_request("09:00", customer_email="eve@example.com"))
    assert rebooked.start_time == "09:00"


def test_reschedule_into_conflict_is_rejected(store, booking_request, db):
    first = store.create(booking_request("09:00"))
    second = store.create(booking_request("11:00", customer_email="bob@example.com"))

    with pytest.raises(ConflictError):
        store.update(second.id, {"start_time": "09:30"})

    row = db.get(Appointment, second.id)
    assert (row.start_time, row.version) == ("11:00", 1)
    assert db.get(Appointment, first.id).start_time == "09:00"


def test_reschedule_may_overlap_its_own_old_slot(store, booking_request):
    appointment = store.create(booking_request("09:00"))

    moved = store.update(appointment.id, {"start_time": "09:30"})

    assert (moved.start_time, moved.end_time, moved.version) == ("09:30", "10:30", 2)


def test_reschedule_outside_hours_is_rejected(store, booking_request):
    appointment = store.create(booking_request("09:00"))

    with pytest.raises(BusinessUnavailableError):
        store.update(appointment.id, {"appointment_date": TUESDAY})


def test_missing_appointment_is_not_found(store, seeded):
    with pytest.raises(NotFoundError):
        store.update("00000000-0000-0000-0000-000000000003", {"notes": "x"})


# ============================================================================
# READS
# ============================================================================


def test_lookup_by_confirmation_number_ignores_case(store, booking_request):
    appointment = store.create(booking_request("09:00"))

    found = store.get_by_confirmation_number(appointment.confirmation_number.lower())

    assert found.id == appointment.id


def test_lookup_of_unknown_code_is_not_found(store, seeded):
    with pytest.raises(NotFoundError):
        store.get_by_confirmation_number("ZZZZZZZZ")


def test_list_for_business_filters_and_orders(store, booking_request, seeded):
    business, _ = seeded
    later = store.create(booking_request("13:00"))
    earlier = store.create(booking_request("09:00", customer_email="bob@example.com"))
    store.cancel(later.id)

    assert [a.id for a in store.list_for_business(business.id)] == [earlier.id, later.id]
    assert [a.id for a in store.list_for_business(business.id, status="pending")] == [earlier.id]
    assert store.list_for_business(business.id, date_from=TUESDAY) == []


# ============================================================================
# CONCURRENCY
# ============================================================================


def _race(tmp_path, booking_request, start_times):
    """Book every start time from its own thread against one file-backed db"""
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    create_tables(engine)
    factory = build_session_factory(engine)

    seed_session = factory()
    business, service = seed_business(seed_session)
    seed_session.close()

    store = AppointmentService(factory)
    barrier = threading.Barrier(len(start_times))
    results = []
    lock = threading.Lock()

    def attempt(i, start_time):
        request = booking_request(
            start_time,
            business_id=str(business.id),
            service_id=str(service.id),
            customer_email=f"racer{i}@example.com",
        )
        barrier.wait()
        try:
            outcome = store.create(request)
        except ConflictError as e:
            outcome = e
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt, args=(i, start)) for i, start in enumerate(start_times)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    check = factory()
    active = check.query(Appointment).filter(Appointment.status.in_(["pending", "confirmed"])).all()
    check.close()
    engine.dispose()
    return results, active


def test_concurrent_bookings_of_one_slot_have_a_single_winner(tmp_path, booking_request):
    results, active = _race(tmp_path, booking_request, ["09:00"] * 5)

    winners = [r for r in results if isinstance(r, Appointment)]
    losers = [r for r in results if isinstance(r, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 4
    assert len(active) == 1


def test_concurrent_overlapping_bookings_never_overlap(tmp_path, booking_request):
    # Every pair overlaps for a 60-minute service, none share a start time
    results, active = _race(tmp_path, booking_request, ["09:00", "09:15", "09:30", "09:45"])

    winners = [r for r in results if isinstance(r, Appointment)]
    losers = [r for r in results if isinstance(r, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 3
    assert len(active) == 1
    assert active[0].start_time == winners[0].start_time


def test_concurrent_disjoint_bookings_all_succeed(tmp_path, booking_request):
    results, active = _race(tmp_path, booking_request, ["09:00", "10:00", "11:00"])

    assert all(isinstance(r, Appointment) for r in results)
    assert sorted(a.start_time for a in active) == ["09:00", "10:00", "11:00"]
    ordered = sorted(active, key=lambda a: a.start_time)
    for earlier, later in zip(ordered, ordered[1:]):
        assert earlier.end_time <= later.start_time
