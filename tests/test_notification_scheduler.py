from datetime import datetime, timedelta, timezone

import pytest

from booking_core.core.errors import NotificationSchedulingError
from booking_core.models import Appointment, BusinessNotificationPreferences, NotificationQueueEntry
from booking_core.utils.time_utils import as_utc
from tests.conftest import MONDAY, seed_business

APPOINTMENT_AT = datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)


def _entries(db):
    return db.query(NotificationQueueEntry).order_by(NotificationQueueEntry.scheduled_for).all()


def _customer_types(entries):
    return sorted(e.type for e in entries if e.recipient_type == "customer")


def test_confirmation_is_immediate_for_customer_and_business(services, booking_request, db, clock):
    services.appointments.create(booking_request("09:00"))

    entries = _entries(db)
    assert sorted((e.recipient_type, e.type) for e in entries) == [
        ("business", "business_new_booking"),
        ("customer", "booking_confirmation"),
    ]
    assert all(as_utc(e.scheduled_for) == clock.now for e in entries)
    assert all(e.status == "pending" and e.attempts == 0 for e in entries)


def test_confirmation_payload_pins_the_slot(services, booking_request, db, seeded):
    business, service = seeded
    appointment = services.appointments.create(booking_request("09:00"))

    customer = next(e for e in _entries(db) if e.recipient_type == "customer")
    assert customer.recipient_email == "ada@example.com"
    assert customer.payload["appointment_id"] == str(appointment.id)
    assert customer.payload["service_id"] == str(service.id)
    assert customer.payload["business_id"] == str(business.id)
    assert customer.payload["appointment_date"] == MONDAY
    assert customer.payload["start_time"] == "09:00"


def test_confirming_schedules_all_future_reminders(services, booking_request, db):
    appointment = services.appointments.create(booking_request("09:00"))
    services.appointments.update_status(appointment.id, "confirmed")

    reminders = {e.type: as_utc(e.scheduled_for) for e in _entries(db) if "reminder" in e.type}
    assert reminders == {
        "booking_reminder_24h": APPOINTMENT_AT - timedelta(hours=24),
        "booking_reminder_2h": APPOINTMENT_AT - timedelta(hours=2),
        "booking_reminder_30m": APPOINTMENT_AT - timedelta(minutes=30),
        "business_booking_reminder": APPOINTMENT_AT - timedelta(hours=24),
    }


def test_reminders_in_the_past_are_never_enqueued(services, booking_request, db, clock):
    appointment = services.appointments.create(booking_request("09:00"))
    # Three hours before the appointment: only the 2h and 30m reminders remain
    clock.set(APPOINTMENT_AT - timedelta(hours=3))
    services.appointments.update_status(appointment.id, "confirmed")

    reminder_types = sorted(e.type for e in _entries(db) if "reminder" in e.type)
    assert reminder_types == ["booking_reminder_2h", "booking_reminder_30m"]
    assert all(as_utc(e.scheduled_for) > clock.now for e in _entries(db) if "reminder" in e.type)


def test_cancel_after_start_enqueues_one_customer_message(services, booking_request, db, clock):
    appointment = services.appointments.create(booking_request("09:00"))
    db.query(NotificationQueueEntry).delete()
    db.commit()

    clock.set(datetime(2030, 1, 7, 9, 5, tzinfo=timezone.utc))
    services.appointments.cancel(appointment.id)

    entries = _entries(db)
    assert _customer_types(entries) == ["booking_cancellation"]
    assert not [e for e in entries if "reminder" in e.type]
    assert all(as_utc(e.scheduled_for) == clock.now for e in entries)


def test_reschedule_enqueues_notice_and_new_reminders(services, booking_request, db):
    appointment = services.appointments.create(booking_request("09:00"))
    services.appointments.update_status(appointment.id, "confirmed")
    db.query(NotificationQueueEntry).delete()
    db.commit()

    services.appointments.update(appointment.id, {"start_time": "14:00"})

    entries = _entries(db)
    assert _customer_types(entries) == [
        "booking_reminder_24h",
        "booking_reminder_2h",
        "booking_reminder_30m",
        "booking_rescheduled",
    ]
    assert "business_booking_rescheduled" in {e.type for e in entries}
    reminder = next(e for e in entries if e.type == "booking_reminder_2h")
    assert reminder.payload["start_time"] == "14:00"
    assert as_utc(reminder.scheduled_for) == datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)


def test_business_preferences_switch_off_business_entries(services, booking_request, db, seeded):
    business, _ = seeded
    db.add(BusinessNotificationPreferences(
        business_id=business.id,
        email=False, whatsapp=False, sms=False,
        reminder_email=False, reminder_whatsapp=False, reminder_sms=False,
    ))
    db.commit()

    appointment = services.appointments.create(booking_request("09:00"))
    services.appointments.update_status(appointment.id, "confirmed")

    assert {e.recipient_type for e in _entries(db)} == {"customer"}


def test_reminders_use_business_timezone(services, db, booking_request):
    business, service = seed_business(db, timezone_name="America/New_York")
    appointment = services.appointments.create(
        booking_request("09:00", business_id=str(business.id), service_id=str(service.id))
    )
    services.appointments.update_status(appointment.id, "confirmed")

    reminder = next(e for e in _entries(db) if e.type == "booking_reminder_30m")
    # 09:00 in New York in January is 14:00 UTC
    assert as_utc(reminder.scheduled_for) == datetime(2030, 1, 7, 13, 30, tzinfo=timezone.utc)


def test_malformed_date_aborts_with_nothing_enqueued(services, db, seeded):
    business, service = seeded
    broken = Appointment(
        business_id=business.id,
        service_id=service.id,
        service_price=service.price,
        customer_name="Broken",
        customer_email="broken@example.com",
        customer_phone="+15550009999",
        appointment_date="2030-02-30",
        start_time="09:00",
        end_time="10:00",
        status="confirmed",
        confirmation_number="BROKEN01",
    )
    db.add(broken)
    db.commit()

    with pytest.raises(NotificationSchedulingError):
        services.scheduler.schedule_booking_reminders(broken, service, business)

    assert _entries(db) == []


def test_unknown_timezone_aborts_with_nothing_enqueued(services, db, seeded, booking_request):
    business, service = seeded
    appointment = services.appointments.create(booking_request("09:00"))
    db.query(NotificationQueueEntry).delete()
    db.commit()

    business.timezone = "Atlantis/Lost_City"

    with pytest.raises(NotificationSchedulingError):
        services.scheduler.schedule_booking_cancellation(appointment, service, business)

    assert _entries(db) == []
