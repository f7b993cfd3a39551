from datetime import datetime, timedelta, timezone

import pytest

from booking_core.core.errors import NotFoundError, ValidationError
from booking_core.models import NotificationQueueEntry
from booking_core.services.notification.notification_queue import NotificationDraft, NotificationQueueService

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _draft(**overrides):
    data = {
        "type": "booking_confirmation",
        "recipient_id": "ada@example.com",
        "recipient_type": "customer",
        "recipient_email": "ada@example.com",
        "scheduled_for": NOW,
        "payload": {"appointment_id": "a1"},
    }
    data.update(overrides)
    return NotificationDraft(**data)


@pytest.fixture
def queue():
    return NotificationQueueService(max_attempts=3)


def test_enqueue_rejects_naive_datetime_and_adds_nothing(queue, db):
    with pytest.raises(ValueError):
        queue.enqueue_many(db, [_draft(), _draft(scheduled_for=datetime(2030, 1, 1, 12, 0))])
    db.commit()

    assert db.query(NotificationQueueEntry).count() == 0


def test_enqueue_rejects_missing_email(queue, db):
    with pytest.raises(ValueError):
        queue.enqueue_many(db, [_draft(recipient_email="")])


def test_get_due_returns_oldest_first_and_skips_future(queue, db):
    queue.enqueue_many(db, [
        _draft(type="booking_reminder_2h", scheduled_for=NOW - timedelta(minutes=5)),
        _draft(type="booking_reminder_24h", scheduled_for=NOW - timedelta(hours=1)),
        _draft(type="booking_reminder_30m", scheduled_for=NOW + timedelta(minutes=5)),
    ])
    db.commit()

    due = queue.get_due(db, NOW, limit=10)

    assert [e.type for e in due] == ["booking_reminder_24h", "booking_reminder_2h"]


def test_get_due_excludes_already_seen(queue, db):
    first, second = queue.enqueue_many(db, [_draft(), _draft(type="booking_cancellation")])
    db.commit()

    due = queue.get_due(db, NOW, exclude_ids=[first.id], limit=10)

    assert [e.id for e in due] == [second.id]


def test_retry_resets_failed_entry(queue, db):
    entry, = queue.enqueue_many(db, [_draft()])
    queue.mark_failed(entry, "SMTP down", NOW)
    db.commit()

    later = NOW + timedelta(hours=1)
    queue.retry(db, entry.id, now=later)
    db.commit()

    assert entry.status == "pending"
    assert entry.error is None
    assert entry.attempts == 1
    assert entry.scheduled_for == later


def test_retry_refuses_entries_at_max_attempts(queue, db):
    entry, = queue.enqueue_many(db, [_draft()])
    for _ in range(3):
        queue.mark_failed(entry, "SMTP down", NOW)
    db.commit()

    with pytest.raises(ValidationError) as exc_info:
        queue.retry(db, entry.id)
    assert exc_info.value.field == "attempts"


def test_retry_refuses_pending_entries(queue, db):
    entry, = queue.enqueue_many(db, [_draft()])
    db.commit()

    with pytest.raises(ValidationError):
        queue.retry(db, entry.id)


def test_retry_of_unknown_entry_is_not_found(queue, db):
    import uuid

    with pytest.raises(NotFoundError):
        queue.retry(db, uuid.uuid4())


def test_mark_failed_without_attempt(queue, db):
    entry, = queue.enqueue_many(db, [_draft()])
    queue.mark_failed(entry, "Appointment not found", NOW, count_attempt=False)

    assert entry.attempts == 0
    assert entry.status == "failed"


def test_status_for_appointment(queue, db):
    queue.enqueue_many(db, [
        _draft(payload={"appointment_id": "a1"}),
        _draft(payload={"appointment_id": "a2"}),
        _draft(type="booking_reminder_2h", payload={"appointment_id": "a1"}, scheduled_for=NOW + timedelta(hours=1)),
    ])
    db.commit()

    entries = queue.status_for_appointment(db, "a1")

    assert [e.type for e in entries] == ["booking_confirmation", "booking_reminder_2h"]


def test_cleanup_removes_only_old_settled_entries(queue, db):
    old_processed, old_failed, old_pending, recent_processed = queue.enqueue_many(db, [
        _draft(), _draft(), _draft(), _draft(),
    ])
    queue.mark_processed(old_processed, NOW)
    queue.mark_failed(old_failed, "boom", NOW)
    queue.mark_processed(recent_processed, NOW)
    db.flush()

    long_ago = NOW - timedelta(days=30)
    for entry in (old_processed, old_failed, old_pending):
        entry.updated_at = long_ago
    recent_processed.updated_at = NOW
    db.commit()

    deleted = queue.cleanup_old(db, NOW - timedelta(days=15))
    db.commit()

    remaining = {e.id for e in db.query(NotificationQueueEntry).all()}
    assert deleted == 2
    assert remaining == {old_pending.id, recent_processed.id}
