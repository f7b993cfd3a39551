# booking_core/services/notification/notification_queue.py
"""Persistence operations on the notification queue"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy.orm import Session

from booking_core.core.errors import NotFoundError, ValidationError
from booking_core.models.notification_queue import NotificationQueueEntry
from booking_core.utils.time_utils import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class NotificationDraft:
    """An entry planned by the scheduler, not yet persisted"""
    type: str
    recipient_id: str
    recipient_type: str
    recipient_email: str
    scheduled_for: datetime
    payload: Dict[str, Any] = field(default_factory=dict)
    recipient_phone: Optional[str] = None


class NotificationQueueService:
    """Enqueue, claim and settle notification queue entries"""

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max_attempts

    @staticmethod
    def validate_draft(draft: NotificationDraft) -> None:
        if not isinstance(draft.scheduled_for, datetime) or draft.scheduled_for.tzinfo is None:
            raise ValueError(f"Invalid scheduled_for date: {draft.scheduled_for!r}")
        if not draft.recipient_email:
            raise ValueError("Recipient email is required")

    def enqueue_many(self, db: Session, drafts: Iterable[NotificationDraft]) -> List[NotificationQueueEntry]:
        """
        Add planned entries to the session. Every draft is validated before any
        row is added so a bad draft never leaves a partial set behind.
        The caller owns the commit.
        """
        drafts = list(drafts)
        for draft in drafts:
            self.validate_draft(draft)

        now = utcnow()
        entries = []
        for draft in drafts:
            entry = NotificationQueueEntry(
                type=draft.type,
                recipient_id=draft.recipient_id,
                recipient_type=draft.recipient_type,
                recipient_email=draft.recipient_email,
                recipient_phone=draft.recipient_phone,
                payload=draft.payload,
                scheduled_for=as_utc(draft.scheduled_for),
                status="pending",
                attempts=0,
            )
            db.add(entry)
            entries.append(entry)

            minutes_until_send = round((entry.scheduled_for - now).total_seconds() / 60)
            logger.info(
                f"Enqueued {draft.type} for {draft.recipient_type} {draft.recipient_email} "
                f"(sends in {minutes_until_send} min)"
            )

        db.flush()
        return entries

    @staticmethod
    def get_due(
            db: Session,
            now: datetime,
            exclude_ids: Optional[Iterable] = None,
            limit: int = 1
    ) -> List[NotificationQueueEntry]:
        """
        Select due pending entries oldest-first and lock them.

        On PostgreSQL FOR UPDATE SKIP LOCKED makes selection and claim atomic,
        so parallel workers never pick the same row. SQLite ignores the clause.
        """
        query = db.query(NotificationQueueEntry).filter(
            NotificationQueueEntry.status == "pending",
            NotificationQueueEntry.scheduled_for <= as_utc(now),
        )

        exclude_ids = list(exclude_ids or [])
        if exclude_ids:
            query = query.filter(NotificationQueueEntry.id.notin_(exclude_ids))

        return (
            query.order_by(NotificationQueueEntry.scheduled_for.asc(), NotificationQueueEntry.created_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
            .all()
        )

    @staticmethod
    def mark_processed(entry: NotificationQueueEntry, now: datetime) -> None:
        entry.status = "processed"
        entry.last_attempt_at = now
        entry.error = None
        logger.info(f"Notification {entry.id} ({entry.type}) processed")

    @staticmethod
    def mark_failed(entry: NotificationQueueEntry, error: str, now: datetime, count_attempt: bool = True) -> None:
        """Terminal failure; attempts only count when delivery was actually tried"""
        entry.status = "failed"
        if count_attempt:
            entry.attempts = (entry.attempts or 0) + 1
            entry.last_attempt_at = now
        entry.error = error[:1000] if error else "Unknown error"
        logger.warning(f"Notification {entry.id} ({entry.type}) failed: {entry.error}")

    def retry(self, db: Session, entry_id, now: Optional[datetime] = None) -> NotificationQueueEntry:
        """Operator-triggered retry: put a failed entry back in the queue"""
        entry = db.get(NotificationQueueEntry, entry_id)
        if not entry:
            raise NotFoundError("notification", entry_id)
        if entry.status != "failed":
            raise ValidationError(f"Only failed notifications can be retried (status is {entry.status})", field="status")
        if entry.attempts >= self.max_attempts:
            raise ValidationError(
                f"Notification already attempted {entry.attempts} times (max {self.max_attempts})",
                field="attempts"
            )

        entry.status = "pending"
        entry.scheduled_for = now or utcnow()
        entry.error = None
        logger.info(f"Notification {entry.id} reset to pending for retry")
        return entry

    @staticmethod
    def status_for_appointment(db: Session, appointment_id) -> List[NotificationQueueEntry]:
        """All entries for one appointment, oldest first"""
        return db.query(NotificationQueueEntry).filter(
            NotificationQueueEntry.payload["appointment_id"].as_string() == str(appointment_id)
        ).order_by(NotificationQueueEntry.scheduled_for.asc()).all()

    @staticmethod
    def cleanup_old(db: Session, older_than: datetime) -> int:
        """Delete processed and failed entries last touched before the cutoff"""
        deleted = db.query(NotificationQueueEntry).filter(
            NotificationQueueEntry.status.in_(("processed", "failed")),
            NotificationQueueEntry.updated_at < as_utc(older_than),
        ).delete(synchronize_session=False)
        logger.info(f"Cleaned up {deleted} notifications older than {older_than.isoformat()}")
        return deleted
