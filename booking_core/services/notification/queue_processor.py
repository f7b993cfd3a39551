# booking_core/services/notification/queue_processor.py
"""Drains due notification queue entries through the channel router"""
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Callable, List, Optional
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_core.core.errors import NotificationDeliveryError
from booking_core.models.appointment import Appointment, ACTIVE_STATUSES
from booking_core.models.business import Business
from booking_core.models.notification_queue import NotificationQueueEntry, REMINDER_TYPES
from booking_core.models.service import Service
from booking_core.services.notification import templates
from booking_core.services.notification.channels import ChannelRouter, NotificationMessage
from booking_core.services.notification.notification_queue import NotificationQueueService
from booking_core.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class QueueProcessor:
    """
    Processes due entries one transaction at a time.

    Each entry is claimed, dispatched and settled in its own transaction, so a
    batch can stop between entries without leaving anything half-done.
    """

    def __init__(
            self,
            session_factory,
            queue_service: NotificationQueueService,
            router: ChannelRouter,
            clock: Callable[[], datetime] = utcnow,
            send_timeout: float = 10.0,
            max_workers: int = 4
    ):
        self.session_factory = session_factory
        self.queue_service = queue_service
        self.router = router
        self.clock = clock
        self.send_timeout = send_timeout
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notification-send")

    def process_pending(self, limit: int = 20) -> int:
        """Process up to `limit` due entries; returns how many were delivered"""
        processed = 0
        seen: List[uuid.UUID] = []

        for _ in range(limit):
            outcome = self._process_next(seen)
            if outcome is None:
                break
            if outcome:
                processed += 1

        logger.info(f"Notification batch finished: {processed} processed, {len(seen) - processed} not delivered")
        return processed

    def shutdown(self):
        self.executor.shutdown(wait=False)

    def _process_next(self, seen: List[uuid.UUID]) -> Optional[bool]:
        """Claim and handle one entry. None when nothing is due."""
        db: Session = self.session_factory()
        try:
            now = self.clock()
            entries = self.queue_service.get_due(db, now, exclude_ids=seen, limit=1)
            if not entries:
                db.rollback()
                return None

            entry = entries[0]
            seen.append(entry.id)

            try:
                delivered = self._handle(db, entry, now)
            except Exception as e:
                logger.exception(f"Unexpected error processing notification {entry.id}")
                self.queue_service.mark_failed(entry, f"Processing error: {e}", now)
                delivered = False

            db.commit()
            return delivered

        except SQLAlchemyError:
            db.rollback()
            logger.exception("Database error while processing notification queue")
            # Nothing claimable if the claim query itself failed
            return None if not seen else False
        finally:
            db.close()

    def _handle(self, db: Session, entry: NotificationQueueEntry, now: datetime) -> bool:
        payload = entry.payload or {}

        appointment = self._load(db, Appointment, payload.get("appointment_id"))
        if appointment is None:
            self.queue_service.mark_failed(entry, "Appointment not found", now, count_attempt=False)
            return False

        service = self._load(db, Service, payload.get("service_id"))
        if service is None:
            self.queue_service.mark_failed(entry, "Service not found", now, count_attempt=False)
            return False

        business = self._load(db, Business, payload.get("business_id"))
        if business is None:
            self.queue_service.mark_failed(entry, "Business not found", now, count_attempt=False)
            return False

        if entry.type in REMINDER_TYPES and self.is_superseded(entry, appointment):
            self.queue_service.mark_failed(
                entry,
                f"Superseded: appointment is {appointment.status} at "
                f"{appointment.appointment_date} {appointment.start_time}",
                now,
                count_attempt=False
            )
            return False

        try:
            subject, body, html = templates.render(entry.type, appointment, service, business)
        except ValueError as e:
            self.queue_service.mark_failed(entry, str(e), now, count_attempt=False)
            return False

        message = NotificationMessage(
            type=entry.type,
            recipient_email=entry.recipient_email,
            recipient_phone=entry.recipient_phone,
            subject=subject,
            body=body,
            html=html,
            payload=payload,
        )

        try:
            channel = self._dispatch(message, entry.recipient_type)
        except FutureTimeoutError:
            self.queue_service.mark_failed(entry, f"Delivery timed out after {self.send_timeout}s", now)
            return False
        except NotificationDeliveryError as e:
            self.queue_service.mark_failed(entry, f"Delivery failed: {e}", now)
            return False

        self.queue_service.mark_processed(entry, now)
        logger.info(f"Notification {entry.id} delivered via {channel}")
        return True

    def _dispatch(self, message: NotificationMessage, recipient_type: str) -> str:
        future = self.executor.submit(self.router.dispatch, message, recipient_type)
        try:
            return future.result(timeout=self.send_timeout)
        except FutureTimeoutError:
            # A send still queued behind a stuck one must never fire once its entry is failed.
            # A send already running cannot be interrupted and is abandoned.
            future.cancel()
            raise

    @staticmethod
    def is_superseded(entry: NotificationQueueEntry, appointment: Appointment) -> bool:
        """A reminder no longer matches its appointment because it was cancelled or moved"""
        payload = entry.payload or {}
        if appointment.status not in ACTIVE_STATUSES:
            return True
        return (
            payload.get("appointment_date") != appointment.appointment_date
            or payload.get("start_time") != appointment.start_time
        )

    @staticmethod
    def _load(db: Session, model, raw_id):
        if not raw_id:
            return None
        try:
            key = raw_id if isinstance(raw_id, uuid.UUID) else uuid.UUID(str(raw_id))
        except ValueError:
            return None
        return db.get(model, key)
