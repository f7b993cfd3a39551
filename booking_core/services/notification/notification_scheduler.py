# booking_core/services/notification/notification_scheduler.py
"""Turns appointment lifecycle events into notification queue entries"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List
import logging

from sqlalchemy.orm import Session

from booking_core.core.errors import NotificationSchedulingError
from booking_core.models.appointment import Appointment
from booking_core.models.business import Business, BusinessNotificationPreferences
from booking_core.models.notification_queue import NotificationQueueEntry
from booking_core.models.service import Service
from booking_core.services.notification.notification_queue import NotificationDraft, NotificationQueueService
from booking_core.utils import time_utils

logger = logging.getLogger(__name__)

CUSTOMER_REMINDERS = (
    ("booking_reminder_24h", timedelta(hours=24)),
    ("booking_reminder_2h", timedelta(hours=2)),
    ("booking_reminder_30m", timedelta(minutes=30)),
)
BUSINESS_REMINDER_OFFSET = timedelta(hours=24)


@dataclass(frozen=True)
class ChannelPreferences:
    email: bool = True
    whatsapp: bool = True
    sms: bool = False
    reminder_email: bool = True
    reminder_whatsapp: bool = True
    reminder_sms: bool = False

    @property
    def channels_enabled(self) -> bool:
        return self.email or self.whatsapp or self.sms

    @property
    def reminders_enabled(self) -> bool:
        return self.reminder_email or self.reminder_whatsapp or self.reminder_sms

    @classmethod
    def from_model(cls, row: BusinessNotificationPreferences) -> "ChannelPreferences":
        return cls(
            email=row.email,
            whatsapp=row.whatsapp,
            sms=row.sms,
            reminder_email=row.reminder_email,
            reminder_whatsapp=row.reminder_whatsapp,
            reminder_sms=row.reminder_sms,
        )


Planner = Callable[[Appointment, Service, Business, ChannelPreferences, datetime], List[NotificationDraft]]


class NotificationScheduler:
    """
    Pure translation from lifecycle events to queue entries; no network I/O.

    Each event is planned in memory first and the resulting entries are
    inserted in a single transaction, so a failure never leaves a partial set.
    """

    def __init__(
            self,
            session_factory,
            queue_service: NotificationQueueService,
            clock: Callable[[], datetime] = time_utils.utcnow,
            default_timezone: str = "UTC"
    ):
        self.session_factory = session_factory
        self.queue_service = queue_service
        self.clock = clock
        self.default_timezone = default_timezone

    # ------------------------------------------------------------------
    # Public events
    # ------------------------------------------------------------------

    def schedule_booking_confirmation(self, appointment, service, business) -> List[NotificationQueueEntry]:
        return self._schedule("booking_confirmation", self.plan_booking_confirmation, appointment, service, business)

    def schedule_booking_reminders(self, appointment, service, business) -> List[NotificationQueueEntry]:
        return self._schedule("booking_reminders", self.plan_booking_reminders, appointment, service, business)

    def schedule_booking_cancellation(self, appointment, service, business) -> List[NotificationQueueEntry]:
        return self._schedule("booking_cancellation", self.plan_booking_cancellation, appointment, service, business)

    def schedule_booking_rescheduled(self, appointment, service, business) -> List[NotificationQueueEntry]:
        return self._schedule("booking_rescheduled", self.plan_booking_rescheduled, appointment, service, business)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan_booking_confirmation(self, appointment, service, business, preferences, now) -> List[NotificationDraft]:
        payload = self._payload(appointment, service, business)
        drafts = [self._customer_draft("booking_confirmation", appointment, payload, now)]
        if preferences.channels_enabled:
            drafts.append(self._business_draft("business_new_booking", business, payload, now))
        return drafts

    def plan_booking_reminders(self, appointment, service, business, preferences, now) -> List[NotificationDraft]:
        payload = self._payload(appointment, service, business)
        appointment_at = self._appointment_datetime(appointment, business)

        drafts = []
        for notification_type, offset in CUSTOMER_REMINDERS:
            send_at = appointment_at - offset
            if send_at > now:
                drafts.append(self._customer_draft(notification_type, appointment, payload, send_at))

        business_send_at = appointment_at - BUSINESS_REMINDER_OFFSET
        if preferences.reminders_enabled and business_send_at > now:
            drafts.append(self._business_draft("business_booking_reminder", business, payload, business_send_at))

        if not drafts:
            logger.info(f"No reminders for appointment {appointment.id}: every reminder time has passed")
        return drafts

    def plan_booking_cancellation(self, appointment, service, business, preferences, now) -> List[NotificationDraft]:
        payload = self._payload(appointment, service, business)
        drafts = [self._customer_draft("booking_cancellation", appointment, payload, now)]
        if preferences.channels_enabled:
            drafts.append(self._business_draft("business_booking_cancelled", business, payload, now))
        return drafts

    def plan_booking_rescheduled(self, appointment, service, business, preferences, now) -> List[NotificationDraft]:
        payload = self._payload(appointment, service, business)
        drafts = [self._customer_draft("booking_rescheduled", appointment, payload, now)]
        if preferences.channels_enabled:
            drafts.append(self._business_draft("business_booking_rescheduled", business, payload, now))
        drafts.extend(self.plan_booking_reminders(appointment, service, business, preferences, now))
        return drafts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _schedule(self, event: str, planner: Planner, appointment, service, business) -> List[NotificationQueueEntry]:
        db: Session = self.session_factory()
        try:
            preferences = self.get_preferences(db, business.id)
            now = self.clock()
            try:
                drafts = planner(appointment, service, business, preferences, now)
                entries = self.queue_service.enqueue_many(db, drafts)
            except ValueError as e:
                db.rollback()
                logger.error(f"Aborted {event} scheduling for appointment {appointment.id}: {e}")
                raise NotificationSchedulingError(
                    f"Cannot schedule {event} for appointment {appointment.id}: {e}"
                ) from e

            db.commit()
            logger.info(f"Scheduled {len(entries)} notification(s) for {event} of appointment {appointment.id}")
            return entries
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def get_preferences(db: Session, business_id) -> ChannelPreferences:
        row = db.get(BusinessNotificationPreferences, business_id)
        if row is None:
            # Defaults when the business never saved preferences
            return ChannelPreferences()
        return ChannelPreferences.from_model(row)

    def _appointment_datetime(self, appointment, business) -> datetime:
        """Appointment start as an aware UTC instant; ValueError for malformed data"""
        return time_utils.local_to_utc(
            appointment.appointment_date,
            appointment.start_time,
            business.timezone or self.default_timezone
        )

    def _payload(self, appointment, service, business) -> dict:
        appointment_at = self._appointment_datetime(appointment, business)
        return {
            "appointment_id": str(appointment.id),
            "service_id": str(service.id),
            "business_id": str(business.id),
            "appointment_date": appointment.appointment_date,
            "start_time": appointment.start_time,
            "appointment_at": appointment_at.isoformat(),
        }

    @staticmethod
    def _customer_draft(notification_type: str, appointment, payload: dict, send_at: datetime) -> NotificationDraft:
        return NotificationDraft(
            type=notification_type,
            recipient_id=appointment.customer_email,
            recipient_type="customer",
            recipient_email=appointment.customer_email,
            recipient_phone=appointment.customer_phone,
            payload=dict(payload),
            scheduled_for=send_at,
        )

    @staticmethod
    def _business_draft(notification_type: str, business, payload: dict, send_at: datetime) -> NotificationDraft:
        return NotificationDraft(
            type=notification_type,
            recipient_id=str(business.id),
            recipient_type="business",
            recipient_email=business.email,
            recipient_phone=business.phone_number,
            payload=dict(payload),
            scheduled_for=send_at,
        )
