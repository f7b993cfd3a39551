# booking_core/services/container.py
"""Service objects built once per process and shared by the API and the worker"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional
from datetime import datetime

from booking_core.config.settings import Settings, get_settings
from booking_core.services.appointment.appointment_service import AppointmentService
from booking_core.services.notification.channels import ChannelRouter, EmailChannel, SMSChannel, WhatsAppChannel
from booking_core.services.notification.notification_queue import NotificationQueueService
from booking_core.services.notification.notification_scheduler import NotificationScheduler
from booking_core.services.notification.queue_processor import QueueProcessor
from booking_core.utils.time_utils import utcnow


@dataclass
class BookingServices:
    session_factory: Callable
    clock: Callable[[], datetime]
    appointments: AppointmentService
    queue: NotificationQueueService
    scheduler: NotificationScheduler
    processor: QueueProcessor


def build_services(
        session_factory: Optional[Callable] = None,
        router: Optional[ChannelRouter] = None,
        clock: Callable[[], datetime] = utcnow,
        settings: Optional[Settings] = None
) -> BookingServices:
    """Wire the booking services; tests pass their own session factory, router and clock"""
    settings = settings or get_settings()
    if session_factory is None:
        from booking_core.config.database import SessionLocal
        session_factory = SessionLocal

    if router is None:
        router = ChannelRouter(
            email=EmailChannel.from_settings(settings),
            whatsapp=WhatsAppChannel.from_settings(settings),
            sms=SMSChannel.from_settings(settings),
            sms_enabled=settings.SMS_NOTIFICATIONS_ENABLED,
        )

    queue = NotificationQueueService(max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS)
    scheduler = NotificationScheduler(
        session_factory,
        queue,
        clock=clock,
        default_timezone=settings.DEFAULT_TIMEZONE,
    )
    processor = QueueProcessor(
        session_factory,
        queue,
        router,
        clock=clock,
        send_timeout=settings.NOTIFICATION_SEND_TIMEOUT_SECONDS,
    )
    appointments = AppointmentService(session_factory, notification_scheduler=scheduler)

    return BookingServices(
        session_factory=session_factory,
        clock=clock,
        appointments=appointments,
        queue=queue,
        scheduler=scheduler,
        processor=processor,
    )


@lru_cache()
def get_services() -> BookingServices:
    """Process-wide services for the default database"""
    return build_services()
