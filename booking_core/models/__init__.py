# booking_core/models/__init__.py
from .base import Base
from .business import Business, BusinessNotificationPreferences
from .service import Service
from .availability import WeeklyAvailability, AvailabilityException
from .appointment import Appointment
from .notification_queue import NotificationQueueEntry

__all__ = [
    "Base",
    "Business",
    "BusinessNotificationPreferences",
    "Service",
    "WeeklyAvailability",
    "AvailabilityException",
    "Appointment",
    "NotificationQueueEntry",
]
