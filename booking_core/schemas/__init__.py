# booking_core/schemas/__init__.py
from .booking import (
    AppointmentOut,
    AppointmentUpdate,
    AvailabilityCheckRequest,
    BookingCheckOut,
    BookingRequest,
    CancelRequest,
    DayAvailabilityOut,
    TimeSlotOut,
)

from .notification import (
    NotificationOut,
    NotificationStatusOut,
    ProcessQueueOut,
)
