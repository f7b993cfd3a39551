# booking_core/services/availability/availability_service.py
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy.orm import Session
from booking_core.core.errors import ValidationError
from booking_core.models.availability import WeeklyAvailability, AvailabilityException
from booking_core.models.appointment import Appointment, ACTIVE_STATUSES
from booking_core.utils import time_utils
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedWindow:
    """Open window for one business on one date, or the reason it is closed"""
    open: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    def contains(self, start_time: str, end_time: str) -> bool:
        return self.open and time_utils.window_contains(self.start_time, self.end_time, start_time, end_time)

    def to_dict(self):
        return {
            "open": self.open,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class TimeSlot:
    start_time: str
    end_time: str

    def to_dict(self):
        return {"start_time": self.start_time, "end_time": self.end_time}


class AvailabilityService:
    """Derives open windows from weekly rules plus date-specific exceptions"""

    @staticmethod
    def resolve_window(db: Session, business_id, date: str) -> ResolvedWindow:
        """
        Resolve the open window for a business on a date.

        An exception row for the exact date wins over the weekly rule:
        closed exceptions close the day, open ones replace the weekly hours.
        Without an exception the weekday rule decides.
        """
        if not time_utils.is_valid_date(date):
            raise ValidationError("Invalid appointment date", field="appointment_date")

        exception = db.query(AvailabilityException).filter_by(
            business_id=business_id,
            date=date
        ).first()

        if exception:
            if not exception.is_available:
                return ResolvedWindow(
                    open=False,
                    reason=exception.reason or "Business is not available on this date"
                )
            if exception.start_time and exception.end_time:
                return ResolvedWindow(
                    open=True,
                    start_time=exception.start_time,
                    end_time=exception.end_time,
                    reason=exception.reason
                )
            # Open exception without hours falls through to the weekly rule
            logger.warning(f"Availability exception for {business_id} on {date} has no hours, using weekly rule")

        dow = time_utils.day_of_week(date)
        rule = db.query(WeeklyAvailability).filter_by(
            business_id=business_id,
            day_of_week=dow
        ).first()

        if not rule or not rule.is_available:
            return ResolvedWindow(
                open=False,
                reason=f"Business is not available on {time_utils.weekday_name(dow)}"
            )

        return ResolvedWindow(open=True, start_time=rule.start_time, end_time=rule.end_time)

    @staticmethod
    def get_available_slots(
            db: Session,
            business_id,
            date: str,
            duration_minutes: int,
            buffer_minutes: int = 0,
            step_minutes: Optional[int] = None
    ) -> List[TimeSlot]:
        """Generate bookable slots for a single day, blocking out active appointments"""
        window = AvailabilityService.resolve_window(db, business_id, date)
        if not window.open:
            return []

        booked = db.query(Appointment).filter(
            Appointment.business_id == business_id,
            Appointment.appointment_date == date,
            Appointment.status.in_(ACTIVE_STATUSES)
        ).all()

        step = step_minutes or (duration_minutes + buffer_minutes)
        if step <= 0:
            raise ValidationError("Slot step must be positive", field="duration_minutes")

        slots = []
        current = time_utils.time_to_minutes(window.start_time)
        day_end = time_utils.time_to_minutes(window.end_time)

        while current + duration_minutes <= day_end:
            slot_start = time_utils.minutes_to_time(current)
            slot_end = time_utils.minutes_to_time(current + duration_minutes)

            is_available = True
            for appointment in booked:
                if time_utils.intervals_overlap(slot_start, slot_end, appointment.start_time, appointment.end_time):
                    is_available = False
                    break

            if is_available:
                slots.append(TimeSlot(start_time=slot_start, end_time=slot_end))

            # Move to next slot (including buffer time)
            current += step

        return slots
