# booking_core/services/appointment/booking_pipeline.py
"""
Named validation steps shared by booking creation, rescheduling and dry-run checks.

Each step receives the session and a BookingContext, fills in what it
resolved and returns either None (continue) or the BookingError that stops
the pipeline.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
import logging
import uuid

from sqlalchemy.orm import Session

from booking_core.core.errors import (
    BookingError,
    BusinessUnavailableError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from booking_core.models.business import Business
from booking_core.models.service import Service
from booking_core.services.appointment.conflict_service import ConflictService
from booking_core.services.availability.availability_service import AvailabilityService, ResolvedWindow
from booking_core.utils import time_utils
from booking_core.utils.my_logging import booking_logger

logger = logging.getLogger(__name__)


@dataclass
class BookingContext:
    business_id: uuid.UUID
    service_id: uuid.UUID
    appointment_date: str
    start_time: str
    exclude_appointment_id: Optional[uuid.UUID] = None
    lock_business: bool = False

    # Filled in by the steps
    business: Optional[Business] = None
    service: Optional[Service] = None
    end_time: Optional[str] = None
    window: Optional[ResolvedWindow] = None

    def log_context(self) -> dict:
        return {
            "business_id": str(self.business_id),
            "service_id": str(self.service_id),
            "appointment_date": self.appointment_date,
            "start_time": self.start_time,
        }


@dataclass
class BookingCheck:
    """Outcome of running the pipeline without writing anything"""
    ok: bool
    end_time: Optional[str] = None
    step: Optional[str] = None
    error: Optional[BookingError] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "end_time": self.end_time,
            "step": self.step,
            "error": self.error_code,
            "message": self.error.user_message if self.error else None,
        }


Step = Callable[[Session, BookingContext], Optional[BookingError]]


def load_business(db: Session, ctx: BookingContext) -> Optional[BookingError]:
    query = db.query(Business).filter(Business.id == ctx.business_id)
    if ctx.lock_business:
        # Serializes bookings per business on PostgreSQL; SQLite ignores it
        query = query.with_for_update()
    business = query.first()
    if not business or not business.is_active:
        return NotFoundError("business", ctx.business_id)
    ctx.business = business
    return None


def load_service(db: Session, ctx: BookingContext) -> Optional[BookingError]:
    service = db.query(Service).filter(
        Service.id == ctx.service_id,
        Service.business_id == ctx.business_id,
        Service.is_active.is_(True)
    ).first()
    if not service:
        return NotFoundError("service", ctx.service_id)
    ctx.service = service
    return None


def compute_end_time(db: Session, ctx: BookingContext) -> Optional[BookingError]:
    if not time_utils.is_valid_date(ctx.appointment_date):
        booking_logger.log_validation_error("appointment_date", ctx.appointment_date, "invalid date", ctx.log_context())
        return ValidationError("Invalid appointment date", field="appointment_date")

    if not time_utils.is_valid_time(ctx.start_time):
        booking_logger.log_validation_error("start_time", ctx.start_time, "invalid time", ctx.log_context())
        return ValidationError("Invalid start time", field="start_time")

    try:
        ctx.end_time = time_utils.add_minutes(ctx.start_time, ctx.service.duration_minutes)
    except ValueError:
        booking_logger.log_validation_error("start_time", ctx.start_time, "ends after midnight", ctx.log_context())
        return ValidationError("Appointment cannot extend past midnight", field="start_time")
    return None


def check_conflicts(db: Session, ctx: BookingContext) -> Optional[BookingError]:
    conflicts = ConflictService.check_conflict(
        db,
        ctx.business_id,
        ctx.appointment_date,
        ctx.start_time,
        ctx.end_time,
        exclude_appointment_id=ctx.exclude_appointment_id
    )
    if conflicts:
        booking_logger.log_conflict_detection(
            "time_slot_overlap",
            resolved=False,
            context={**ctx.log_context(), "conflicting_ids": [str(a.id) for a in conflicts]}
        )
        return ConflictError("This time slot is no longer available")
    return None


def check_availability(db: Session, ctx: BookingContext) -> Optional[BookingError]:
    window = AvailabilityService.resolve_window(db, ctx.business_id, ctx.appointment_date)
    ctx.window = window

    if not window.open:
        booking_logger.log_conflict_detection(
            "business_closed", resolved=False, context={**ctx.log_context(), "reason": window.reason}
        )
        return BusinessUnavailableError(window.reason)

    if not window.contains(ctx.start_time, ctx.end_time):
        booking_logger.log_conflict_detection("outside_business_hours", resolved=False, context=ctx.log_context())
        return BusinessUnavailableError(
            f"Appointment time is outside business hours ({window.start_time} - {window.end_time})"
        )
    return None


BOOKING_STEPS: List[Tuple[str, Step]] = [
    ("load_business", load_business),
    ("load_service", load_service),
    ("compute_end_time", compute_end_time),
    ("check_conflicts", check_conflicts),
    ("check_availability", check_availability),
]


def run_pipeline(db: Session, ctx: BookingContext, steps: List[Tuple[str, Step]] = None) -> BookingCheck:
    """Run steps in order and stop at the first error"""
    for name, step in steps or BOOKING_STEPS:
        try:
            error = step(db, ctx)
        except ValidationError as e:
            error = e
        if error is not None:
            logger.info(f"Booking pipeline stopped at {name}: {error.message}")
            return BookingCheck(ok=False, end_time=ctx.end_time, step=name, error=error)
    return BookingCheck(ok=True, end_time=ctx.end_time)
