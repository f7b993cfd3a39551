# booking_core/services/appointment/appointment_service.py
"""Service for managing appointments"""
import secrets
import string
from typing import List, Optional, Union
from uuid import UUID
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from booking_core.core.errors import (
    BookingError,
    NotFoundError,
    OptimisticLockError,
    ValidationError,
    to_booking_error,
)
from booking_core.models.appointment import Appointment, ACTIVE_STATUSES
from booking_core.models.business import Business
from booking_core.models.service import Service
from booking_core.schemas.booking import AppointmentUpdate, BookingRequest
from booking_core.services.appointment.booking_pipeline import BookingCheck, BookingContext, run_pipeline
from booking_core.utils.my_logging import booking_logger

logger = logging.getLogger(__name__)

CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits
CONFIRMATION_LENGTH = 8

ALLOWED_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("completed", "cancelled"),
    "cancelled": (),
    "completed": (),
}


def _as_uuid(value) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class AppointmentService:
    """
    Handles appointment operations.

    Writes go through one session per call. Notification scheduling happens
    after commit and never rolls back a booking.
    """

    def __init__(self, session_factory, notification_scheduler=None):
        self.session_factory = session_factory
        self.notification_scheduler = notification_scheduler

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, request: Union[BookingRequest, dict]) -> Appointment:
        """Validate and insert a new pending appointment"""
        if isinstance(request, dict):
            request = BookingRequest(**request)

        db: Session = self.session_factory()
        try:
            ctx = BookingContext(
                business_id=_as_uuid(request.business_id),
                service_id=_as_uuid(request.service_id),
                appointment_date=request.appointment_date,
                start_time=request.start_time,
                lock_business=True,
            )
            check = run_pipeline(db, ctx)
            if not check.ok:
                raise check.error

            appointment = Appointment(
                business_id=ctx.business_id,
                service_id=ctx.service_id,
                service_price=ctx.service.price,
                customer_name=request.customer_name,
                customer_email=str(request.customer_email),
                customer_phone=request.customer_phone,
                appointment_date=ctx.appointment_date,
                start_time=ctx.start_time,
                end_time=ctx.end_time,
                notes=request.notes,
                status="pending",
                version=1,
                confirmation_number=self.generate_confirmation_number(db),
            )
            db.add(appointment)
            db.commit()
            db.refresh(appointment)
            service, business = ctx.service, ctx.business

        except BookingError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            error = to_booking_error(e)
            logger.warning(f"Booking insert failed: {error.message}")
            raise error from e
        finally:
            db.close()

        booking_logger.log_booking_created(appointment.id, {
            "business_id": str(appointment.business_id),
            "appointment_date": appointment.appointment_date,
            "start_time": appointment.start_time,
            "confirmation_number": appointment.confirmation_number,
        })

        self._notify("booking_confirmation", appointment, service, business)
        return appointment

    def validate_booking(self, request, exclude_appointment_id=None) -> BookingCheck:
        """Run the booking checks without inserting anything"""
        db: Session = self.session_factory()
        try:
            ctx = BookingContext(
                business_id=_as_uuid(request.business_id),
                service_id=_as_uuid(request.service_id),
                appointment_date=request.appointment_date,
                start_time=request.start_time,
                exclude_appointment_id=_as_uuid(exclude_appointment_id) if exclude_appointment_id else None,
            )
            return run_pipeline(db, ctx)
        except SQLAlchemyError as e:
            raise to_booking_error(e) from e
        finally:
            db.close()

    def update(
            self,
            appointment_id,
            changes: Union[AppointmentUpdate, dict],
            expected_version: Optional[int] = None
    ) -> Appointment:
        """
        Apply a partial update guarded by the version counter.

        A date or time change re-runs the booking checks against the new slot,
        excluding the appointment itself. The write is a conditional UPDATE on
        the version read at the start; no matching row means someone else won.
        """
        if isinstance(changes, dict):
            changes = AppointmentUpdate(**changes)
        if expected_version is None:
            expected_version = changes.expected_version

        appointment_id = _as_uuid(appointment_id)
        db: Session = self.session_factory()
        try:
            appointment = db.get(Appointment, appointment_id)
            if not appointment:
                raise NotFoundError("appointment", appointment_id)

            if expected_version is not None and appointment.version != expected_version:
                raise OptimisticLockError(
                    f"Expected version {expected_version}, found {appointment.version}"
                )

            read_version = appointment.version
            previous_status = appointment.status
            new_status = changes.status or previous_status
            if new_status != previous_status:
                self.validate_transition(previous_status, new_status)

            new_date = changes.appointment_date or appointment.appointment_date
            new_start = changes.start_time or appointment.start_time
            time_changed = (new_date, new_start) != (appointment.appointment_date, appointment.start_time)

            values = {}
            if time_changed:
                if new_status not in ACTIVE_STATUSES:
                    raise ValidationError(
                        f"A {new_status} appointment cannot be rescheduled", field="appointment_date"
                    )
                ctx = BookingContext(
                    business_id=appointment.business_id,
                    service_id=appointment.service_id,
                    appointment_date=new_date,
                    start_time=new_start,
                    exclude_appointment_id=appointment.id,
                    lock_business=True,
                )
                check = run_pipeline(db, ctx)
                if not check.ok:
                    raise check.error
                values.update(appointment_date=new_date, start_time=new_start, end_time=ctx.end_time)

            if new_status != previous_status:
                values["status"] = new_status
            if changes.notes is not None:
                values["notes"] = changes.notes

            values["version"] = Appointment.version + 1
            values["updated_at"] = func.now()

            updated = db.query(Appointment).filter(
                Appointment.id == appointment_id,
                Appointment.version == read_version
            ).update(values, synchronize_session=False)

            if updated == 0:
                raise OptimisticLockError()

            db.commit()
            db.refresh(appointment)
            service = db.get(Service, appointment.service_id)
            business = db.get(Business, appointment.business_id)

        except BookingError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise to_booking_error(e) from e
        finally:
            db.close()

        logger.info(
            f"Appointment {appointment.id} updated to version {appointment.version} "
            f"(status {previous_status} -> {appointment.status})"
        )

        if appointment.status == "cancelled" and previous_status != "cancelled":
            self._notify("booking_cancellation", appointment, service, business)
        elif time_changed:
            self._notify("booking_rescheduled", appointment, service, business)
        elif previous_status == "pending" and appointment.status == "confirmed":
            self._notify("booking_reminders", appointment, service, business)

        return appointment

    def update_status(self, appointment_id, status: str, expected_version: Optional[int] = None) -> Appointment:
        return self.update(appointment_id, AppointmentUpdate(status=status), expected_version=expected_version)

    def cancel(self, appointment_id, expected_version: Optional[int] = None) -> Appointment:
        return self.update_status(appointment_id, "cancelled", expected_version=expected_version)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, appointment_id) -> Appointment:
        db: Session = self.session_factory()
        try:
            appointment = db.get(Appointment, _as_uuid(appointment_id))
            if not appointment:
                raise NotFoundError("appointment", appointment_id)
            return appointment
        finally:
            db.close()

    def get_by_confirmation_number(self, confirmation_number: str) -> Appointment:
        db: Session = self.session_factory()
        try:
            appointment = db.query(Appointment).filter_by(
                confirmation_number=confirmation_number.strip().upper()
            ).first()
            if not appointment:
                raise NotFoundError("appointment")
            return appointment
        finally:
            db.close()

    def list_for_business(
            self,
            business_id,
            date_from: Optional[str] = None,
            date_to: Optional[str] = None,
            status: Optional[str] = None
    ) -> List[Appointment]:
        """Appointments of one business ordered by date and start time"""
        db: Session = self.session_factory()
        try:
            query = db.query(Appointment).filter(Appointment.business_id == _as_uuid(business_id))

            if date_from:
                query = query.filter(Appointment.appointment_date >= date_from)
            if date_to:
                query = query.filter(Appointment.appointment_date <= date_to)
            if status:
                query = query.filter(Appointment.status == status)

            return query.order_by(Appointment.appointment_date.asc(), Appointment.start_time.asc()).all()
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def validate_transition(current: str, target: str) -> None:
        if target not in ALLOWED_TRANSITIONS.get(current, ()):
            raise ValidationError(f"Cannot change status from {current} to {target}", field="status")

    @staticmethod
    def generate_confirmation_number(db: Session) -> str:
        """8 uppercase base36 characters, redrawn on collision"""
        while True:
            code = "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(CONFIRMATION_LENGTH))
            exists = db.query(Appointment.id).filter_by(confirmation_number=code).first()
            if not exists:
                return code

    def _notify(self, event: str, appointment: Appointment, service: Service, business: Business) -> None:
        if self.notification_scheduler is None:
            return
        handler = getattr(self.notification_scheduler, f"schedule_{event}")
        try:
            handler(appointment, service, business)
        except Exception:
            # Booking is already committed
            logger.exception(f"Failed to schedule {event} notifications for appointment {appointment.id}")
