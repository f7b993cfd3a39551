# booking_core/core/errors.py
"""Typed failures raised by the booking core"""
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class BookingError(Exception):
    """Base class for every failure the booking core surfaces to callers"""

    code = "BOOKING_ERROR"
    status_code = 400
    default_user_message = "The booking request could not be completed."

    def __init__(
            self,
            message: str,
            user_message: Optional[str] = None,
            field: Optional[str] = None,
            suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or self.default_user_message
        self.field = field
        self.suggestions = suggestions or []

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.user_message,
            "detail": self.message,
            "field": self.field,
            "suggestions": self.suggestions,
        }


class ValidationError(BookingError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, suggestions: Optional[List[str]] = None):
        super().__init__(
            message,
            user_message=f"Please check your input: {message}",
            field=field,
            suggestions=suggestions,
        )


class NotFoundError(BookingError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id=None):
        self.resource = resource
        self.resource_id = resource_id
        message = f"{resource.capitalize()} with ID {resource_id} not found" if resource_id else f"{resource.capitalize()} not found"
        super().__init__(message, user_message=f"The requested {resource} could not be found.")


class ConflictError(BookingError):
    code = "BOOKING_CONFLICT"
    status_code = 409
    default_user_message = "This time slot is no longer available. Please choose a different time."


class BusinessUnavailableError(BookingError):
    code = "BUSINESS_UNAVAILABLE"
    status_code = 400
    default_user_message = "The business is not available at this time. Please choose a different date or time."

    def __init__(self, reason: str, suggestions: Optional[List[str]] = None):
        self.reason = reason
        super().__init__(reason, suggestions=suggestions)


class OptimisticLockError(BookingError):
    code = "OPTIMISTIC_LOCK_ERROR"
    status_code = 409
    default_user_message = "This appointment was recently modified. Please refresh and try again."

    def __init__(self, message: str = "Appointment was modified by another process"):
        super().__init__(message)


class DatabaseError(BookingError):
    code = "DATABASE_ERROR"
    status_code = 500
    default_user_message = "A system error occurred. Please try again later."


class NotificationSchedulingError(Exception):
    """Lifecycle event could not be translated into queue entries"""


class NotificationDeliveryError(Exception):
    """Every channel routed for a notification failed"""


def to_booking_error(exc: Exception) -> BookingError:
    """Map storage exceptions onto the booking taxonomy"""
    if isinstance(exc, BookingError):
        return exc

    if isinstance(exc, IntegrityError):
        message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
        if "uq_appointments_active_slot" in message or (
                "appointments" in message and "start_time" in message):
            return ConflictError("This time slot is already booked")
        if "confirmation_number" in message:
            return ConflictError("Confirmation number collision, please try again")
        return DatabaseError(f"Integrity error: {exc.orig}")

    if isinstance(exc, SQLAlchemyError):
        return DatabaseError(f"Database failure: {exc}")

    return DatabaseError(f"An unexpected error occurred: {exc}")
