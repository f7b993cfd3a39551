# booking_core/utils/my_logging.py
"""Logging configuration"""
import logging
import sys
from booking_core.config.settings import get_settings


def setup_logging(verbose=True):
    """Configure application logging"""
    settings = get_settings()

    if verbose:
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if not verbose:
        # Silence noisy loggers
        noisy_loggers = [
            "sqlalchemy",
            "sqlalchemy.engine",
            "sqlalchemy.pool",
            "sqlalchemy.orm",
            "sqlalchemy.dialects",
            "alembic",
            "twilio.http_client",
            "celery",
            "uvicorn",
            "uvicorn.error",
            "uvicorn.access",
        ]
        for name in noisy_loggers:
            logger = logging.getLogger(name)
            logger.setLevel(logging.ERROR)
            logger.propagate = False


class BookingLogger:
    """Structured log lines for booking decisions"""

    def __init__(self, name: str = "booking_core.booking"):
        self.logger = logging.getLogger(name)

    def log_conflict_detection(self, conflict_type: str, resolved: bool, context: dict = None):
        self.logger.warning(
            f"Booking rejected: {conflict_type}",
            extra={"conflict_type": conflict_type, "resolved": resolved, **(context or {})}
        )

    def log_validation_error(self, field: str, value, reason: str, context: dict = None):
        self.logger.info(
            f"Validation failed for {field}: {reason}",
            extra={"field": field, "value": str(value), **(context or {})}
        )

    def log_booking_created(self, appointment_id, context: dict = None):
        self.logger.info(
            f"Appointment {appointment_id} created",
            extra={"appointment_id": str(appointment_id), **(context or {})}
        )


booking_logger = BookingLogger()
