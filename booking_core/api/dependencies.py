# ============================================================================
# FILE: booking_core/api/dependencies.py
# Request-scoped access to the shared booking services
# ============================================================================
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from booking_core.services.container import BookingServices, get_services


def get_booking_services(request: Request) -> BookingServices:
    """Services attached to the app at startup, or the process-wide default"""
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = get_services()
        request.app.state.services = services
    return services


def get_session(services: BookingServices = Depends(get_booking_services)):
    """Database session bound to the same factory the services use"""
    db: Session = services.session_factory()
    try:
        yield db
    finally:
        db.close()
