# ============================================================================
# FILE: booking_core/api/v1/availability.py
# Read-only availability endpoints
# ============================================================================
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from booking_core.api.dependencies import get_booking_services, get_session
from booking_core.core.errors import NotFoundError
from booking_core.models.service import Service
from booking_core.schemas.booking import AvailabilityCheckRequest, BookingCheckOut, DayAvailabilityOut
from booking_core.services.availability.availability_service import AvailabilityService
from booking_core.services.container import BookingServices

router = APIRouter(prefix="/availability", tags=["availability"])


@router.post("/check", response_model=BookingCheckOut)
def check_availability(
        request: AvailabilityCheckRequest,
        services: BookingServices = Depends(get_booking_services)
):
    """Dry-run a booking: same checks as create, nothing is written"""
    check = services.appointments.validate_booking(
        request,
        exclude_appointment_id=request.exclude_appointment_id
    )
    return check.to_dict()


@router.get("/{business_id}/{date}", response_model=DayAvailabilityOut)
def get_day_availability(
        business_id: UUID = Path(..., description="Business identifier"),
        date: str = Path(..., description="Business-local date, YYYY-MM-DD"),
        service_id: Optional[UUID] = Query(None, description="Service to generate slots for"),
        db: Session = Depends(get_session)
):
    """Open window for the date, plus free slots when a service is given"""
    window = AvailabilityService.resolve_window(db, business_id, date)

    slots = []
    if service_id and window.open:
        service = db.query(Service).filter(
            Service.id == service_id,
            Service.business_id == business_id
        ).first()
        if not service:
            raise NotFoundError("service", service_id)

        slots = AvailabilityService.get_available_slots(
            db,
            business_id,
            date,
            duration_minutes=service.duration_minutes,
            buffer_minutes=service.buffer_minutes or 0
        )

    return {
        "date": date,
        **window.to_dict(),
        "slots": [slot.to_dict() for slot in slots],
    }
