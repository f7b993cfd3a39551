# ============================================================================
# FILE: booking_core/api/v1/bookings.py
# Booking endpoints - thin HTTP layer over AppointmentService
# ============================================================================
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from booking_core.api.dependencies import get_booking_services
from booking_core.schemas.booking import (
    AppointmentOut,
    AppointmentStatus,
    AppointmentUpdate,
    BookingRequest,
    CancelRequest,
)
from booking_core.services.container import BookingServices

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
def create_booking(
        request: BookingRequest,
        services: BookingServices = Depends(get_booking_services)
):
    """
    Book a slot. The appointment starts as pending with version 1.

    409 when the slot is taken, 400 when the business is closed or the
    time falls outside its hours.
    """
    return services.appointments.create(request)


@router.get("", response_model=List[AppointmentOut])
def list_bookings(
        business_id: UUID = Query(..., description="Business whose bookings to list"),
        date_from: Optional[str] = Query(None, description="First date, YYYY-MM-DD"),
        date_to: Optional[str] = Query(None, description="Last date, YYYY-MM-DD"),
        status: Optional[AppointmentStatus] = Query(None, description="Filter by status"),
        services: BookingServices = Depends(get_booking_services)
):
    return services.appointments.list_for_business(
        business_id,
        date_from=date_from,
        date_to=date_to,
        status=status
    )


@router.get("/lookup/{confirmation_number}", response_model=AppointmentOut)
def lookup_booking(
        confirmation_number: str = Path(..., min_length=4, max_length=16),
        services: BookingServices = Depends(get_booking_services)
):
    """Find a booking by the code sent to the customer"""
    return services.appointments.get_by_confirmation_number(confirmation_number)


@router.get("/{appointment_id}", response_model=AppointmentOut)
def get_booking(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        services: BookingServices = Depends(get_booking_services)
):
    return services.appointments.get(appointment_id)


@router.patch("/{appointment_id}", response_model=AppointmentOut)
def update_booking(
        changes: AppointmentUpdate,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        services: BookingServices = Depends(get_booking_services)
):
    """
    Reschedule, change status or edit notes.
    Send expected_version to reject the update if someone else changed the booking first.
    """
    return services.appointments.update(appointment_id, changes)


@router.post("/{appointment_id}/cancel", response_model=AppointmentOut)
def cancel_booking(
        body: Optional[CancelRequest] = None,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        services: BookingServices = Depends(get_booking_services)
):
    expected_version = body.expected_version if body else None
    return services.appointments.cancel(appointment_id, expected_version=expected_version)
