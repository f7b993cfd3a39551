# booking_core/schemas/booking.py
from __future__ import annotations
from datetime import datetime
from typing import Optional, Literal, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from booking_core.utils import time_utils

AppointmentStatus = Literal["pending", "confirmed", "cancelled", "completed"]


def _check_date(value: Optional[str]) -> Optional[str]:
    if value is not None and not time_utils.is_valid_date(value):
        raise ValueError("must be a valid date in YYYY-MM-DD format")
    return value


def _check_time(value: Optional[str]) -> Optional[str]:
    if value is not None and not time_utils.is_valid_time(value):
        raise ValueError("must be a valid time in HH:MM format")
    return value


class BookingRequest(BaseModel):
    """Payload for creating an appointment"""
    business_id: UUID = Field(..., description="Business identifier")
    service_id: UUID = Field(..., description="Service being booked")
    customer_name: str = Field(..., min_length=1, max_length=200, description="Customer's name")
    customer_email: EmailStr = Field(..., description="Customer's email address")
    customer_phone: str = Field(..., min_length=5, max_length=30, description="Customer's phone number")
    appointment_date: str = Field(..., description="Business-local date, YYYY-MM-DD")
    start_time: str = Field(..., description="Business-local start time, HH:MM")
    notes: Optional[str] = Field(None, max_length=2000, description="Free-form notes")

    @field_validator("appointment_date")
    @classmethod
    def validate_date(cls, value):
        return _check_date(value)

    @field_validator("start_time")
    @classmethod
    def validate_time(cls, value):
        return _check_time(value)


class AppointmentUpdate(BaseModel):
    """Partial update of an appointment; expected_version enables optimistic locking"""
    appointment_date: Optional[str] = Field(None, description="New date, YYYY-MM-DD")
    start_time: Optional[str] = Field(None, description="New start time, HH:MM")
    status: Optional[AppointmentStatus] = Field(None, description="New status")
    notes: Optional[str] = Field(None, max_length=2000, description="Replacement notes")
    expected_version: Optional[int] = Field(None, ge=1, description="Version the caller last saw")

    @field_validator("appointment_date")
    @classmethod
    def validate_date(cls, value):
        return _check_date(value)

    @field_validator("start_time")
    @classmethod
    def validate_time(cls, value):
        return _check_time(value)


class CancelRequest(BaseModel):
    expected_version: Optional[int] = Field(None, ge=1, description="Version the caller last saw")


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    service_id: UUID
    customer_name: str
    customer_email: str
    customer_phone: str
    appointment_date: str
    start_time: str
    end_time: str
    status: AppointmentStatus
    notes: Optional[str] = None
    confirmation_number: str
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AvailabilityCheckRequest(BaseModel):
    """Dry-run a booking without inserting it"""
    business_id: UUID
    service_id: UUID
    appointment_date: str
    start_time: str
    exclude_appointment_id: Optional[UUID] = None

    @field_validator("appointment_date")
    @classmethod
    def validate_date(cls, value):
        return _check_date(value)

    @field_validator("start_time")
    @classmethod
    def validate_time(cls, value):
        return _check_time(value)


class BookingCheckOut(BaseModel):
    ok: bool
    end_time: Optional[str] = None
    step: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None


class TimeSlotOut(BaseModel):
    start_time: str
    end_time: str


class DayAvailabilityOut(BaseModel):
    date: str
    open: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
    slots: List[TimeSlotOut] = Field(default_factory=list)
