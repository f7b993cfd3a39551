# booking_core/services/appointment/conflict_service.py
"""Overlap detection between a candidate slot and existing bookings"""
from typing import List

from sqlalchemy.orm import Session

from booking_core.models.appointment import Appointment, ACTIVE_STATUSES


class ConflictService:
    """
    Finds active appointments overlapping a candidate slot.

    Overlap is half-open: [s1, e1) and [s2, e2) conflict iff s1 < e2 and s2 < e1,
    so back-to-back appointments are compatible. Only pending and confirmed
    appointments of the same business and date participate.
    """

    @staticmethod
    def check_conflict(
            db: Session,
            business_id,
            date: str,
            start_time: str,
            end_time: str,
            exclude_appointment_id=None
    ) -> List[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.business_id == business_id,
            Appointment.appointment_date == date,
            Appointment.status.in_(ACTIVE_STATUSES),
            # HH:MM strings compare chronologically
            Appointment.start_time < end_time,
            Appointment.end_time > start_time,
        )

        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return query.order_by(Appointment.start_time.asc()).all()
