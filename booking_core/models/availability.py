# booking_core/models/availability.py
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, UniqueConstraint, Uuid
from booking_core.models.base import Base
import uuid


class WeeklyAvailability(Base):
    """Recurring open window for one weekday"""
    __tablename__ = "weekly_availability"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(String(5), nullable=False)  # HH:MM format
    end_time = Column(String(5), nullable=False)  # HH:MM format

    is_available = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("business_id", "day_of_week", name="uq_weekly_availability_day"),
    )

    def __repr__(self):
        return f"<WeeklyAvailability(business_id={self.business_id}, day={self.day_of_week})>"


class AvailabilityException(Base):
    """Specific date overrides (holidays, time-off, special hours)"""
    __tablename__ = "availability_exceptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)

    date = Column(String(10), nullable=False)  # YYYY-MM-DD format
    is_available = Column(Boolean, nullable=False)  # False = day off
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    reason = Column(String, nullable=True)  # "Holiday", "Vacation", etc.

    __table_args__ = (
        UniqueConstraint("business_id", "date", name="uq_availability_exception_date"),
    )

    def __repr__(self):
        return f"<AvailabilityException(business_id={self.business_id}, date={self.date})>"
