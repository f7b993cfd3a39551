# booking_core/models/appointment.py
from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_core.models.base import Base
import uuid

ACTIVE_STATUSES = ("pending", "confirmed")

_ACTIVE_SLOT_WHERE = text("status IN ('pending', 'confirmed')")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # References
    business_id = Column(Uuid(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(Uuid(as_uuid=True), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    service_price = Column(Numeric(10, 2), nullable=False, default=0)

    # Customer info
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)

    # Slot, business-local clock
    appointment_date = Column(String(10), nullable=False)  # YYYY-MM-DD format
    start_time = Column(String(5), nullable=False)  # HH:MM format
    end_time = Column(String(5), nullable=False)  # HH:MM format
    notes = Column(Text, nullable=True)

    # Status tracking
    status = Column(String(20), nullable=False, default="pending")  # pending, confirmed, cancelled, completed
    confirmation_number = Column(String(16), nullable=False, unique=True)

    # Optimistic locking
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    business = relationship("Business")
    service = relationship("Service")

    __table_args__ = (
        Index("ix_appointments_business_date", "business_id", "appointment_date"),
        # Two active bookings can never share a start time
        Index(
            "uq_appointments_active_slot",
            "business_id", "appointment_date", "start_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_WHERE,
            sqlite_where=_ACTIVE_SLOT_WHERE,
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, date={self.appointment_date}, "
            f"{self.start_time}-{self.end_time}, status={self.status})>"
        )
