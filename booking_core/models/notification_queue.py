# booking_core/models/notification_queue.py
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, Index, Uuid
from sqlalchemy.sql import func
import uuid
from booking_core.models.base import Base


REMINDER_TYPES = (
    "booking_reminder_24h",
    "booking_reminder_2h",
    "booking_reminder_30m",
    "business_booking_reminder",
)


class NotificationQueueEntry(Base):
    """Durable outbound notification, kept after delivery as an audit trail"""
    __tablename__ = "notification_queue"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Notification details
    type = Column(String(50), nullable=False)  # "booking_confirmation", "booking_reminder_24h", ...
    recipient_id = Column(String(255), nullable=False)  # business id or customer email
    recipient_type = Column(String(20), nullable=False)  # "business", "customer"
    recipient_email = Column(String(255), nullable=False)
    recipient_phone = Column(String(30), nullable=True)
    payload = Column(JSON, nullable=False, default=dict)  # appointment/service/business ids

    # Delivery tracking
    scheduled_for = Column(DateTime(timezone=True), nullable=False)  # UTC
    status = Column(String(20), nullable=False, default="pending")  # "pending", "processed", "failed"
    attempts = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(DateTime(timezone=True))
    error = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_notification_queue_status_scheduled", "status", "scheduled_for"),
    )

    @property
    def appointment_id(self):
        return (self.payload or {}).get("appointment_id")

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "type": self.type,
            "recipient_type": self.recipient_type,
            "recipient_email": self.recipient_email,
            "recipient_phone": self.recipient_phone,
            "payload": self.payload,
            "scheduled_for": self.scheduled_for.isoformat() if self.scheduled_for else None,
            "status": self.status,
            "attempts": self.attempts,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "error": self.error,
        }

    def __repr__(self):
        return f"<NotificationQueueEntry(id={self.id}, type={self.type}, status={self.status})>"
