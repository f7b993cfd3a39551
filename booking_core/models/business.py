# booking_core/models/business.py
"""
Business Model
A business owns its services, availability, appointments and notification preferences.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from booking_core.models.base import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(20), nullable=True)

    # IANA timezone name; appointment clock times are local to it
    timezone = Column(String(50), default="UTC")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    is_active = Column(Boolean, default=True)

    services = relationship("Service", back_populates="business")
    notification_preferences = relationship(
        "BusinessNotificationPreferences", uselist=False, back_populates="business"
    )

    def __repr__(self):
        return f"<Business(id={self.id}, name={self.name})>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "phone_number": self.phone_number,
            "timezone": self.timezone,
            "is_active": self.is_active,
        }


class BusinessNotificationPreferences(Base):
    """Which channels a business wants to be notified on. Missing row = defaults."""
    __tablename__ = "business_notification_preferences"

    business_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        primary_key=True,
    )

    email = Column(Boolean, default=True, nullable=False)
    whatsapp = Column(Boolean, default=True, nullable=False)
    sms = Column(Boolean, default=False, nullable=False)
    reminder_email = Column(Boolean, default=True, nullable=False)
    reminder_whatsapp = Column(Boolean, default=True, nullable=False)
    reminder_sms = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    business = relationship("Business", back_populates="notification_preferences")

    @property
    def channels_enabled(self) -> bool:
        return bool(self.email or self.whatsapp or self.sms)

    @property
    def reminders_enabled(self) -> bool:
        return bool(self.reminder_email or self.reminder_whatsapp or self.reminder_sms)

    def __repr__(self):
        return f"<BusinessNotificationPreferences(business_id={self.business_id})>"
