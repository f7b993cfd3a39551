# booking_core/schemas/notification.py
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    recipient_type: str
    recipient_email: str
    recipient_phone: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    scheduled_for: datetime
    status: str
    attempts: int
    last_attempt_at: Optional[datetime] = None
    error: Optional[str] = None


class NotificationStatusOut(BaseModel):
    appointment_id: UUID
    total: int
    pending: int
    processed: int
    failed: int
    notifications: List[NotificationOut]


class ProcessQueueOut(BaseModel):
    processed: int
