# ============================================================================
# FILE: booking_core/api/v1/notifications.py
# Operator endpoints for the notification queue
# ============================================================================
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from booking_core.api.dependencies import get_booking_services, get_session
from booking_core.config.settings import settings
from booking_core.schemas.notification import NotificationOut, NotificationStatusOut, ProcessQueueOut
from booking_core.services.container import BookingServices

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/process", response_model=ProcessQueueOut)
def process_queue(
        limit: int = Query(settings.NOTIFICATION_BATCH_SIZE, ge=1, le=500),
        services: BookingServices = Depends(get_booking_services)
):
    """Run one processing batch now instead of waiting for the scheduler"""
    return {"processed": services.processor.process_pending(limit)}


@router.post("/{notification_id}/retry", response_model=NotificationOut)
def retry_notification(
        notification_id: UUID = Path(..., description="The notification ID"),
        services: BookingServices = Depends(get_booking_services),
        db: Session = Depends(get_session)
):
    """Put a failed notification back in the queue"""
    entry = services.queue.retry(db, notification_id, now=services.clock())
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/status/{appointment_id}", response_model=NotificationStatusOut)
def notification_status(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        services: BookingServices = Depends(get_booking_services),
        db: Session = Depends(get_session)
):
    entries = services.queue.status_for_appointment(db, appointment_id)
    return {
        "appointment_id": appointment_id,
        "total": len(entries),
        "pending": sum(1 for e in entries if e.status == "pending"),
        "processed": sum(1 for e in entries if e.status == "processed"),
        "failed": sum(1 for e in entries if e.status == "failed"),
        "notifications": entries,
    }
