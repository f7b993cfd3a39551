# booking_core/tasks/notification_tasks.py
"""Celery tasks that drain and prune the notification queue"""
from datetime import timedelta
import logging

from booking_core.config.celery_config import celery_app
from booking_core.config.settings import get_settings
from booking_core.services.container import get_services

logger = logging.getLogger(__name__)
settings = get_settings()


@celery_app.task(name="booking_core.tasks.notification_tasks.process_notification_queue")
def process_notification_queue(limit: int = None):
    """
    Process due notification entries.

    Failed entries stay failed; there is no Celery-level retry because each
    entry already records its own outcome.
    """
    limit = limit or settings.NOTIFICATION_BATCH_SIZE
    processed = get_services().processor.process_pending(limit)
    logger.info(f"Notification queue run processed {processed} entries")
    return {"status": "success", "processed": processed}


@celery_app.task(name="booking_core.tasks.notification_tasks.cleanup_notification_queue", bind=True, max_retries=3)
def cleanup_notification_queue(self, retention_days: int = None):
    """Delete processed and failed entries older than the retention window"""
    retention_days = retention_days or settings.NOTIFICATION_RETENTION_DAYS
    services = get_services()
    db = services.session_factory()
    try:
        cutoff = services.clock() - timedelta(days=retention_days)
        deleted = services.queue.cleanup_old(db, cutoff)
        db.commit()
        return {"status": "success", "deleted": deleted}
    except Exception as exc:
        db.rollback()
        logger.error(f"Notification cleanup failed: {exc}", exc_info=True)
        # Retry with exponential backoff
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))
    finally:
        db.close()
