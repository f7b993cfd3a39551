# booking_core/config/celery_config.py
"""Celery configuration and task routing"""
from celery import Celery
from kombu import Queue

from booking_core.config.settings import get_settings

settings = get_settings()


def create_celery_app() -> Celery:
    """Create and configure Celery application"""

    celery_app = Celery(
        "booking_core",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,

        # Task routing
        task_routes={
            "booking_core.tasks.notification_tasks.process_notification_queue": {"queue": "notifications"},
            "booking_core.tasks.notification_tasks.cleanup_notification_queue": {"queue": "maintenance"},
        },

        # Queue definitions
        task_queues=(
            Queue("notifications", routing_key="notifications"),
            Queue("maintenance", routing_key="maintenance"),
        ),

        # Periodic work
        beat_schedule={
            "process-notification-queue": {
                "task": "booking_core.tasks.notification_tasks.process_notification_queue",
                "schedule": float(settings.NOTIFICATION_PROCESS_INTERVAL_SECONDS),
            },
            "cleanup-notification-queue": {
                "task": "booking_core.tasks.notification_tasks.cleanup_notification_queue",
                "schedule": 24 * 60 * 60.0,
            },
        },

        # Worker settings
        worker_max_tasks_per_child=1000,
        worker_prefetch_multiplier=1,
        task_acks_late=True,

        broker_connection_retry_on_startup=True,
    )

    celery_app.autodiscover_tasks([
        "booking_core.tasks",
    ], related_name="notification_tasks")

    return celery_app


# Create the Celery app instance
celery_app = create_celery_app()
