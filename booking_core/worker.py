"""
Celery worker entry point
Drains the notification queue and runs queue maintenance
"""
import logging
from celery.signals import worker_ready, worker_shutdown

from booking_core.config.celery_config import celery_app
from booking_core.services.container import get_services
from booking_core.utils.my_logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


@worker_ready.connect
def worker_ready_handler(sender=None, **kwargs):
    """Handle worker startup"""
    logger.info("Celery worker ready")
    logger.info(f"Registered tasks: {[name for name in celery_app.tasks.keys() if name.startswith('booking_core')]}")


@worker_shutdown.connect
def worker_shutdown_handler(sender=None, **kwargs):
    """Handle worker shutdown"""
    get_services().processor.shutdown()
    logger.info("Celery worker shutting down")


if __name__ == "__main__":
    # Run worker with the embedded beat scheduler
    celery_app.start([
        'worker',
        '--beat',
        '--loglevel=info',
        '--queues=notifications,maintenance',
        '--concurrency=2',
        '--max-tasks-per-child=1000'
    ])
