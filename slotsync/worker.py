"""
Celery worker entry point
Runs the periodic calendar sync (start beat with `celery -A slotsync.worker beat`)
"""
import logging
from celery.signals import worker_ready, worker_shutdown

from slotsync.config.celery_config import celery_app
from slotsync.config.settings import get_settings
from slotsync.utils.my_logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()


@worker_ready.connect
def worker_ready_handler(sender=None, **kwargs):
    """Handle worker startup"""
    logger.info("Celery worker ready")
    logger.info(f"Registered tasks: {sorted(k for k in celery_app.tasks.keys() if k.startswith('slotsync.'))}")
    logger.info(f"Calendar sync every {settings.SYNC_INTERVAL_MINUTES} minutes")


@worker_shutdown.connect
def worker_shutdown_handler(sender=None, **kwargs):
    """Handle worker shutdown"""
    logger.info("Celery worker shutting down")


if __name__ == "__main__":
    # Run worker directly
    celery_app.start([
        'worker',
        '--loglevel=info',
        '--concurrency=2',
        '--max-tasks-per-child=1000'
    ])
