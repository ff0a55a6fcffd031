"""
Celery entrypoint for the delivery worker and the beat scheduler:

    celery -A accountability.notifications.celery_worker worker
    celery -A accountability.notifications.celery_worker beat

The worker needs a broker, so a missing Redis configuration fails here
instead of falling back to immediate delivery.
"""
import logging

from celery.signals import worker_ready, worker_shutdown
from dotenv import load_dotenv

from accountability.bootstrap import build_services
from accountability.core.config import get_settings
from accountability.core.logging_config import configure_logging
from .celery_app import PROCESS_DUE_TASK, create_celery_app
from .events import QueueEvent

logger = logging.getLogger(__name__)

load_dotenv()
settings = get_settings()
configure_logging(settings)

celery_app = create_celery_app(settings)
services = build_services(settings, celery_app=celery_app)


@celery_app.task(name=PROCESS_DUE_TASK)
def process_due_task() -> int:
    """Scan for due reminders and hand them to the queue. Returns number due."""
    return services.process_due_reminders()


# Celery Beat schedule for periodic scanning
celery_app.conf.beat_schedule = {
    "process-due-reminders": {
        "task": PROCESS_DUE_TASK,
        "schedule": settings.SCHEDULER_SCAN_INTERVAL_SECONDS,
    },
}


@worker_ready.connect
def on_worker_ready(sender=None, **kwargs):
    services.events.emit(QueueEvent.READY, mode="worker")


@worker_shutdown.connect
def on_worker_shutdown(sender=None, **kwargs):
    logger.info("🛑 [Worker] Shutting down, draining notification queue")
    services.shutdown()
