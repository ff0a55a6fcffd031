"""
Explicit service construction for a host process.

Everything the reminder pipeline needs is built once here and passed
around as values; nothing is created at import time.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from celery import Celery
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from accountability.core.config import Settings
from accountability.db.session import create_db_engine, create_session_factory, init_db
from accountability.notifications.events import QueueEventBus, log_queue_event
from accountability.notifications.queue import NotificationQueue, build_notification_queue
from accountability.notifications.store import JobStore
from accountability.notifications.transport import Transport, build_transport
from accountability.reminders.service import ReminderService
from accountability.stores import SqlGoalStore, SqlUserStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    events: QueueEventBus
    jobs: JobStore
    queue: NotificationQueue

    def reminder_service(self, db: Session) -> ReminderService:
        return ReminderService(
            db=db,
            users=SqlUserStore(db),
            goals=SqlGoalStore(db),
            queue=self.queue,
            settings=self.settings,
        )

    def process_due_reminders(self) -> int:
        """One processor run on a fresh session."""
        db = self.session_factory()
        try:
            return self.reminder_service(db).process_due_reminders()
        finally:
            db.close()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        drained = self.queue.shutdown(timeout=timeout)
        self.engine.dispose()
        return drained


def build_services(
    settings: Settings,
    celery_app: Optional[Celery] = None,
    transport: Optional[Transport] = None,
    engine: Optional[Engine] = None,
) -> Services:
    engine = engine or create_db_engine(settings.DATABASE_URL)
    init_db(engine)
    session_factory = create_session_factory(engine)

    events = QueueEventBus()
    events.subscribe_all(log_queue_event)
    jobs = JobStore(session_factory, remove_on_complete=settings.JOB_REMOVE_ON_COMPLETE)
    queue = build_notification_queue(
        settings,
        transport or build_transport(settings),
        jobs,
        events=events,
        celery_app=celery_app,
    )
    logger.info(f"🚀 [Bootstrap] Reminder services ready (queue mode: {queue.mode.value})")
    return Services(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        events=events,
        jobs=jobs,
        queue=queue,
    )
