import uuid
from datetime import timedelta

import pytest

from accountability.core.config import Settings
from accountability.db.session import create_db_engine, create_session_factory, init_db
from accountability.models import Goal
from accountability.notifications.events import QueueEventBus
from accountability.notifications.jobs import RetryPolicy
from accountability.notifications.queue import build_notification_queue
from accountability.notifications.store import JobStore
from accountability.notifications.worker import DeliveryWorker, JobExecutor
from accountability.reminders.service import ReminderService
from accountability.stores import SqlGoalStore, SqlUserStore
from accountability.utils.timezone import utcnow
from tests.helpers import EventRecorder, FakeTransport, make_user


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        REDIS_DISABLED=True,
        DEFAULT_TIMEZONE="UTC",
        JOB_MAX_ATTEMPTS=5,
        JOB_BACKOFF_BASE_SECONDS=2.0,
    )


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def events():
    return QueueEventBus()


@pytest.fixture
def recorder(events):
    return EventRecorder(events)


@pytest.fixture
def jobs(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def executor(transport, jobs, events):
    return JobExecutor(DeliveryWorker(transport), jobs, events, RetryPolicy(max_attempts=5, backoff_base=2.0))


@pytest.fixture
def queue(settings, transport, jobs, events):
    queue = build_notification_queue(settings, transport, jobs, events=events)
    yield queue
    queue.shutdown()


@pytest.fixture
def user(db):
    return make_user(db, "buddy@example.com")


@pytest.fixture
def goal(db, user):
    goal = Goal(
        id=str(uuid.uuid4()),
        user_id=user.id,
        title="Run a marathon",
        due_date=utcnow() + timedelta(days=30),
    )
    db.add(goal)
    db.commit()
    return goal


@pytest.fixture
def service(db, queue, settings):
    return ReminderService(db, SqlUserStore(db), SqlGoalStore(db), queue, settings)