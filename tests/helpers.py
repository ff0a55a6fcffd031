import uuid
from datetime import datetime, timedelta
from typing import Any, Dict

from accountability.core.errors import TransportError
from accountability.models import User
from accountability.notifications.events import QueueEventBus
from accountability.reminders.models import Reminder
from accountability.utils.timezone import utcnow


class FakeTransport:
    """Records every send; the first ``fail_times`` calls raise."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.calls = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.calls.append({"to": to, "subject": subject, "body": body})
        if len(self.calls) <= self.fail_times:
            raise TransportError(f"smtp down (call {len(self.calls)})")


class EventRecorder:
    def __init__(self, bus: QueueEventBus):
        self.events = []
        bus.subscribe_all(self)

    def __call__(self, event, data):
        self.events.append((event, data))

    def names(self):
        return [event.value for event, _ in self.events]


def email_on(email: bool = True, sms: bool = False) -> Dict[str, Any]:
    return {"notifications": {"email": email, "sms": sms}}


def in_future(**kwargs) -> datetime:
    return utcnow() + timedelta(**kwargs)


def make_reminder(db, user, **overrides):
    """Insert a reminder row directly, bypassing creation rules (e.g. past remind_at)."""
    values = dict(
        id=str(uuid.uuid4()),
        user_id=user.id,
        goal_id=None,
        message="Time to stretch",
        remind_at=utcnow() - timedelta(minutes=5),
        reminder_type="email",
        recurrence="none",
        end_repeat=None,
        is_active=True,
        is_sent=False,
        email=user.email,
    )
    values.update(overrides)
    reminder = Reminder(**values)
    db.add(reminder)
    db.commit()
    return reminder


def make_user(db, address: str, email_enabled: bool = True, sms_enabled: bool = False):
    user = User(
        id=str(uuid.uuid4()),
        email=address,
        username=address.split("@")[0],
        settings=email_on(email=email_enabled, sms=sms_enabled),
    )
    db.add(user)
    db.commit()
    return user
