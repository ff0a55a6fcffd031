"""Tests for the due-reminder processor."""
from datetime import timedelta

from sqlalchemy import select

from accountability.reminders import repository
from accountability.reminders.models import Reminder, ReminderStatus
from accountability.reminders.service import DEFAULT_SUBJECT, ReminderService
from accountability.stores import SqlGoalStore, SqlUserStore
from accountability.utils.timezone import utcnow
from tests.helpers import make_reminder, make_user


def _all_reminders(db, user):
    stmt = select(Reminder).where(Reminder.user_id == user.id).order_by(Reminder.remind_at.asc())
    return list(db.execute(stmt).scalars())


class ExplodingUserStore(SqlUserStore):
    """Fails for one user so batch isolation can be observed."""

    def __init__(self, db, bad_user_id):
        super().__init__(db)
        self.bad_user_id = bad_user_id

    def find_by_id(self, user_id):
        if user_id == self.bad_user_id:
            raise RuntimeError("user store unavailable")
        return super().find_by_id(user_id)


class TestProcessDueReminders:
    def test_email_reminder_is_delivered_and_marked_sent(self, service, db, user, goal, transport):
        reminder = make_reminder(db, user, goal_id=goal.id, message="Go for a run")

        assert service.process_due_reminders() == 1

        assert transport.calls == [
            {"to": "buddy@example.com", "subject": "⏰ Reminder: Run a marathon", "body": "Go for a run"}
        ]
        db.refresh(reminder)
        assert reminder.is_sent is True
        assert reminder.last_sent is not None
        assert reminder.status_at() is ReminderStatus.SENT

    def test_default_subject_without_goal(self, service, db, user, transport):
        make_reminder(db, user)
        service.process_due_reminders()
        assert transport.calls[0]["subject"] == DEFAULT_SUBJECT

    def test_future_and_inactive_reminders_are_ignored(self, service, db, user, transport):
        make_reminder(db, user, remind_at=utcnow() + timedelta(hours=1))
        make_reminder(db, user, is_active=False)

        assert service.process_due_reminders() == 0
        assert transport.calls == []

    def test_email_preference_off_skips_dispatch_but_marks_sent(self, service, db, transport):
        quiet = make_user(db, "quiet@example.com", email_enabled=False)
        reminder = make_reminder(db, quiet)

        assert service.process_due_reminders() == 1

        assert transport.calls == []
        db.refresh(reminder)
        assert reminder.is_sent is True

    def test_preference_is_read_live(self, service, db, user, transport):
        reminder = make_reminder(db, user)
        user.settings = {"notifications": {"email": False, "sms": False}}
        db.commit()

        service.process_due_reminders()

        assert transport.calls == []
        db.refresh(reminder)
        assert reminder.is_sent is True

    def test_sms_and_app_reminders_are_marked_sent_without_email(self, service, db, user, transport):
        sms = make_reminder(db, user, reminder_type="sms")
        app = make_reminder(db, user, reminder_type="app")

        assert service.process_due_reminders() == 2

        assert transport.calls == []
        for reminder in (sms, app):
            db.refresh(reminder)
            assert reminder.is_sent is True

    def test_daily_reminder_spawns_successor(self, service, db, user, transport):
        first_at = utcnow() - timedelta(minutes=1)
        make_reminder(
            db,
            user,
            message="Meditate",
            remind_at=first_at,
            recurrence="daily",
            end_repeat=first_at + timedelta(days=10),
        )

        service.process_due_reminders()

        original, successor = _all_reminders(db, user)
        assert original.is_sent is True
        assert successor.is_sent is False
        assert successor.remind_at == first_at + timedelta(days=1)
        assert successor.message == "Meditate"
        assert successor.recurrence == "daily"
        assert successor.reminder_type == "email"
        assert successor.email == user.email
        assert successor.end_repeat == original.end_repeat

    def test_weekly_lineage_stops_at_end_repeat(self, service, db, user):
        first_at = utcnow() - timedelta(minutes=1)
        reminder = make_reminder(
            db, user, remind_at=first_at, recurrence="weekly", end_repeat=first_at + timedelta(days=3)
        )

        service.process_due_reminders()

        assert len(_all_reminders(db, user)) == 1
        db.refresh(reminder)
        assert reminder.status_at() is ReminderStatus.EXPIRED

    def test_second_run_does_not_resend(self, service, db, user, transport):
        make_reminder(db, user)

        service.process_due_reminders()
        assert service.process_due_reminders() == 0
        assert len(transport.calls) == 1

    def test_one_failing_reminder_does_not_stop_the_batch(self, db, queue, settings, user, transport):
        broken = make_user(db, "broken@example.com")
        make_reminder(db, broken, remind_at=utcnow() - timedelta(minutes=10))
        healthy = make_reminder(db, user, remind_at=utcnow() - timedelta(minutes=5))
        service = ReminderService(db, ExplodingUserStore(db, broken.id), SqlGoalStore(db), queue, settings)

        assert service.process_due_reminders() == 2

        assert [call["to"] for call in transport.calls] == ["buddy@example.com"]
        db.refresh(healthy)
        assert healthy.is_sent is True

    def test_closed_queue_is_contained_per_reminder(self, service, db, user, queue, transport):
        queue.shutdown()
        make_reminder(db, user)
        make_reminder(db, user, reminder_type="app")

        assert service.process_due_reminders() == 2
        assert transport.calls == []

    def test_failed_dispatch_still_schedules_successor(self, db, queue, settings, transport):
        owner = make_user(db, "flaky@example.com")
        first_at = utcnow() - timedelta(minutes=1)
        make_reminder(db, owner, remind_at=first_at, recurrence="daily", end_repeat=first_at + timedelta(days=10))
        service = ReminderService(db, ExplodingUserStore(db, owner.id), SqlGoalStore(db), queue, settings)

        assert service.process_due_reminders() == 1

        assert transport.calls == []
        original, successor = _all_reminders(db, owner)
        assert original.is_sent is True
        assert successor.is_sent is False
        assert successor.remind_at == first_at + timedelta(days=1)

    def test_count_excludes_reminders_claimed_elsewhere(self, service, db, user, transport, monkeypatch):
        make_reminder(db, user)
        monkeypatch.setattr(repository, "claim_for_sending", lambda db, reminder_id, now: False)

        assert service.process_due_reminders() == 0
        assert transport.calls == []


class TestMarkSentAndReschedule:
    def test_is_idempotent(self, service, db, user):
        first_at = utcnow() - timedelta(minutes=1)
        reminder = make_reminder(
            db, user, remind_at=first_at, recurrence="daily", end_repeat=first_at + timedelta(days=5)
        )
        now = utcnow()

        successor = service.mark_sent_and_reschedule(reminder, now)
        again = service.mark_sent_and_reschedule(reminder, now)

        assert successor is not None
        assert successor.remind_at == first_at + timedelta(days=1)
        assert again is None
        assert reminder.is_sent is True
        assert len(_all_reminders(db, user)) == 2

    def test_non_recurring_has_no_successor(self, service, db, user):
        reminder = make_reminder(db, user)
        assert service.mark_sent_and_reschedule(reminder) is None
        assert reminder.is_sent is True
        assert len(_all_reminders(db, user)) == 1
