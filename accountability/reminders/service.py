"""
Reminder service: CRUD, goal due-date reminders and the due-reminder processor
"""
import logging
import uuid
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional, Union

import pydantic
from sqlalchemy.orm import Session

from accountability.core import metrics
from accountability.core.config import Settings
from accountability.core.errors import NotFoundError, ValidationError
from accountability.notifications.jobs import Job, JobPayload
from accountability.notifications.queue import NotificationQueue
from accountability.stores import GoalStore, UserStore
from accountability.utils.timezone import local_date, local_time_to_utc_naive, to_utc_naive, utcnow
from . import repository
from .models import Reminder, ReminderType
from .recurrence import Recurrence, next_occurrence
from .schemas import ReminderCreate, ReminderUpdate

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "⏰ Accountability Buddy Reminder"

# Notification preference consulted for each reminder type; app reminders are always on
_PREFERENCE_CHANNELS = {
    ReminderType.EMAIL.value: "email",
    ReminderType.SMS.value: "sms",
}


def _require_id(value: Optional[str], name: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}: {value!r}") from None


def _parse(schema, data: Union[pydantic.BaseModel, Dict[str, Any]]):
    if isinstance(data, schema):
        return data
    if isinstance(data, pydantic.BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as exc:
        messages = "; ".join(err["msg"] for err in exc.errors())
        raise ValidationError(messages) from exc


def _goal_reminder_message(title: str, days_before: int) -> str:
    if days_before == 1:
        return f'⏰ "{title}" is due tomorrow!'
    if days_before == 7:
        return f'📅 "{title}" is due in a week'
    return f'📅 "{title}" is due in {days_before} days'


class ReminderService:
    """Reminder operations bound to one database session.

    Goals and users are read through the store protocols; delivery goes
    through the process-wide NotificationQueue.
    """

    def __init__(
        self,
        db: Session,
        users: UserStore,
        goals: GoalStore,
        queue: NotificationQueue,
        settings: Settings,
    ):
        self.db = db
        self.users = users
        self.goals = goals
        self.queue = queue
        self.settings = settings

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_reminder(self, user_id: str, data: Union[ReminderCreate, Dict[str, Any]]) -> Reminder:
        user_id = _require_id(user_id, "user id")
        payload = _parse(ReminderCreate, data)

        goal_id = None
        if payload.goal_id:
            goal_id = _require_id(payload.goal_id, "goal id")
            if self.goals.find_owned_goal(goal_id, user_id) is None:
                raise ValidationError("Goal not found or you don't have permission")

        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        reminder = repository.add_reminder(
            self.db,
            Reminder(
                user_id=user_id,
                goal_id=goal_id,
                message=payload.message,
                remind_at=payload.remind_at,
                reminder_type=payload.reminder_type.value,
                recurrence=payload.recurrence.value,
                end_repeat=payload.end_repeat,
                is_active=True,
                is_sent=False,
                email=user.email,
            ),
        )
        metrics.reminders_created_total.inc()
        logger.info(f"⏰ [Reminders] Created reminder {reminder.id} for user {user_id} at {reminder.remind_at}")
        return reminder

    def get_user_reminders(self, user_id: str, include_inactive: bool = False) -> List[Reminder]:
        return repository.list_user_reminders(self.db, _require_id(user_id, "user id"), include_inactive)

    def get_upcoming_reminders(self, user_id: str, now: Optional[datetime] = None) -> List[Reminder]:
        now = to_utc_naive(now) or utcnow()
        return repository.list_upcoming_reminders(self.db, _require_id(user_id, "user id"), now)

    def get_reminder(self, user_id: str, reminder_id: str) -> Reminder:
        reminder = repository.get_user_reminder(
            self.db, _require_id(user_id, "user id"), _require_id(reminder_id, "reminder id")
        )
        if reminder is None:
            raise NotFoundError("Reminder not found")
        return reminder

    def update_reminder(
        self, user_id: str, reminder_id: str, data: Union[ReminderUpdate, Dict[str, Any]]
    ) -> Reminder:
        """Apply a partial update; fields left unset keep their value."""
        changes = _parse(ReminderUpdate, data).model_dump(exclude_unset=True)
        reminder = self.get_reminder(user_id, reminder_id)

        if changes.get("message") is None:
            changes.pop("message", None)
        if changes.get("remind_at") is None:
            changes.pop("remind_at", None)
        for enum_field in ("reminder_type", "recurrence"):
            if changes.get(enum_field) is not None:
                changes[enum_field] = changes[enum_field].value
            else:
                changes.pop(enum_field, None)
        if changes.get("is_active") is None:
            changes.pop("is_active", None)

        recurrence = changes.get("recurrence", reminder.recurrence)
        remind_at = changes.get("remind_at", reminder.remind_at)
        end_repeat = changes.get("end_repeat", reminder.end_repeat)
        if recurrence != Recurrence.NONE.value and end_repeat is None:
            raise ValidationError("End repeat date is required for recurring reminders")
        if end_repeat is not None and end_repeat <= remind_at:
            raise ValidationError("End repeat must be after remindAt")

        for field, value in changes.items():
            setattr(reminder, field, value)
        reminder.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def deactivate_reminder(self, user_id: str, reminder_id: str) -> Reminder:
        reminder = self.get_reminder(user_id, reminder_id)
        reminder.is_active = False
        reminder.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(reminder)
        logger.info(f"🚫 [Reminders] Deactivated reminder {reminder.id}")
        return reminder

    def delete_reminder(self, user_id: str, reminder_id: str) -> bool:
        return repository.delete_user_reminder(
            self.db, _require_id(user_id, "user id"), _require_id(reminder_id, "reminder id")
        )

    def delete_goal_reminders(self, goal_id: str) -> int:
        """Cascade for goal deletion: remove every reminder attached to the goal."""
        deleted = repository.delete_goal_reminders(self.db, _require_id(goal_id, "goal id"))
        logger.info(f"🗑️ [Reminders] Deleted {deleted} reminders for goal {goal_id}")
        return deleted

    # ------------------------------------------------------------------
    # Goal due-date reminders
    # ------------------------------------------------------------------

    def create_goal_reminders(self, user_id: str, goal_id: str, now: Optional[datetime] = None) -> List[Reminder]:
        """Email reminders ahead of a goal's due date, at a fixed local hour.

        Days that are already past are skipped; nothing is created when the
        goal has no due date or the user turned email notifications off.
        """
        user_id = _require_id(user_id, "user id")
        goal_id = _require_id(goal_id, "goal id")
        now = to_utc_naive(now) or utcnow()

        goal = self.goals.find_owned_goal(goal_id, user_id)
        if goal is None or goal.due_date is None:
            return []

        user = self.users.find_by_id(user_id)
        if user is None:
            return []
        if not user.notifications_enabled("email"):
            logger.info(f"🔕 [Reminders] Email notifications disabled for user {user_id}; no goal reminders")
            return []

        tz_name = self.settings.DEFAULT_TIMEZONE
        due_day = local_date(goal.due_date, tz_name)
        at = time(hour=self.settings.GOAL_REMINDER_HOUR)

        reminders = []
        for days_before in self.settings.GOAL_REMINDER_OFFSETS_DAYS:
            remind_at = local_time_to_utc_naive(due_day - timedelta(days=days_before), at, tz_name)
            if remind_at <= now:
                continue
            reminders.append(
                Reminder(
                    user_id=user_id,
                    goal_id=goal_id,
                    message=_goal_reminder_message(goal.title, days_before),
                    remind_at=remind_at,
                    reminder_type=ReminderType.EMAIL.value,
                    recurrence=Recurrence.NONE.value,
                    is_active=True,
                    is_sent=False,
                    email=user.email,
                )
            )

        if not reminders:
            return []

        self.db.add_all(reminders)
        self.db.commit()
        for reminder in reminders:
            self.db.refresh(reminder)
        metrics.reminders_created_total.inc(len(reminders))
        logger.info(f"⏰ [Reminders] Created {len(reminders)} auto-reminders for goal {goal_id}")
        return reminders

    # ------------------------------------------------------------------
    # Due-reminder processor
    # ------------------------------------------------------------------

    def process_due_reminders(self, now: Optional[datetime] = None) -> int:
        """Fire every due reminder once; returns how many this run claimed.

        A claimed reminder stays sent and still gets its successor when the
        dispatch fails. A failing reminder is logged and rolled back without
        stopping the rest of the batch.
        """
        now = to_utc_naive(now) or utcnow()
        due = repository.get_due_reminders(self.db, now, limit=self.settings.SCHEDULER_BATCH_SIZE)
        metrics.scheduler_scans_total.inc()
        logger.info(f"⏰ [Reminders] Processing {len(due)} due reminders")

        processed = 0
        for reminder in due:
            reminder_id = reminder.id
            try:
                if not self._claim(reminder, now):
                    logger.info(f"⏭️ [Reminders] Reminder {reminder_id} already sent by another run")
                    continue
            except Exception:
                metrics.reminders_failed_total.inc()
                logger.exception(f"❌ [Reminders] Failed to claim reminder {reminder_id}")
                self.db.rollback()
                continue
            processed += 1

            try:
                self._dispatch(reminder)
                logger.info(f"✅ [Reminders] Reminder {reminder_id} sent successfully")
            except Exception:
                metrics.reminders_failed_total.inc()
                logger.exception(f"❌ [Reminders] Failed to send reminder {reminder_id}")
                self.db.rollback()

            try:
                self._schedule_next(reminder)
            except Exception:
                metrics.reminders_failed_total.inc()
                logger.exception(f"❌ [Reminders] Failed to schedule next occurrence of reminder {reminder_id}")
                self.db.rollback()

        return processed

    def mark_sent_and_reschedule(self, reminder: Reminder, now: Optional[datetime] = None) -> Optional[Reminder]:
        """Mark a reminder sent and create its successor, if any.

        Repeating the call for the same reminder is a no-op: it stays sent
        and no second successor is created.
        """
        now = to_utc_naive(now) or utcnow()
        if not self._claim(reminder, now):
            return None
        return self._schedule_next(reminder)

    def _claim(self, reminder: Reminder, now: datetime) -> bool:
        if not repository.claim_for_sending(self.db, reminder.id, now):
            return False
        self.db.refresh(reminder)
        metrics.reminders_processed_total.inc()
        return True

    def _dispatch(self, reminder: Reminder) -> None:
        channel = _PREFERENCE_CHANNELS.get(reminder.reminder_type)
        if channel is not None:
            user = self.users.find_by_id(reminder.user_id)
            if user is None or not user.notifications_enabled(channel):
                metrics.reminders_skipped_total.inc()
                logger.info(f"🔕 [Reminders] {channel} notifications disabled for user {reminder.user_id}; skipping {reminder.id}")
                return

        if reminder.reminder_type != ReminderType.EMAIL.value:
            # No sms or in-app transport here; the firing is only recorded
            logger.info(f"📱 [Reminders] {reminder.reminder_type} reminder {reminder.id} marked sent without delivery")
            return

        if not reminder.email:
            logger.warning(f"⚠️ [Reminders] Email reminder {reminder.id} has no email address; skipping delivery")
            return

        job = Job(
            payload=JobPayload(to=reminder.email, subject=self._subject_for(reminder), body=reminder.message),
            priority=self.settings.DEFAULT_JOB_PRIORITY,
        )
        handle = self.queue.enqueue(job)
        metrics.reminders_dispatched_total.inc()
        logger.info(f"📧 [Reminders] Reminder {reminder.id} handed to queue as job {handle.id} ({handle.mode.value})")

    def _subject_for(self, reminder: Reminder) -> str:
        if reminder.goal_id:
            goal = self.goals.find_owned_goal(reminder.goal_id, reminder.user_id)
            if goal is not None:
                return f"⏰ Reminder: {goal.title}"
        return DEFAULT_SUBJECT

    def _schedule_next(self, reminder: Reminder) -> Optional[Reminder]:
        next_at = next_occurrence(reminder.remind_at, reminder.recurrence, reminder.end_repeat)
        if next_at is None:
            if reminder.is_recurring:
                logger.info(f"⏰ [Reminders] Recurring reminder {reminder.id} has ended")
            return None

        successor = repository.add_reminder(
            self.db,
            Reminder(
                user_id=reminder.user_id,
                goal_id=reminder.goal_id,
                message=reminder.message,
                remind_at=next_at,
                reminder_type=reminder.reminder_type,
                recurrence=reminder.recurrence,
                end_repeat=reminder.end_repeat,
                is_active=True,
                is_sent=False,
                email=reminder.email,
            ),
        )
        metrics.reminders_created_total.inc()
        logger.info(f"⏰ [Reminders] Next recurrence scheduled for {next_at}")
        return successor
