"""
Reminder model - one row per scheduled firing; recurring reminders spawn a successor row
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Index, String

from accountability.db.base import Base
from accountability.utils.timezone import utcnow
from .recurrence import Recurrence, next_occurrence


class ReminderType(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    APP = "app"


class ReminderStatus(str, Enum):
    """Lifecycle states; derived from the persisted flags, never stored"""
    SCHEDULED = "scheduled"
    DUE = "due"
    SENT = "sent"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Reminder(Base):
    __tablename__ = "reminders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    goal_id = Column(String(36), nullable=True)  # weak reference, checked at creation only
    message = Column(String(255), nullable=False)
    remind_at = Column(DateTime, nullable=False)
    reminder_type = Column(String, nullable=False, default=ReminderType.APP.value)
    recurrence = Column(String, nullable=False, default=Recurrence.NONE.value)
    end_repeat = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_sent = Column(Boolean, nullable=False, default=False)
    email = Column(String, nullable=True)  # user's email captured at creation
    last_sent = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_reminders_user_remind_at", "user_id", "remind_at"),
        Index("ix_reminders_due", "is_active", "is_sent", "remind_at"),
        Index("ix_reminders_goal_id", "goal_id"),
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.NONE.value

    def status_at(self, now: Optional[datetime] = None) -> ReminderStatus:
        now = now or utcnow()
        if not self.is_active:
            return ReminderStatus.CANCELLED
        if self.is_sent:
            if self.is_recurring and next_occurrence(self.remind_at, self.recurrence, self.end_repeat) is None:
                return ReminderStatus.EXPIRED
            return ReminderStatus.SENT
        if self.remind_at <= now:
            return ReminderStatus.DUE
        return ReminderStatus.SCHEDULED

    def __repr__(self) -> str:
        return f"<Reminder {self.id} user={self.user_id} at={self.remind_at} sent={self.is_sent}>"
