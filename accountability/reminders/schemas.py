"""
Schemas for creating and updating reminders
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from accountability.utils.timezone import to_utc_naive, utcnow
from .models import ReminderType
from .recurrence import Recurrence


class ReminderCreate(BaseModel):
    """Schema for creating a reminder"""
    message: str = Field(..., min_length=1, max_length=255)
    remind_at: datetime
    goal_id: Optional[str] = None
    reminder_type: ReminderType = ReminderType.APP
    recurrence: Recurrence = Recurrence.NONE
    end_repeat: Optional[datetime] = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("remind_at", "end_repeat")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(v)

    @field_validator("remind_at")
    @classmethod
    def must_be_future(cls, v: datetime) -> datetime:
        if v <= utcnow():
            raise ValueError("Reminder time must be in the future")
        return v

    @model_validator(mode="after")
    def check_end_repeat(self) -> "ReminderCreate":
        if self.recurrence != Recurrence.NONE and self.end_repeat is None:
            raise ValueError("End repeat date is required for recurring reminders")
        if self.end_repeat is not None and self.end_repeat <= self.remind_at:
            raise ValueError("End repeat must be after remindAt")
        return self


class ReminderUpdate(BaseModel):
    """Partial update; is_sent is deliberately absent"""
    message: Optional[str] = Field(default=None, min_length=1, max_length=255)
    remind_at: Optional[datetime] = None
    reminder_type: Optional[ReminderType] = None
    recurrence: Optional[Recurrence] = None
    end_repeat: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("remind_at", "end_repeat")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(v)
