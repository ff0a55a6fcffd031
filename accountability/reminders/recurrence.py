"""
Recurrence rules and next-occurrence calculation
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from accountability.core.errors import ValidationError


class Recurrence(str, Enum):
    """How a reminder re-schedules itself after firing"""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


_STEPS = {
    Recurrence.DAILY: timedelta(days=1),
    Recurrence.WEEKLY: timedelta(days=7),
    # relativedelta keeps the day of month and clamps to the last day
    # of a shorter month (Jan 31 -> Feb 28/29)
    Recurrence.MONTHLY: relativedelta(months=1),
}


def parse_recurrence(value: Union[Recurrence, str, None]) -> Recurrence:
    if value is None:
        return Recurrence.NONE
    if isinstance(value, Recurrence):
        return value
    try:
        return Recurrence(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown recurrence: {value!r}") from None


def next_occurrence(
    remind_at: datetime,
    recurrence: Union[Recurrence, str, None],
    end_repeat: Optional[datetime] = None,
) -> Optional[datetime]:
    """Next firing time after ``remind_at``, or None when the lineage stops.

    None is returned for non-recurring reminders and when the computed
    occurrence falls after ``end_repeat``. An occurrence exactly at
    ``end_repeat`` is still produced.
    """
    step = _STEPS.get(parse_recurrence(recurrence))
    if step is None:
        return None

    candidate = remind_at + step
    if end_repeat is not None and candidate > end_repeat:
        return None
    return candidate
