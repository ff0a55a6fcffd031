from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from accountability.utils.timezone import utcnow
from .models import Reminder


def add_reminder(db: Session, reminder: Reminder) -> Reminder:
    db.add(reminder)
    db.commit()
    db.refresh(reminder)
    return reminder


def get_user_reminder(db: Session, user_id: str, reminder_id: str) -> Optional[Reminder]:
    stmt = select(Reminder).where(Reminder.id == reminder_id).where(Reminder.user_id == user_id)
    return db.execute(stmt).scalars().first()


def list_user_reminders(db: Session, user_id: str, include_inactive: bool = False) -> List[Reminder]:
    stmt = select(Reminder).where(Reminder.user_id == user_id).order_by(Reminder.remind_at.asc())
    if not include_inactive:
        stmt = stmt.where(Reminder.is_active == True)  # noqa: E712
    return list(db.execute(stmt).scalars())


def list_upcoming_reminders(db: Session, user_id: str, now: datetime) -> List[Reminder]:
    stmt = (
        select(Reminder)
        .where(Reminder.user_id == user_id)
        .where(Reminder.is_active == True)  # noqa: E712
        .where(Reminder.is_sent == False)  # noqa: E712
        .where(Reminder.remind_at >= now)
        .order_by(Reminder.remind_at.asc())
    )
    return list(db.execute(stmt).scalars())


def get_due_reminders(db: Session, now: datetime, limit: int = 1000) -> List[Reminder]:
    stmt = (
        select(Reminder)
        .where(Reminder.is_active == True)  # noqa: E712
        .where(Reminder.is_sent == False)  # noqa: E712
        .where(Reminder.remind_at <= now)
        .order_by(Reminder.remind_at.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def claim_for_sending(db: Session, reminder_id: str, now: datetime) -> bool:
    """Atomically flip is_sent from False to True.

    Returns False when the row was already sent (or is gone), meaning another
    processor run handled it.
    """
    result = db.execute(
        update(Reminder)
        .where(Reminder.id == reminder_id)
        .where(Reminder.is_sent == False)  # noqa: E712
        .values(is_sent=True, last_sent=now, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def delete_user_reminder(db: Session, user_id: str, reminder_id: str) -> bool:
    result = db.execute(
        delete(Reminder).where(Reminder.id == reminder_id).where(Reminder.user_id == user_id)
    )
    db.commit()
    return result.rowcount == 1


def delete_goal_reminders(db: Session, goal_id: str) -> int:
    result = db.execute(delete(Reminder).where(Reminder.goal_id == goal_id))
    db.commit()
    return result.rowcount
