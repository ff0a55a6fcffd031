"""
Job records for delivery bookkeeping and dead-letter retention.

Completed jobs are removed (unless configured otherwise); jobs that
exhaust their retries stay in the table in the ``dead`` state.
"""
from typing import List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, select
from sqlalchemy.orm import sessionmaker

from accountability.db.base import Base
from accountability.utils.timezone import utcnow
from .jobs import Job, JobPayload, JobState, QueueMode


class NotificationJob(Base):
    __tablename__ = "notification_jobs"

    id = Column(String(36), primary_key=True)
    to_address = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    body = Column(Text, nullable=False, default="")
    priority = Column(Integer, nullable=False, default=3)
    attempts = Column(Integer, nullable=False, default=0)
    state = Column(String, nullable=False, default=JobState.QUEUED.value, index=True)
    mode = Column(String, nullable=False, default=QueueMode.IMMEDIATE.value)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def payload(self) -> JobPayload:
        return JobPayload(to=self.to_address, subject=self.subject, body=self.body)


class JobStore:
    """Each call uses its own short-lived session so workers and threads can share a store."""

    def __init__(self, session_factory: sessionmaker, remove_on_complete: bool = True):
        self.session_factory = session_factory
        self.remove_on_complete = remove_on_complete

    def add(self, job: Job, mode: QueueMode) -> None:
        db = self.session_factory()
        try:
            db.add(
                NotificationJob(
                    id=job.id,
                    to_address=job.payload.to,
                    subject=job.payload.subject,
                    body=job.payload.body,
                    priority=job.priority,
                    attempts=0,
                    state=JobState.QUEUED.value,
                    mode=mode.value,
                )
            )
            db.commit()
        finally:
            db.close()

    def set_mode(self, job_id: str, mode: QueueMode) -> None:
        db = self.session_factory()
        try:
            record = db.get(NotificationJob, job_id)
            if record is not None:
                record.mode = mode.value
                db.commit()
        finally:
            db.close()

    def start(self, job_id: str) -> Optional[JobState]:
        """Move a job to ``processing``; returns the state it was in before."""
        db = self.session_factory()
        try:
            record = db.get(NotificationJob, job_id)
            if record is None:
                return None
            previous = JobState(record.state)
            record.state = JobState.PROCESSING.value
            db.commit()
            return previous
        finally:
            db.close()

    def record_failure(self, job_id: str, error: str) -> Optional[int]:
        """Count a failed attempt; returns the attempts made so far."""
        db = self.session_factory()
        try:
            record = db.get(NotificationJob, job_id)
            if record is None:
                return None
            record.attempts = (record.attempts or 0) + 1
            record.state = JobState.FAILED.value
            record.last_error = error
            db.commit()
            return record.attempts
        finally:
            db.close()

    def complete(self, job_id: str) -> None:
        db = self.session_factory()
        try:
            record = db.get(NotificationJob, job_id)
            if record is None:
                return
            if self.remove_on_complete:
                db.delete(record)
            else:
                record.state = JobState.COMPLETED.value
            db.commit()
        finally:
            db.close()

    def mark_dead(self, job_id: str, error: Optional[str] = None) -> None:
        db = self.session_factory()
        try:
            record = db.get(NotificationJob, job_id)
            if record is None:
                return
            record.state = JobState.DEAD.value
            if error:
                record.last_error = error
            db.commit()
        finally:
            db.close()

    def get(self, job_id: str) -> Optional[NotificationJob]:
        db = self.session_factory()
        try:
            return db.get(NotificationJob, job_id)
        finally:
            db.close()

    def list_dead(self, limit: int = 100) -> List[NotificationJob]:
        db = self.session_factory()
        try:
            stmt = (
                select(NotificationJob)
                .where(NotificationJob.state == JobState.DEAD.value)
                .order_by(NotificationJob.updated_at.desc())
                .limit(limit)
            )
            return list(db.execute(stmt).scalars())
        finally:
            db.close()
