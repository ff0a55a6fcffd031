"""
Delivery job shapes shared by both queue strategies
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class JobState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD = "dead"


class QueueMode(str, Enum):
    DURABLE = "durable"
    IMMEDIATE = "immediate"


@dataclass(frozen=True)
class JobPayload:
    to: str
    subject: str
    body: str

    def to_message(self) -> Dict[str, str]:
        """JSON-serialisable form carried through the broker."""
        return {"to": self.to, "subject": self.subject, "body": self.body}

    @classmethod
    def from_message(cls, data: Dict[str, Any]) -> "JobPayload":
        return cls(to=data["to"], subject=data["subject"], body=data.get("body") or "")


@dataclass
class Job:
    payload: JobPayload
    priority: int = 3
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class JobHandle:
    """What enqueue() hands back to the caller"""
    id: str
    mode: QueueMode
    state: JobState


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling and exponential backoff for durable delivery"""
    max_attempts: int = 5
    backoff_base: float = 2.0

    def backoff(self, failed_attempts: int) -> float:
        """Delay before the next attempt once ``failed_attempts`` attempts have failed.

        Retry number r (0 for the first retry) waits ``backoff_base * 2**r``.
        """
        retry_number = max(failed_attempts - 1, 0)
        return self.backoff_base * (2 ** retry_number)

    def exhausted(self, failed_attempts: int) -> bool:
        return failed_attempts >= self.max_attempts


@dataclass(frozen=True)
class AttemptResult:
    job_id: str
    state: JobState
    attempts: int
    error: Optional[Exception] = None
    retry_in: Optional[float] = None
