"""
Delivery worker: turns a job payload into a transport call and records the outcome
"""
import logging

from accountability.core import metrics
from accountability.core.errors import TransportError
from .events import QueueEvent, QueueEventBus
from .jobs import AttemptResult, JobPayload, JobState, RetryPolicy
from .store import JobStore
from .transport import Transport

logger = logging.getLogger(__name__)


class DeliveryWorker:
    def __init__(self, transport: Transport):
        self.transport = transport

    def deliver(self, payload: JobPayload) -> None:
        """Send one payload; every failure surfaces as TransportError."""
        try:
            self.transport.send(payload.to, payload.subject, payload.body)
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(f"Delivery to {payload.to} failed: {exc}") from exc


class JobExecutor:
    """Runs a single delivery attempt and keeps the job record in step."""

    def __init__(self, worker: DeliveryWorker, jobs: JobStore, events: QueueEventBus, policy: RetryPolicy):
        self.worker = worker
        self.jobs = jobs
        self.events = events
        self.policy = policy

    def attempt(self, job_id: str, payload: JobPayload, allow_retry: bool = True, retries: int = 0) -> AttemptResult:
        """Deliver once.

        ``retries`` is the broker's own retry counter, used only when the
        job record is missing. With ``allow_retry=False`` a failure leaves the
        job ``failed`` for the caller to resolve instead of scheduling a
        retry or dead-lettering it.
        """
        previous = self.jobs.start(job_id)
        if previous is JobState.PROCESSING:
            # The record says a worker already had it: that worker died mid-job
            self.events.emit(QueueEvent.STALLED, job_id=job_id)

        logger.info(f"📨 [Worker] Processing email job {job_id} → {payload.to}")
        try:
            self.worker.deliver(payload)
        except TransportError as exc:
            recorded = self.jobs.record_failure(job_id, str(exc))
            attempts = recorded if recorded is not None else retries + 1
            metrics.jobs_failed_total.inc()
            self.events.emit(QueueEvent.FAILED, job_id=job_id, attempts=attempts, error=str(exc))

            if not allow_retry:
                return AttemptResult(job_id=job_id, state=JobState.FAILED, attempts=attempts, error=exc)

            if self.policy.exhausted(attempts):
                self.jobs.mark_dead(job_id, str(exc))
                metrics.jobs_dead_total.inc()
                self.events.emit(QueueEvent.DEAD, job_id=job_id, attempts=attempts, error=str(exc))
                return AttemptResult(job_id=job_id, state=JobState.DEAD, attempts=attempts, error=exc)

            delay = self.policy.backoff(attempts)
            logger.warning(f"🔁 [Worker] Email job {job_id} will retry in {delay:.0f}s (attempt {attempts}/{self.policy.max_attempts})")
            return AttemptResult(job_id=job_id, state=JobState.FAILED, attempts=attempts, error=exc, retry_in=delay)

        self.complete(job_id)
        return AttemptResult(job_id=job_id, state=JobState.COMPLETED, attempts=retries)

    def complete(self, job_id: str) -> None:
        self.jobs.complete(job_id)
        metrics.jobs_completed_total.inc()
        self.events.emit(QueueEvent.COMPLETED, job_id=job_id)

    def bury(self, job_id: str, error: Exception) -> None:
        """Dead-letter a job whose last-resort send also failed."""
        self.jobs.mark_dead(job_id, str(error))
        metrics.jobs_dead_total.inc()
        self.events.emit(QueueEvent.DEAD, job_id=job_id, error=str(error))
