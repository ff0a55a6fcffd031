"""
Notification queue: one enqueue() interface over two delivery strategies.

- DurableQueue publishes jobs to Celery on Redis; workers retry failed
  deliveries with exponential backoff and dead-letter exhausted jobs.
- ImmediateQueue runs the delivery inline, with no broker at all.

The strategy is picked once by build_notification_queue(). A broker error
while publishing switches the service to immediate delivery for the rest
of the process lifetime; there is no reconnection.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Optional, Union

from celery import Celery, Task

from accountability.core import metrics
from accountability.core.config import Settings
from accountability.core.errors import ConfigurationError, DeliveryFailedError, QueueClosedError, TransportError
from .celery_app import create_celery_app, register_delivery_task
from .events import QueueEvent, QueueEventBus
from .jobs import Job, JobHandle, JobState, QueueMode, RetryPolicy
from .store import JobStore
from .transport import Transport
from .worker import DeliveryWorker, JobExecutor

logger = logging.getLogger(__name__)


class ImmediateQueue:
    mode = QueueMode.IMMEDIATE

    def __init__(self, executor: JobExecutor):
        self.executor = executor

    def submit(self, job: Job) -> JobHandle:
        result = self.executor.attempt(job.id, job.payload, allow_retry=False)
        if result.state is JobState.FAILED:
            raise DeliveryFailedError(job.id, result.error)
        return JobHandle(id=job.id, mode=self.mode, state=result.state)

    def close(self) -> None:
        logger.info("🚫 [Queue] Immediate queue closed")


class DurableQueue:
    mode = QueueMode.DURABLE

    def __init__(self, celery_app: Celery, task: Task, events: QueueEventBus, connect_retries: int = 1):
        self.celery_app = celery_app
        self.task = task
        self.events = events
        self.connect_retries = connect_retries

    def start(self) -> None:
        """Verify the broker is reachable before any job is accepted."""
        with self.celery_app.connection_for_write() as conn:
            conn.ensure_connection(max_retries=self.connect_retries, interval_start=1, interval_step=1)
        self.events.emit(QueueEvent.CONNECTED)
        self.events.emit(QueueEvent.READY, mode=self.mode.value)

    def submit(self, job: Job) -> JobHandle:
        self.task.apply_async(
            args=[job.id, job.payload.to_message()],
            task_id=job.id,
            priority=job.priority,
        )
        return JobHandle(id=job.id, mode=self.mode, state=JobState.QUEUED)

    def close(self) -> None:
        self.celery_app.close()
        logger.info("🔴 [Queue] Broker connection released")


Strategy = Union[DurableQueue, ImmediateQueue]


class NotificationQueue:
    """Process-wide queue service; construct once at startup and shut down on exit."""

    def __init__(
        self,
        strategy: Strategy,
        executor: JobExecutor,
        events: QueueEventBus,
        fallback_reason: Optional[str] = None,
    ):
        self.executor = executor
        self.events = events
        self._strategy = strategy
        self._immediate = strategy if isinstance(strategy, ImmediateQueue) else ImmediateQueue(executor)
        self._fallback_reason = fallback_reason
        self._cond = threading.Condition()
        self._in_flight = 0
        self._closed = False

    @property
    def mode(self) -> QueueMode:
        return self._strategy.mode

    @property
    def jobs(self) -> JobStore:
        return self.executor.jobs

    def status(self) -> Dict[str, Any]:
        with self._cond:
            return {
                "mode": self.mode.value,
                "is_fallback": self._fallback_reason is not None,
                "fallback_reason": self._fallback_reason,
                "closed": self._closed,
                "in_flight": self._in_flight,
            }

    def enqueue(self, job: Job) -> JobHandle:
        """Accept a delivery job. Delivery failures never propagate from here."""
        with self._track():
            strategy = self._strategy
            self._bookkeep(job.id, "record", self.jobs.add, job, strategy.mode)

            if strategy.mode is QueueMode.DURABLE:
                try:
                    handle = strategy.submit(job)
                    logger.info(f"📬 [Queue] Enqueued email to {job.payload.to} (priority {job.priority})")
                    return handle
                except Exception as exc:
                    logger.error(f"❌ [Queue] Failed to add email job {job.id}: {exc}")
                    self._fail_over(strategy, exc)
                    self._bookkeep(job.id, "update", self.jobs.set_mode, job.id, QueueMode.IMMEDIATE)

            return self._run_inline(job)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Stop accepting jobs, wait for in-flight ones, then release the broker.

        Returns False when ``timeout`` expired before the queue drained.
        """
        with self._cond:
            if self._closed:
                return True
            self._closed = True
            logger.info(f"🛑 [Queue] Draining {self._in_flight} in-flight job(s)")
            drained = self._cond.wait_for(lambda: self._in_flight == 0, timeout=timeout)
        if not drained:
            logger.warning("⚠️ [Queue] Shutdown timeout expired with jobs still in flight")

        try:
            self._strategy.close()
            logger.info("👋 [Queue] Job queue shut down gracefully")
        except Exception as exc:
            logger.error(f"❌ [Queue] Error shutting down job queue: {exc}")
        return drained

    def __enter__(self) -> "NotificationQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    @contextmanager
    def _track(self):
        with self._cond:
            if self._closed:
                raise QueueClosedError()
            self._in_flight += 1
        try:
            yield
        finally:
            with self._cond:
                self._in_flight -= 1
                self._cond.notify_all()

    def _bookkeep(self, job_id: str, action: str, write, *args) -> None:
        """Job-record writes never block delivery; the executor tolerates a missing record."""
        try:
            write(*args)
        except Exception as exc:
            logger.error(f"❌ [Queue] Failed to {action} job {job_id}: {exc}")

    def _run_inline(self, job: Job) -> JobHandle:
        try:
            handle = self._immediate.submit(job)
            logger.info(f"🚫 [Queue] Email job {job.id} to {job.payload.to} executed immediately")
            return handle
        except DeliveryFailedError as exc:
            return self._send_directly(job, exc)

    def _send_directly(self, job: Job, cause: DeliveryFailedError) -> JobHandle:
        """One last synchronous attempt outside the queue bookkeeping."""
        logger.warning(f"⚠️ [Queue] Queue delivery failed ({cause.error}), sending email directly to {job.payload.to}")
        try:
            self.executor.worker.deliver(job.payload)
        except TransportError as exc:
            logger.error(f"❌ [Queue] Failed to send email directly to {job.payload.to}: {exc}")
            self.executor.bury(job.id, exc)
            return JobHandle(id=job.id, mode=QueueMode.IMMEDIATE, state=JobState.DEAD)

        self.executor.complete(job.id)
        logger.info(f"✅ [Queue] Email sent directly (bypass queue) to {job.payload.to}")
        return JobHandle(id=job.id, mode=QueueMode.IMMEDIATE, state=JobState.COMPLETED)

    def _fail_over(self, failed: Strategy, exc: Exception) -> None:
        with self._cond:
            if self._strategy is not failed:
                return
            self._strategy = self._immediate
            self._fallback_reason = str(exc)
        metrics.queue_failovers_total.inc()
        self.events.emit(QueueEvent.FALLBACK, reason=str(exc))
        try:
            failed.close()
        except Exception as close_exc:
            logger.error(f"❌ [Queue] Error closing failed broker connection: {close_exc}")


def build_notification_queue(
    settings: Settings,
    transport: Transport,
    jobs: JobStore,
    events: Optional[QueueEventBus] = None,
    celery_app: Optional[Celery] = None,
) -> NotificationQueue:
    """Pick the delivery strategy once, before any job is served."""
    events = events or QueueEventBus()
    policy = RetryPolicy(max_attempts=settings.JOB_MAX_ATTEMPTS, backoff_base=settings.JOB_BACKOFF_BASE_SECONDS)
    executor = JobExecutor(DeliveryWorker(transport), jobs, events, policy)

    if settings.redis_disabled:
        logger.info("🚫 [Queue] Redis disabled by configuration; using immediate delivery")
        return NotificationQueue(ImmediateQueue(executor), executor, events)

    try:
        if celery_app is None:
            celery_app = create_celery_app(settings)
        logger.info(f"🔴 [Queue] Redis config: {settings.broker_summary()}")
        task = register_delivery_task(celery_app, executor, settings)
        durable = DurableQueue(celery_app, task, events, connect_retries=settings.BROKER_CONNECT_RETRIES)
        durable.start()
    except ConfigurationError as exc:
        logger.warning(f"⚠️ [Queue] {exc} Falling back to immediate delivery")
        return NotificationQueue(ImmediateQueue(executor), executor, events, fallback_reason=str(exc))
    except Exception as exc:
        logger.error(f"❌ [Queue] Failed to initialize Celery queue: {exc}")
        logger.warning("⚠️ [Queue] Falling back to immediate delivery")
        return NotificationQueue(ImmediateQueue(executor), executor, events, fallback_reason=str(exc))

    logger.info("✅ [Queue] Notification queue initialized with Celery/Redis")
    return NotificationQueue(durable, executor, events)
