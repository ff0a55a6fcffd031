from typing import Optional

from celery import Celery, Task

from accountability.core.config import Settings
from .jobs import JobPayload, JobState
from .worker import JobExecutor

DELIVER_TASK = "notifications.deliver"
PROCESS_DUE_TASK = "reminders.process_due"


def create_celery_app(settings: Settings, broker_url: Optional[str] = None) -> Celery:
    """Celery application on the Redis broker; raises ConfigurationError without one."""
    broker_url = broker_url or settings.broker_url

    celery_app = Celery("accountability", broker=broker_url)
    celery_app.conf.update(
        task_acks_late=True,
        # A worker dying mid-job puts the message back on the queue
        task_reject_on_worker_lost=True,
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_ignore_result=True,
        worker_prefetch_multiplier=1,
        worker_concurrency=settings.WORKER_CONCURRENCY,
        task_default_queue=settings.QUEUE_NAME,
        broker_connection_retry_on_startup=True,
        broker_transport_options={
            "priority_steps": list(range(10)),
            "queue_order_strategy": "priority",
        },
    )
    return celery_app


def register_delivery_task(celery_app: Celery, executor: JobExecutor, settings: Settings) -> Task:
    """Bind the delivery task to this app; retries follow the executor's policy."""

    @celery_app.task(
        bind=True,
        name=DELIVER_TASK,
        max_retries=executor.policy.max_attempts - 1,
        rate_limit=settings.JOB_RATE_LIMIT,
        acks_late=True,
        reject_on_worker_lost=True,
    )
    def deliver(self, job_id: str, message: dict) -> None:
        result = executor.attempt(job_id, JobPayload.from_message(message), retries=self.request.retries)
        if result.state is JobState.FAILED:
            raise self.retry(exc=result.error, countdown=result.retry_in)
        if result.state is JobState.DEAD:
            raise result.error

    return deliver
