from prometheus_client import Counter


reminders_created_total = Counter(
    "reminders_created_total",
    "Total reminders created (user, goal auto-generation and recurrence successors)",
)

scheduler_scans_total = Counter(
    "reminder_scheduler_scans_total",
    "Total due-reminder processing runs",
)

reminders_processed_total = Counter(
    "reminders_processed_total",
    "Total due reminders marked sent by the processor",
)

reminders_dispatched_total = Counter(
    "reminders_dispatched_total",
    "Total delivery jobs enqueued by the processor",
)

reminders_skipped_total = Counter(
    "reminders_skipped_total",
    "Total due reminders not dispatched because the channel is disabled",
)

reminders_failed_total = Counter(
    "reminders_failed_total",
    "Total due reminders whose processing raised",
)

jobs_completed_total = Counter(
    "notification_jobs_completed_total",
    "Total delivery jobs completed",
)

jobs_failed_total = Counter(
    "notification_jobs_failed_total",
    "Total failed delivery attempts",
)

jobs_dead_total = Counter(
    "notification_jobs_dead_total",
    "Total delivery jobs that exhausted their retries",
)

queue_failovers_total = Counter(
    "notification_queue_failovers_total",
    "Total switches from the durable queue to immediate mode",
)
