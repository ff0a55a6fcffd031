"""
Error taxonomy for the reminder and notification pipeline
"""
from typing import Optional


class ReminderError(Exception):
    """Base class for every error raised by this package"""


class ValidationError(ReminderError):
    """Invalid id or input, or a goal the requester does not own"""


class NotFoundError(ReminderError):
    """Reminder, user or goal missing"""


class TransportError(ReminderError):
    """Delivery through the transport failed"""


class DeliveryFailedError(TransportError):
    """An inline (immediate mode) delivery attempt failed"""

    def __init__(self, job_id: str, error: Exception):
        super().__init__(f"Job {job_id} failed: {error}")
        self.job_id = job_id
        self.error = error


class ConfigurationError(ReminderError):
    """No usable broker configuration; the queue falls back to immediate mode"""


class QueueClosedError(ReminderError):
    """The notification queue has been shut down"""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Notification queue is closed")
