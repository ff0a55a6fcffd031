"""
Typed lifecycle events emitted by the notification queue.

Hosts subscribe listeners per event instead of registering callbacks on a
broker client; the same bus is used by both queue strategies.
"""
import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class QueueEvent(str, Enum):
    CONNECTED = "connected"
    READY = "ready"
    COMPLETED = "completed"
    FAILED = "failed"
    STALLED = "stalled"
    DEAD = "dead"
    FALLBACK = "fallback"


Listener = Callable[[QueueEvent, Dict[str, Any]], None]


class QueueEventBus:
    def __init__(self):
        self._listeners: Dict[QueueEvent, List[Listener]] = {event: [] for event in QueueEvent}
        self._lock = threading.Lock()

    def subscribe(self, event: QueueEvent, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        with self._lock:
            self._listeners[event].append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners[event]:
                    self._listeners[event].remove(listener)

        return unsubscribe

    def subscribe_all(self, listener: Listener) -> None:
        for event in QueueEvent:
            self.subscribe(event, listener)

    def emit(self, event: QueueEvent, **data: Any) -> None:
        with self._lock:
            listeners = list(self._listeners[event])
        for listener in listeners:
            try:
                listener(event, data)
            except Exception:
                # A broken observer must never break delivery
                logger.exception(f"❌ [Queue] Listener for '{event.value}' raised")


def log_queue_event(event: QueueEvent, data: Dict[str, Any]) -> None:
    """Default observer: one log line per lifecycle event."""
    job_id = data.get("job_id")
    if event is QueueEvent.COMPLETED:
        logger.info(f"✅ [Queue] Email job {job_id} completed")
    elif event is QueueEvent.FAILED:
        logger.error(f"❌ [Queue] Email job {job_id} failed (attempt {data.get('attempts')}): {data.get('error')}")
    elif event is QueueEvent.STALLED:
        logger.warning(f"⚠️ [Queue] Email job {job_id} stalled and will retry")
    elif event is QueueEvent.DEAD:
        logger.error(f"💀 [Queue] Email job {job_id} exhausted retries and is kept for inspection")
    elif event is QueueEvent.FALLBACK:
        logger.warning(f"⚠️ [Queue] Falling back to immediate delivery: {data.get('reason')}")
    elif event is QueueEvent.CONNECTED:
        logger.info("✅ [Queue] Connected to broker")
    elif event is QueueEvent.READY:
        logger.info(f"✅ [Queue] Queue is ready ({data.get('mode')})")
