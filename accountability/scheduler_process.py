#!/usr/bin/env python3
"""
Reminder scheduler - runs the due-reminder processor on a fixed interval

SIGINT/SIGTERM stop the loop after the current run; the notification
queue is then drained and closed before the process exits.
"""
import logging
import signal
import threading

from dotenv import load_dotenv
from prometheus_client import start_http_server

from accountability.bootstrap import build_services
from accountability.core.config import get_settings
from accountability.core.logging_config import configure_logging

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30.0


def run_loop(services, stop: threading.Event) -> None:
    """Invoke the processor every scan interval until ``stop`` is set.

    Runs never overlap: the next one starts only after the previous returned.
    """
    interval = services.settings.SCHEDULER_SCAN_INTERVAL_SECONDS
    while not stop.is_set():
        try:
            processed = services.process_due_reminders()
            if processed:
                logger.info(f"⏰ [Scheduler] Processed {processed} due reminders")
        except Exception:
            logger.exception("❌ [Scheduler] Due-reminder run failed")
        stop.wait(interval)


def main() -> None:
    load_dotenv()
    settings = get_settings()
    configure_logging(settings)

    if settings.METRICS_ENABLED:
        start_http_server(settings.METRICS_PORT)
        logger.info(f"📈 [Scheduler] Metrics exposed on port {settings.METRICS_PORT}")

    services = build_services(settings)
    stop = threading.Event()

    def signal_handler(signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info(f"🛑 [Scheduler] Received signal {signum}, initiating graceful shutdown...")
        stop.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info(f"🚀 [Scheduler] Scanning every {settings.SCHEDULER_SCAN_INTERVAL_SECONDS}s")
    try:
        run_loop(services, stop)
    finally:
        services.shutdown(timeout=SHUTDOWN_TIMEOUT_SECONDS)
        logger.info("👋 [Scheduler] Stopped")


if __name__ == "__main__":
    main()
