"""
Background worker: runs subscription expiry tasks and the monthly free-tier reset.

Usage:
    cd backend && python -m app.worker
"""
import logging
import signal
import threading
from app.core.config import LOG_LEVEL
from app.services.scheduler import (
    start_scheduler,
    stop_scheduler,
    add_expiry_sync_job,
    add_free_tier_reset_job,
)

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(
        level=getattr(logging, str(LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    start_scheduler()
    add_expiry_sync_job()
    add_free_tier_reset_job()
    logger.info("Worker started")

    try:
        stop_event.wait()
    finally:
        stop_scheduler()
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()
