"""
Subscription expiry jobs.

- run_expiry_job: entry point of a delayed expiry task (one per subscription)
- sync_expiry_jobs: periodic scan that schedules a task for every active
  subscription missing one, so jobs written while the worker was down and
  lost deliveries are still processed
"""
import logging
from app.core.clock import utcnow, ensure_utc
from app.core.config import EXPIRY_SYNC_INTERVAL_MINUTES
from app.core.database import SessionLocal
from app.models.subscription import Subscription

logger = logging.getLogger(__name__)

EXPIRY_SYNC_JOB_ID = "subscription_expiry_sync"


def run_expiry_job(subscription_id: int):
    """Process one fired expiry task."""
    from app.services.lifecycle import SimulatedPaymentGateway, process_subscription_expiry
    from app.services.scheduler.scheduler_service import ExpiryQueue

    db = SessionLocal()
    try:
        outcome = process_subscription_expiry(
            db,
            subscription_id,
            payment_gateway=SimulatedPaymentGateway(),
            expiry_queue=ExpiryQueue(),
        )
        logger.info(
            f"Expiry task for subscription {subscription_id} finished: {outcome.transition.value}"
            + (f" ({outcome.reason})" if outcome.reason else "")
        )
        return outcome
    except Exception as e:
        logger.error(f"Error processing expiry of subscription {subscription_id}: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def sync_expiry_jobs(expiry_queue=None):
    """
    Ensure every active subscription has a pending expiry task.

    Overdue subscriptions get a task for their (past) end date, which the
    scheduler runs immediately.

    Returns:
        Number of tasks scheduled
    """
    from app.services.scheduler.scheduler_service import ExpiryQueue

    queue = expiry_queue or ExpiryQueue()
    db = SessionLocal()
    try:
        subscriptions = db.query(Subscription.id, Subscription.end_date).filter(
            Subscription.status.is_(True)
        ).all()

        scheduled = 0
        overdue = 0
        now = utcnow()
        for subscription_id, end_date in subscriptions:
            if queue.pending(subscription_id):
                continue
            queue.schedule(subscription_id, end_date)
            scheduled += 1
            if ensure_utc(end_date) <= now:
                overdue += 1

        if scheduled:
            logger.info(
                f"Expiry sync scheduled {scheduled} missing tasks ({overdue} overdue) "
                f"for {len(subscriptions)} active subscriptions"
            )
        return scheduled
    except Exception as e:
        logger.error(f"Error in expiry sync job: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def add_expiry_sync_job():
    """Add the periodic expiry sync job to scheduler."""
    from app.services.scheduler.scheduler_service import get_scheduler
    from apscheduler.triggers.interval import IntervalTrigger

    scheduler = get_scheduler()
    scheduler.add_job(
        sync_expiry_jobs,
        trigger=IntervalTrigger(minutes=EXPIRY_SYNC_INTERVAL_MINUTES),
        id=EXPIRY_SYNC_JOB_ID,
        next_run_time=utcnow(),
        replace_existing=True,
        max_instances=1
    )

    logger.info(f"Added expiry sync job (every {EXPIRY_SYNC_INTERVAL_MINUTES} minutes)")
