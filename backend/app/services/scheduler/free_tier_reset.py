"""
Monthly free-tier quota reset.

Runs at 00:00 UTC on the 1st of every month and sets every free-tier user back
to FREE_TIER_MONTHLY_MESSAGES. Users holding paid quota are not touched.
"""
import logging
from sqlalchemy.orm import Session
from app.core.database import SessionLocal
from app.services.quota import reset_all_free_tier_users

logger = logging.getLogger(__name__)

FREE_TIER_RESET_JOB_ID = "free_tier_reset"


def reset_free_tier_quotas():
    """
    Reset free-tier quotas.

    This function is called monthly via scheduler.
    """
    db = SessionLocal()
    try:
        count = reset_all_free_tier_users(db)
        logger.info(f"Free tier reset completed: {count} users reset")
        return count
    except Exception as e:
        logger.error(f"Error in free tier reset job: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def manual_free_tier_reset(db: Session) -> int:
    """Run the reset on demand (admin endpoint)."""
    count = reset_all_free_tier_users(db)
    logger.info(f"Manual free tier reset completed: {count} users reset")
    return count


def add_free_tier_reset_job():
    """Add free-tier reset job to scheduler (runs monthly on the 1st at 00:00 UTC)."""
    from app.services.scheduler.scheduler_service import get_scheduler
    from apscheduler.triggers.cron import CronTrigger

    scheduler = get_scheduler()
    scheduler.add_job(
        reset_free_tier_quotas,
        trigger=CronTrigger(day=1, hour=0, minute=0, timezone="UTC"),
        id=FREE_TIER_RESET_JOB_ID,
        replace_existing=True,
        max_instances=1
    )

    logger.info("Added free tier reset job (monthly on the 1st at 00:00 UTC)")
