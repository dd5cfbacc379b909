"""
Scheduler service for subscription expiry tasks using APScheduler.

Jobs live in a SQLAlchemy job store so pending expiry tasks survive restarts.
The API process starts the scheduler paused (it only writes jobs); the worker
process (app/worker.py) runs them.
"""
import logging
from datetime import datetime
from typing import List, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.jobstores.base import JobLookupError
from apscheduler.job import Job
from apscheduler.triggers.date import DateTrigger
from app.core.clock import utcnow, ensure_utc
from app.core.config import get_settings, EXPIRY_WORKER_CONCURRENCY

logger = logging.getLogger(__name__)

EXPIRY_JOB_PREFIX = "subscription_expiry_"

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


def build_scheduler(jobstore_dsn: Optional[str] = None) -> BackgroundScheduler:
    """Create a scheduler with the durable job store and the expiry worker pool."""
    jobstores = {}
    if jobstore_dsn:
        jobstores["default"] = SQLAlchemyJobStore(url=jobstore_dsn, tablename="apscheduler_jobs")
    return BackgroundScheduler(
        jobstores=jobstores,
        executors={"default": ThreadPoolExecutor(EXPIRY_WORKER_CONCURRENCY)},
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": None,  # Overdue expiry tasks still run
        },
        timezone="UTC",
    )


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = build_scheduler(get_settings().scheduler_jobstore_dsn)
    return _scheduler


def start_scheduler(paused: bool = False):
    """
    Start the scheduler.

    Args:
        paused: Accept and persist jobs without executing them (API process)
    """
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start(paused=paused)
        logger.info(f"✅ Scheduler started{' (paused)' if paused else ''}")
    else:
        logger.debug("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown()
        logger.info("Scheduler stopped")
    _scheduler = None


def expiry_job_id(subscription_id: int, run_at: datetime) -> str:
    return f"{EXPIRY_JOB_PREFIX}{subscription_id}_{int(ensure_utc(run_at).timestamp())}"


class ExpiryQueue:
    """
    Delayed expiry tasks, one pending task per subscription.

    Task keys are `subscription_expiry_<id>_<epoch>`: rescheduling for a new
    end date produces a new key and removes the previous one.
    """

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self.scheduler = scheduler or get_scheduler()

    def _jobs(self, subscription_id: int) -> List[Job]:
        prefix = f"{EXPIRY_JOB_PREFIX}{subscription_id}_"
        return [job for job in self.scheduler.get_jobs() if job.id.startswith(prefix)]

    def _job_ids(self, subscription_id: int) -> List[str]:
        return [job.id for job in self._jobs(subscription_id)]

    def schedule(self, subscription_id: int, run_at: datetime) -> str:
        """Schedule the expiry task of a subscription for `run_at`."""
        from app.services.scheduler.subscription_expiry import run_expiry_job

        job_id = expiry_job_id(subscription_id, run_at)
        now = utcnow()
        for job in self._jobs(subscription_id):
            # A due job is being executed and is removed by the scheduler itself
            next_run_time = getattr(job, "next_run_time", None)
            if next_run_time is not None and next_run_time <= now:
                continue
            self._remove(job.id)

        self.scheduler.add_job(
            run_expiry_job,
            trigger=DateTrigger(run_date=ensure_utc(run_at)),
            args=[subscription_id],
            id=job_id,
            replace_existing=True,
            max_instances=1,
        )
        logger.info(f"Scheduled expiry job {job_id} for {ensure_utc(run_at).isoformat()}")
        return job_id

    def cancel(self, subscription_id: int) -> int:
        """Remove pending expiry tasks of a subscription. Returns how many were removed."""
        removed = 0
        for job_id in self._job_ids(subscription_id):
            if self._remove(job_id):
                removed += 1
        return removed

    def pending(self, subscription_id: int) -> List[str]:
        """Keys of the pending expiry tasks of a subscription."""
        return self._job_ids(subscription_id)

    def _remove(self, job_id: str) -> bool:
        try:
            self.scheduler.remove_job(job_id)
            logger.debug(f"Removed expiry job {job_id}")
            return True
        except JobLookupError:
            logger.debug(f"Job {job_id} not found or already removed")
            return False
