"""
Scheduler service for subscription expiry and free-tier reset jobs.
"""
from app.services.scheduler.scheduler_service import (
    build_scheduler,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
    expiry_job_id,
    ExpiryQueue,
)
from app.services.scheduler.subscription_expiry import (
    run_expiry_job,
    sync_expiry_jobs,
    add_expiry_sync_job,
)
from app.services.scheduler.free_tier_reset import (
    reset_free_tier_quotas,
    manual_free_tier_reset,
    add_free_tier_reset_job,
)

__all__ = [
    "build_scheduler",
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
    "expiry_job_id",
    "ExpiryQueue",
    "run_expiry_job",
    "sync_expiry_jobs",
    "add_expiry_sync_job",
    "reset_free_tier_quotas",
    "manual_free_tier_reset",
    "add_free_tier_reset_job",
]
