"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, with defaults.
"""
from typing import Optional

# Try to import local config (gitignored)
try:
    from app.config_local import (
        DATABASE_DSN,
        SESSION_COOKIE_NAME,
        SESSION_SECRET,
        CHAT_PROVIDER,
        OPENROUTER_API_KEY,
        OPENROUTER_BASE_URL,
        DEFAULT_LLM_MODEL,
    )
    # Scheduler config with fallbacks if not present
    try:
        from app.config_local import SCHEDULER_JOBSTORE_DSN, LOG_LEVEL
    except ImportError:
        SCHEDULER_JOBSTORE_DSN = None  # None = reuse DATABASE_DSN
        LOG_LEVEL = "INFO"
except ImportError:
    # Fallback defaults (local SQLite file, mock chat provider)
    DATABASE_DSN: str = "sqlite:///./bundle_quota.db"
    SESSION_COOKIE_NAME: str = "bundle_session"
    SESSION_SECRET: Optional[str] = None
    CHAT_PROVIDER: str = "mock"  # "mock" or "openrouter"
    OPENROUTER_API_KEY: Optional[str] = None
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    DEFAULT_LLM_MODEL: str = "openai/gpt-4o-mini"
    SCHEDULER_JOBSTORE_DSN: Optional[str] = None
    LOG_LEVEL: str = "INFO"

SESSION_TTL_HOURS: int = 24

# Quota
FREE_TIER_MONTHLY_MESSAGES: int = 3
FREE_TIER_LABEL: str = "Free Tier"
UNLIMITED_MAX_MESSAGES: int = -1  # bundle_tiers.max_messages value meaning "no cap"
UNLIMITED_MESSAGES_SENTINEL: int = 999_999_999  # stored as total_remaining_messages for unlimited users

# Billing / lifecycle
PAYMENT_SUCCESS_RATE: float = 0.95
EXPIRY_WORKER_CONCURRENCY: int = 5
EXPIRY_SYNC_INTERVAL_MINUTES: int = 5

# Chat metering
CHAT_MIN_LATENCY_SECONDS: float = 3.0
CHAT_MAX_LATENCY_SECONDS: float = 5.0
CHAT_FAILURE_RATE: float = 0.05
CHAT_MAX_QUERY_LENGTH: int = 4000


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_dsn": DATABASE_DSN,
        "scheduler_jobstore_dsn": SCHEDULER_JOBSTORE_DSN or DATABASE_DSN,
        "session_cookie_name": SESSION_COOKIE_NAME,
        "session_secret": SESSION_SECRET,
        "session_ttl_hours": SESSION_TTL_HOURS,
        "chat_provider": CHAT_PROVIDER,
        "openrouter_api_key": OPENROUTER_API_KEY,
        "openrouter_base_url": OPENROUTER_BASE_URL,
        "default_llm_model": DEFAULT_LLM_MODEL,
        "free_tier_monthly_messages": FREE_TIER_MONTHLY_MESSAGES,
        "payment_success_rate": PAYMENT_SUCCESS_RATE,
        "expiry_worker_concurrency": EXPIRY_WORKER_CONCURRENCY,
        "expiry_sync_interval_minutes": EXPIRY_SYNC_INTERVAL_MINUTES,
        "log_level": LOG_LEVEL,
    })()
