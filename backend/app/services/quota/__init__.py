"""
Quota ledger service.
"""
from app.services.quota.quota_service import (
    get_quota_info,
    deduct_quota,
    add_quota,
    release_subscription_quota,
    shift_to_free_tier,
    reset_free_tier_quota,
    reset_all_free_tier_users,
    open_free_tier_grant,
    list_open_grants,
)
from app.services.quota.quota_models import (
    QuotaInfo,
    QuotaRelease,
)

__all__ = [
    "get_quota_info",
    "deduct_quota",
    "add_quota",
    "release_subscription_quota",
    "shift_to_free_tier",
    "reset_free_tier_quota",
    "reset_all_free_tier_users",
    "open_free_tier_grant",
    "list_open_grants",
    "QuotaInfo",
    "QuotaRelease",
]
