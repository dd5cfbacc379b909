"""
Quota model classes.
"""
from dataclasses import dataclass
from typing import Optional

from app.models.user import User


@dataclass
class QuotaInfo:
    """Quota state of one user as seen by callers."""
    user_id: int
    total_remaining_messages: int
    is_free_tier: bool
    attributed_bundle_id: Optional[int]
    attributed_bundle_remaining_quota: Optional[int]
    attributed_bundle_name: Optional[str]
    attributed_bundle_max_messages: Optional[int]
    has_quota: bool
    is_unlimited: bool

    @classmethod
    def from_user(cls, user: User, is_unlimited: bool) -> "QuotaInfo":
        """Create QuotaInfo from a users row."""
        return cls(
            user_id=user.id,
            total_remaining_messages=user.total_remaining_messages,
            is_free_tier=bool(user.is_free_tier),
            attributed_bundle_id=user.attributed_bundle_id,
            attributed_bundle_remaining_quota=user.attributed_bundle_remaining_quota,
            attributed_bundle_name=user.attributed_bundle_name,
            attributed_bundle_max_messages=user.attributed_bundle_max_messages,
            has_quota=is_unlimited or user.total_remaining_messages > 0,
            is_unlimited=is_unlimited,
        )


@dataclass
class QuotaRelease:
    """Result of removing an expired subscription's quota from a user."""
    user_id: int
    subscription_id: int
    removed_messages: int
    attributed_subscription_id: Optional[int]  # fallback target, None when shifted to free tier
    shifted_to_free_tier: bool
