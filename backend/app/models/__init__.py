"""
Database models.
"""
from app.models.user import User
from app.models.bundle_tier import BundleTier
from app.models.subscription import Subscription, BillingCycle
from app.models.quota_grant import QuotaGrant, GrantSource
from app.models.chat_message import ChatMessage, ChatMessageStatus

__all__ = [
    "User",
    "BundleTier",
    "Subscription",
    "BillingCycle",
    "QuotaGrant",
    "GrantSource",
    "ChatMessage",
    "ChatMessageStatus",
]
