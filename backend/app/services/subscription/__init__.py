"""
Subscription service for managing user subscriptions.
"""
from app.services.subscription.subscription_service import (
    add_billing_period,
    is_subscription_active,
    get_subscription_by_id,
    get_active_subscriptions,
    list_subscriptions,
    subscribe,
    cancel_subscription,
    toggle_auto_renewal,
)

__all__ = [
    "add_billing_period",
    "is_subscription_active",
    "get_subscription_by_id",
    "get_active_subscriptions",
    "list_subscriptions",
    "subscribe",
    "cancel_subscription",
    "toggle_auto_renewal",
]
