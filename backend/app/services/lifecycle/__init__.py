"""
Subscription lifecycle: renewal, expiry and quota fallback.
"""
from app.services.lifecycle.payment_gateway import (
    PaymentGateway,
    PaymentReceipt,
    SimulatedPaymentGateway,
)
from app.services.lifecycle.expiry_engine import (
    ExpiryAction,
    ExpiryPlan,
    ExpiryOutcome,
    SubscriptionTransition,
    plan_expiry,
    process_subscription_expiry,
)

__all__ = [
    "PaymentGateway",
    "PaymentReceipt",
    "SimulatedPaymentGateway",
    "ExpiryAction",
    "ExpiryPlan",
    "ExpiryOutcome",
    "SubscriptionTransition",
    "plan_expiry",
    "process_subscription_expiry",
]
