"""
Subscription expiry engine.

Runs when a subscription's expiry task fires:
- inactive (expired, cancelled) or not yet due: nothing happens
- auto-renewal on and payment accepted: renew for one more period
- otherwise: expire, then fall back to another active subscription or the free tier

plan_expiry holds the transition rules and has no side effects;
process_subscription_expiry loads the row, charges, and applies the plan.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.core.clock import utcnow, ensure_utc
from app.core.errors import PaymentDeclined
from app.models.subscription import Subscription
from app.services.lifecycle.payment_gateway import PaymentGateway
from app.services.quota.quota_service import add_quota, release_subscription_quota
from app.services.subscription.subscription_service import add_billing_period

logger = logging.getLogger(__name__)


class ExpiryAction(str, enum.Enum):
    SKIP = "skip"
    RENEW = "renew"
    EXPIRE = "expire"


class SubscriptionTransition(str, enum.Enum):
    SKIPPED = "skipped"
    RENEWED = "renewed"
    EXPIRED_FALLBACK = "expired_fallback"
    EXPIRED_FREE = "expired_free"


REASON_INACTIVE = "inactive"
REASON_NOT_DUE = "not_due"
REASON_AUTO_RENEWAL_DISABLED = "auto_renewal_disabled"
REASON_PAYMENT_FAILED = "payment_failed"


@dataclass
class ExpiryPlan:
    action: ExpiryAction
    reason: Optional[str] = None
    new_end_date: Optional[datetime] = None
    next_run_at: Optional[datetime] = None


@dataclass
class ExpiryOutcome:
    subscription_id: int
    transition: SubscriptionTransition
    reason: Optional[str] = None
    new_end_date: Optional[datetime] = None
    fallback_subscription_id: Optional[int] = None


def _skip_reason(subscription: Optional[Subscription], now: datetime) -> Optional[str]:
    if subscription is None or not subscription.status:
        return REASON_INACTIVE
    # A superseded task delivered after a renewal finds the new end date ahead
    if ensure_utc(subscription.end_date) > now:
        return REASON_NOT_DUE
    return None


def plan_expiry(
    subscription: Optional[Subscription],
    now: datetime,
    payment_succeeded: Optional[bool]
) -> ExpiryPlan:
    """
    Decide what a fired expiry task does.

    Args:
        subscription: Current subscription row (None if missing)
        now: Time the task runs
        payment_succeeded: Outcome of the renewal charge, None when no charge was made

    Returns:
        ExpiryPlan
    """
    skip_reason = _skip_reason(subscription, now)
    if skip_reason:
        return ExpiryPlan(action=ExpiryAction.SKIP, reason=skip_reason)

    if not subscription.auto_renewal:
        return ExpiryPlan(action=ExpiryAction.EXPIRE, reason=REASON_AUTO_RENEWAL_DISABLED)

    if not payment_succeeded:
        return ExpiryPlan(action=ExpiryAction.EXPIRE, reason=REASON_PAYMENT_FAILED)

    # DATETIME columns store whole seconds; the task must not fire before the stored end date
    new_end_date = add_billing_period(now.replace(microsecond=0), subscription.billing_cycle)
    return ExpiryPlan(
        action=ExpiryAction.RENEW,
        new_end_date=new_end_date,
        next_run_at=new_end_date,
    )


def process_subscription_expiry(
    db: Session,
    subscription_id: int,
    payment_gateway: PaymentGateway,
    expiry_queue=None,
    now: Optional[datetime] = None
) -> ExpiryOutcome:
    """
    Renew or expire a subscription whose end date has been reached.

    Safe to run more than once for the same task: a subscription that is
    already inactive, or already renewed past `now`, is left untouched.

    Args:
        db: Database session
        subscription_id: Subscription ID
        payment_gateway: Gateway charged for renewals
        expiry_queue: ExpiryQueue for the next period's task (optional)
        now: Task run time (defaults to now)

    Returns:
        ExpiryOutcome
    """
    now = now or utcnow()
    subscription = db.query(Subscription).filter(
        Subscription.id == subscription_id
    ).with_for_update().first()

    skip_reason = _skip_reason(subscription, now)
    if skip_reason:
        logger.info(f"Expiry task for subscription {subscription_id} skipped ({skip_reason})")
        db.rollback()
        return ExpiryOutcome(
            subscription_id=subscription_id,
            transition=SubscriptionTransition.SKIPPED,
            reason=skip_reason,
        )

    payment_succeeded = None
    if subscription.auto_renewal:
        try:
            receipt = payment_gateway.charge(subscription)
            payment_succeeded = True
            logger.info(
                f"Renewal payment {receipt.transaction_id} accepted for subscription "
                f"{subscription_id}: {receipt.amount}"
            )
        except PaymentDeclined:
            payment_succeeded = False

    plan = plan_expiry(subscription, now, payment_succeeded)
    user_id = subscription.user_id

    # Subscription row and ledger commit together; a failure leaves the task due for redelivery
    try:
        if plan.action == ExpiryAction.RENEW:
            subscription.end_date = plan.new_end_date
            subscription.renewal_date = plan.new_end_date
            add_quota(
                db,
                user_id,
                subscription.id,
                subscription.bundle_name,
                subscription.bundle_max_messages,
                commit=False,
            )
        else:
            subscription.status = False
            subscription.auto_renewal = False
            release = release_subscription_quota(db, user_id, subscription_id, now=now, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if plan.action == ExpiryAction.RENEW:
        if expiry_queue is not None:
            expiry_queue.schedule(subscription_id, plan.next_run_at)

        logger.info(
            f"Subscription {subscription_id} renewed until {plan.new_end_date.isoformat()}"
        )
        return ExpiryOutcome(
            subscription_id=subscription_id,
            transition=SubscriptionTransition.RENEWED,
            new_end_date=plan.new_end_date,
        )

    logger.info(
        f"Subscription {subscription_id} expired ({plan.reason}), removed "
        f"{release.removed_messages} messages from user {user_id}"
    )

    if release.shifted_to_free_tier:
        return ExpiryOutcome(
            subscription_id=subscription_id,
            transition=SubscriptionTransition.EXPIRED_FREE,
            reason=plan.reason,
        )
    return ExpiryOutcome(
        subscription_id=subscription_id,
        transition=SubscriptionTransition.EXPIRED_FALLBACK,
        reason=plan.reason,
        fallback_subscription_id=release.attributed_subscription_id,
    )
