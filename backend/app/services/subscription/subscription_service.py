"""
Subscription service for managing user subscriptions.
"""
import calendar
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from app.core.clock import utcnow, ensure_utc
from app.core.errors import NotFoundError, ValidationError, ForbiddenError
from app.models.bundle_tier import BundleTier
from app.models.subscription import Subscription, BillingCycle
from app.models.user import User

logger = logging.getLogger(__name__)


def add_billing_period(start: datetime, billing_cycle: str) -> datetime:
    """
    Add one billing period to a timestamp.

    Monthly adds one calendar month, clamping the day to the last day of the
    target month (Jan 31 -> Feb 28/29). Yearly adds one calendar year
    (Feb 29 -> Feb 28).
    """
    cycle = BillingCycle(billing_cycle)
    if cycle == BillingCycle.MONTHLY:
        year = start.year + (1 if start.month == 12 else 0)
        month = 1 if start.month == 12 else start.month + 1
    else:
        year = start.year + 1
        month = start.month
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def is_subscription_active(subscription: Subscription, now: Optional[datetime] = None) -> bool:
    """Active = status on, not cancelled, end date in the future."""
    now = now or utcnow()
    return (
        bool(subscription.status)
        and subscription.cancelled_at is None
        and ensure_utc(subscription.end_date) > now
    )


def get_subscription_by_id(db: Session, subscription_id: int) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.id == subscription_id).first()


def get_active_subscriptions(
    db: Session,
    user_id: int,
    exclude_id: Optional[int] = None,
    now: Optional[datetime] = None
) -> List[Subscription]:
    """
    Get active subscriptions of a user, newest start date first.

    Args:
        db: Database session
        user_id: User ID
        exclude_id: Subscription to leave out (the one being expired)
        now: Reference time (defaults to now)

    Returns:
        List of Subscription objects
    """
    now = now or utcnow()
    query = db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.status.is_(True),
        Subscription.cancelled_at.is_(None),
    )
    if exclude_id is not None:
        query = query.filter(Subscription.id != exclude_id)
    subscriptions = query.order_by(Subscription.start_date.desc(), Subscription.id.desc()).all()
    # end_date compared in Python: SQLite returns naive timestamps
    return [s for s in subscriptions if ensure_utc(s.end_date) > now]


def list_subscriptions(db: Session, user_id: int, active_only: bool = False) -> List[Subscription]:
    """List a user's subscriptions, newest first."""
    if active_only:
        return get_active_subscriptions(db, user_id)
    return db.query(Subscription).filter(
        Subscription.user_id == user_id
    ).order_by(Subscription.start_date.desc(), Subscription.id.desc()).all()


def subscribe(
    db: Session,
    user_id: int,
    bundle_tier_id: int,
    billing_cycle: str,
    expiry_queue=None
) -> Subscription:
    """
    Purchase a bundle tier.

    Creates the subscription with a snapshot of the tier, credits its quota
    and schedules the expiry task for the end of the first period.

    Args:
        db: Database session
        user_id: User ID
        bundle_tier_id: Bundle tier ID
        billing_cycle: 'monthly' or 'yearly'
        expiry_queue: ExpiryQueue to schedule the expiry task on (optional)

    Returns:
        Created Subscription object
    """
    from app.services.quota.quota_service import add_quota

    try:
        cycle = BillingCycle(billing_cycle)
    except ValueError:
        raise ValidationError(
            f"Invalid billing cycle '{billing_cycle}', expected 'monthly' or 'yearly'",
            code="invalid_billing_cycle",
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    tier = db.query(BundleTier).filter(
        BundleTier.id == bundle_tier_id,
        BundleTier.deleted_at.is_(None),
    ).first()
    if not tier:
        raise NotFoundError(f"Bundle tier {bundle_tier_id} not found")
    if not tier.is_active:
        raise ValidationError(f"Bundle tier {tier.name} is not available", code="inactive_bundle_tier")

    # DATETIME columns store whole seconds; the expiry task must not fire before the stored end date
    now = utcnow().replace(microsecond=0)
    duplicate = [
        s for s in get_active_subscriptions(db, user_id, now=now)
        if s.bundle_tier_id == bundle_tier_id
    ]
    if duplicate:
        raise ValidationError(
            f"User already has an active {tier.name} subscription",
            code="duplicate_subscription",
            details={"subscription_id": duplicate[0].id},
        )

    end_date = add_billing_period(now, cycle.value)
    subscription = Subscription(
        user_id=user_id,
        bundle_tier_id=tier.id,
        bundle_name=tier.name,
        bundle_max_messages=tier.max_messages,
        bundle_price=tier.price_monthly if cycle == BillingCycle.MONTHLY else tier.price_yearly,
        billing_cycle=cycle.value,
        auto_renewal=True,
        status=True,
        start_date=now,
        end_date=end_date,
        renewal_date=end_date,
    )
    try:
        db.add(subscription)
        db.flush()
        add_quota(
            db,
            user_id,
            subscription.id,
            subscription.bundle_name,
            subscription.bundle_max_messages,
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if expiry_queue is not None:
        expiry_queue.schedule(subscription.id, end_date)

    logger.info(
        f"User {user_id} subscribed to {tier.name} ({cycle.value}), "
        f"subscription {subscription.id} ends {end_date.isoformat()}"
    )
    db.refresh(subscription)
    return subscription


def _get_owned_subscription(db: Session, user_id: int, subscription_id: int) -> Subscription:
    subscription = get_subscription_by_id(db, subscription_id)
    if not subscription:
        raise NotFoundError(f"Subscription {subscription_id} not found")
    if subscription.user_id != user_id:
        raise ForbiddenError("Subscription belongs to another user")
    if subscription.cancelled_at is not None:
        raise ValidationError("Subscription is already cancelled", code="subscription_cancelled")
    if not subscription.status:
        raise ValidationError("Subscription has already expired", code="subscription_inactive")
    return subscription


def cancel_subscription(db: Session, user_id: int, subscription_id: int) -> Subscription:
    """
    Cancel a subscription.

    The subscription is deactivated immediately. Its pending expiry task stays
    queued and becomes a no-op; quota already credited is left in place.
    """
    subscription = _get_owned_subscription(db, user_id, subscription_id)

    subscription.status = False
    subscription.auto_renewal = False
    subscription.cancelled_at = utcnow()
    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription {subscription_id} cancelled by user {user_id}")
    return subscription


def toggle_auto_renewal(db: Session, user_id: int, subscription_id: int) -> Subscription:
    """Flip auto-renewal on an active subscription."""
    subscription = _get_owned_subscription(db, user_id, subscription_id)

    subscription.auto_renewal = not subscription.auto_renewal
    db.commit()
    db.refresh(subscription)

    logger.info(
        f"Auto-renewal for subscription {subscription_id} set to {subscription.auto_renewal}"
    )
    return subscription
