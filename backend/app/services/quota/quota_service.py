"""
Quota ledger: remaining-message accounting per user.

Each quota source of a user is an open row in quota_grants:
- the free-tier grant (one per user, subscription_id NULL)
- one grant per credited subscription, holding that subscription's own balance

users.total_remaining_messages is the sum of the open finite grants, or
UNLIMITED_MESSAGES_SENTINEL while an unlimited grant is open.

Consumption order: FIFO by granted_at (free-tier remainder and older bundles
are spent first).

The attributed bundle (users.attributed_bundle_*) is the subscription most
recently credited; its sub-counter mirrors that subscription's grant.
"""
import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import update
from app.core.clock import utcnow
from app.core.config import (
    FREE_TIER_MONTHLY_MESSAGES,
    FREE_TIER_LABEL,
    UNLIMITED_MAX_MESSAGES,
    UNLIMITED_MESSAGES_SENTINEL,
)
from app.core.errors import NotFoundError, QuotaExceededError, ValidationError
from app.models.user import User
from app.models.quota_grant import QuotaGrant, GrantSource
from app.models.subscription import Subscription
from app.services.quota.quota_models import QuotaInfo, QuotaRelease

logger = logging.getLogger(__name__)

RESET_BATCH_SIZE = 1000


def _lock_user(db: Session, user_id: int) -> User:
    """Load the users row with a write lock so ledger updates for one user serialize."""
    user = db.query(User).filter(User.id == user_id).with_for_update().first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def _open_grants(db: Session, user_id: int, lock: bool = False) -> List[QuotaGrant]:
    db.flush()
    query = db.query(QuotaGrant).filter(
        QuotaGrant.user_id == user_id,
        QuotaGrant.closed_at.is_(None),
    ).order_by(QuotaGrant.granted_at.asc(), QuotaGrant.id.asc())
    if lock:
        query = query.with_for_update()
    return query.all()


def _get_open_grant(db: Session, user_id: int, subscription_id: int) -> Optional[QuotaGrant]:
    db.flush()
    return db.query(QuotaGrant).filter(
        QuotaGrant.user_id == user_id,
        QuotaGrant.subscription_id == subscription_id,
        QuotaGrant.closed_at.is_(None),
    ).first()


def _get_free_tier_grant(db: Session, user_id: int) -> Optional[QuotaGrant]:
    db.flush()
    return db.query(QuotaGrant).filter(
        QuotaGrant.user_id == user_id,
        QuotaGrant.source == GrantSource.FREE_TIER.value,
        QuotaGrant.closed_at.is_(None),
    ).first()


def _has_unlimited_grant(db: Session, user_id: int) -> bool:
    return db.query(QuotaGrant.id).filter(
        QuotaGrant.user_id == user_id,
        QuotaGrant.closed_at.is_(None),
        QuotaGrant.is_unlimited.is_(True),
    ).first() is not None


def _recalculate_total(db: Session, user: User) -> int:
    """Set users.total_remaining_messages from the open grants."""
    grants = _open_grants(db, user.id)
    if any(grant.is_unlimited for grant in grants):
        total = UNLIMITED_MESSAGES_SENTINEL
    else:
        total = sum(max(grant.remaining, 0) for grant in grants)
    user.total_remaining_messages = total
    return total


def _attribute_to(db: Session, user: User, subscription: Subscription) -> None:
    """Point the attributed-bundle fields at an existing subscription."""
    grant = _get_open_grant(db, user.id, subscription.id)
    if grant is None:
        remaining = 0
    elif grant.is_unlimited:
        remaining = UNLIMITED_MAX_MESSAGES
    else:
        remaining = grant.remaining

    user.is_free_tier = False
    user.attributed_bundle_id = subscription.id
    user.attributed_bundle_remaining_quota = remaining
    user.attributed_bundle_name = subscription.bundle_name
    user.attributed_bundle_max_messages = subscription.bundle_max_messages


def _apply_free_tier(db: Session, user: User) -> None:
    now = utcnow()
    for grant in _open_grants(db, user.id, lock=True):
        if grant.source == GrantSource.SUBSCRIPTION.value:
            grant.closed_at = now

    free_grant = _get_free_tier_grant(db, user.id)
    if free_grant is None:
        free_grant = open_free_tier_grant(db, user)
    free_grant.remaining = FREE_TIER_MONTHLY_MESSAGES

    user.is_free_tier = True
    user.attributed_bundle_id = None
    user.attributed_bundle_remaining_quota = FREE_TIER_MONTHLY_MESSAGES
    user.attributed_bundle_name = FREE_TIER_LABEL
    user.attributed_bundle_max_messages = FREE_TIER_MONTHLY_MESSAGES
    _recalculate_total(db, user)


def open_free_tier_grant(db: Session, user: User) -> QuotaGrant:
    """
    Open the free-tier grant for a user (does not commit).

    Called on user creation and whenever a free-tier user is found without one.
    """
    grant = QuotaGrant(
        user_id=user.id,
        subscription_id=None,
        source=GrantSource.FREE_TIER.value,
        remaining=FREE_TIER_MONTHLY_MESSAGES,
        is_unlimited=False,
        granted_at=utcnow(),
    )
    db.add(grant)
    return grant


def list_open_grants(db: Session, user_id: int) -> List[QuotaGrant]:
    """Open grants of a user in consumption order."""
    return _open_grants(db, user_id)


def get_quota_info(db: Session, user_id: int) -> QuotaInfo:
    """
    Get quota state for a user.

    Args:
        db: Database session
        user_id: User ID

    Returns:
        QuotaInfo object

    Raises:
        NotFoundError: user does not exist
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    is_unlimited = (
        user.attributed_bundle_max_messages == UNLIMITED_MAX_MESSAGES
        or _has_unlimited_grant(db, user_id)
    )
    return QuotaInfo.from_user(user, is_unlimited)


def deduct_quota(db: Session, user_id: int, amount: int = 1) -> QuotaInfo:
    """
    Consume messages from the user's pool.

    The aggregate is decremented with one conditional UPDATE guarded by
    `total_remaining_messages >= amount`, so concurrent deductions cannot take
    the counter below zero. Grants are then drained FIFO in the same
    transaction. Unlimited users succeed without any write.

    Args:
        db: Database session
        user_id: User ID
        amount: Number of messages to consume

    Returns:
        QuotaInfo after the deduction

    Raises:
        ValidationError: amount below 1
        NotFoundError: user does not exist
        QuotaExceededError: fewer than `amount` messages remain
    """
    if amount < 1:
        raise ValidationError("Deduction amount must be at least 1")

    quota_info = get_quota_info(db, user_id)
    if quota_info.is_unlimited:
        return quota_info

    result = db.execute(
        update(User)
        .where(User.id == user_id, User.total_remaining_messages >= amount)
        .values(total_remaining_messages=User.total_remaining_messages - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise QuotaExceededError(details={
            "requested": amount,
            "remaining": quota_info.total_remaining_messages,
        })

    user = db.query(User).filter(User.id == user_id).populate_existing().one()

    to_drain = amount
    for grant in _open_grants(db, user_id, lock=True):
        if grant.is_unlimited or grant.remaining <= 0:
            continue
        taken = min(grant.remaining, to_drain)
        grant.remaining -= taken
        to_drain -= taken
        if to_drain == 0:
            break
    if to_drain:
        logger.warning(
            f"Quota grants of user {user_id} were {to_drain} short of the aggregate counter"
        )

    if user.attributed_bundle_id is not None:
        attributed_grant = _get_open_grant(db, user_id, user.attributed_bundle_id)
        if attributed_grant is not None:
            user.attributed_bundle_remaining_quota = attributed_grant.remaining
        elif user.attributed_bundle_remaining_quota:
            user.attributed_bundle_remaining_quota = max(0, user.attributed_bundle_remaining_quota - amount)

    db.commit()
    db.refresh(user)
    return QuotaInfo.from_user(user, False)


def add_quota(
    db: Session,
    user_id: int,
    subscription_id: int,
    bundle_name: str,
    bundle_max_messages: int,
    commit: bool = True
) -> QuotaInfo:
    """
    Credit a subscription's allowance and make it the attributed bundle.

    Used on purchase and on successful renewal. A new grant adds the full
    allowance to the pool. On renewal the subscription's grant already exists:
    its stale remainder is replaced by the fresh allowance, so the total moves
    by `bundle_max_messages - stale_remainder`.

    Args:
        db: Database session
        user_id: User ID
        subscription_id: Subscription being credited
        bundle_name: Snapshot name of the bundle
        bundle_max_messages: Allowance (-1 = unlimited)
        commit: False to only flush, leaving the commit to the caller's
            transaction (the subscription write it belongs to)

    Returns:
        QuotaInfo after the credit
    """
    user = _lock_user(db, user_id)
    is_unlimited = bundle_max_messages == UNLIMITED_MAX_MESSAGES
    allowance = UNLIMITED_MESSAGES_SENTINEL if is_unlimited else bundle_max_messages

    grant = _get_open_grant(db, user_id, subscription_id)
    if grant is not None:
        logger.info(
            f"Refreshing quota grant for subscription {subscription_id} "
            f"(user {user_id}): {grant.remaining} -> {allowance}"
        )
        grant.remaining = allowance
        grant.is_unlimited = is_unlimited
    else:
        grant = QuotaGrant(
            user_id=user_id,
            subscription_id=subscription_id,
            source=GrantSource.SUBSCRIPTION.value,
            remaining=allowance,
            is_unlimited=is_unlimited,
            granted_at=utcnow(),
        )
        db.add(grant)

    user.is_free_tier = False
    user.attributed_bundle_id = subscription_id
    user.attributed_bundle_remaining_quota = bundle_max_messages
    user.attributed_bundle_name = bundle_name
    user.attributed_bundle_max_messages = bundle_max_messages
    total = _recalculate_total(db, user)

    if commit:
        db.commit()
    else:
        db.flush()
    logger.info(
        f"Added quota for subscription {subscription_id} ({bundle_name}) to user {user_id}, "
        f"total remaining: {total}"
    )
    return get_quota_info(db, user_id)


def release_subscription_quota(
    db: Session,
    user_id: int,
    subscription_id: int,
    now=None,
    commit: bool = True
) -> QuotaRelease:
    """
    Remove an expired subscription's quota and re-attribute the user.

    The subscription's grant is closed, taking its remaining balance out of the
    pool. If the user still holds another active subscription, the newest one
    becomes the attributed bundle; otherwise the user shifts to the free tier.

    Args:
        db: Database session
        user_id: User ID
        subscription_id: Expired subscription
        now: Reference time for "still active" (defaults to now)
        commit: False to only flush, leaving the commit to the caller

    Returns:
        QuotaRelease object
    """
    from app.services.subscription.subscription_service import get_active_subscriptions

    now = now or utcnow()
    user = _lock_user(db, user_id)

    removed = 0
    grant = _get_open_grant(db, user_id, subscription_id)
    if grant is not None:
        removed = 0 if grant.is_unlimited else max(grant.remaining, 0)
        grant.closed_at = now
    _recalculate_total(db, user)

    others = get_active_subscriptions(db, user_id, exclude_id=subscription_id, now=now)
    if not others:
        _apply_free_tier(db, user)
        if commit:
            db.commit()
        else:
            db.flush()
        logger.info(
            f"User {user_id} has no active subscription left after {subscription_id} expired, "
            f"shifted to free tier"
        )
        return QuotaRelease(
            user_id=user_id,
            subscription_id=subscription_id,
            removed_messages=removed,
            attributed_subscription_id=None,
            shifted_to_free_tier=True,
        )

    other_ids = {other.id for other in others}
    if user.attributed_bundle_id not in other_ids:
        _attribute_to(db, user, others[0])
        logger.info(
            f"Quota of user {user_id} re-attributed from subscription {subscription_id} "
            f"to subscription {others[0].id}"
        )

    if commit:
        db.commit()
    else:
        db.flush()
    return QuotaRelease(
        user_id=user_id,
        subscription_id=subscription_id,
        removed_messages=removed,
        attributed_subscription_id=user.attributed_bundle_id,
        shifted_to_free_tier=False,
    )


def shift_to_free_tier(db: Session, user_id: int) -> QuotaInfo:
    """Drop all subscription quota and put the user on the free-tier floor."""
    user = _lock_user(db, user_id)
    _apply_free_tier(db, user)
    db.commit()
    logger.info(f"User {user_id} shifted to free tier")
    return get_quota_info(db, user_id)


def reset_free_tier_quota(db: Session, user_id: int) -> QuotaInfo:
    """
    Reset one free-tier user's quota to the monthly floor.

    Raises:
        ValidationError: user holds paid quota (resetting would wipe it)
    """
    user = _lock_user(db, user_id)
    if not user.is_free_tier:
        raise ValidationError(f"User {user_id} is not on the free tier", code="not_free_tier")

    free_grant = _get_free_tier_grant(db, user_id)
    if free_grant is None:
        free_grant = open_free_tier_grant(db, user)
    free_grant.remaining = FREE_TIER_MONTHLY_MESSAGES
    user.attributed_bundle_remaining_quota = FREE_TIER_MONTHLY_MESSAGES
    _recalculate_total(db, user)

    db.commit()
    return get_quota_info(db, user_id)


def reset_all_free_tier_users(db: Session) -> int:
    """
    Reset every free-tier user to the monthly floor.

    The value is set absolutely, so running it twice is harmless.

    Returns:
        Number of users reset
    """
    user_ids = [row[0] for row in db.query(User.id).filter(User.is_free_tier.is_(True)).all()]
    if not user_ids:
        return 0

    now = utcnow()
    for start in range(0, len(user_ids), RESET_BATCH_SIZE):
        batch = user_ids[start:start + RESET_BATCH_SIZE]

        db.execute(
            update(QuotaGrant)
            .where(
                QuotaGrant.user_id.in_(batch),
                QuotaGrant.source == GrantSource.FREE_TIER.value,
                QuotaGrant.closed_at.is_(None),
            )
            .values(remaining=FREE_TIER_MONTHLY_MESSAGES)
            .execution_options(synchronize_session=False)
        )

        with_grant = {
            row[0] for row in db.query(QuotaGrant.user_id).filter(
                QuotaGrant.user_id.in_(batch),
                QuotaGrant.source == GrantSource.FREE_TIER.value,
                QuotaGrant.closed_at.is_(None),
            ).all()
        }
        for user_id in batch:
            if user_id not in with_grant:
                db.add(QuotaGrant(
                    user_id=user_id,
                    subscription_id=None,
                    source=GrantSource.FREE_TIER.value,
                    remaining=FREE_TIER_MONTHLY_MESSAGES,
                    is_unlimited=False,
                    granted_at=now,
                ))

        db.execute(
            update(User)
            .where(User.id.in_(batch), User.is_free_tier.is_(True))
            .values(
                total_remaining_messages=FREE_TIER_MONTHLY_MESSAGES,
                attributed_bundle_remaining_quota=FREE_TIER_MONTHLY_MESSAGES,
            )
            .execution_options(synchronize_session=False)
        )

    db.commit()
    # Bulk updates bypassed the identity map
    db.expire_all()
    return len(user_ids)
