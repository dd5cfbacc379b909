"""
Quota ledger tests.
"""
import pytest

from app.core.config import UNLIMITED_MESSAGES_SENTINEL
from app.core.errors import NotFoundError, QuotaExceededError, ValidationError
from app.models.quota_grant import GrantSource
from app.services.quota import (
    add_quota,
    deduct_quota,
    get_quota_info,
    list_open_grants,
    release_subscription_quota,
    reset_free_tier_quota,
    shift_to_free_tier,
)


def test_new_user_starts_on_free_tier(db, make_user):
    user = make_user()

    info = get_quota_info(db, user.id)

    assert info.total_remaining_messages == 3
    assert info.is_free_tier is True
    assert info.has_quota is True
    assert info.is_unlimited is False
    assert info.attributed_bundle_id is None
    assert info.attributed_bundle_name == "Free Tier"
    grants = list_open_grants(db, user.id)
    assert [g.source for g in grants] == [GrantSource.FREE_TIER.value]


def test_get_quota_info_missing_user(db):
    with pytest.raises(NotFoundError):
        get_quota_info(db, 999)


def test_deduct_never_goes_negative(db, make_user):
    user = make_user()

    for expected in (2, 1, 0):
        assert deduct_quota(db, user.id).total_remaining_messages == expected

    with pytest.raises(QuotaExceededError):
        deduct_quota(db, user.id)

    info = get_quota_info(db, user.id)
    assert info.total_remaining_messages == 0
    assert info.has_quota is False


def test_deduct_more_than_remaining_is_rejected_without_change(db, make_user):
    user = make_user()

    with pytest.raises(QuotaExceededError):
        deduct_quota(db, user.id, 5)

    assert get_quota_info(db, user.id).total_remaining_messages == 3


def test_deduct_rejects_non_positive_amount(db, make_user):
    user = make_user()

    with pytest.raises(ValidationError):
        deduct_quota(db, user.id, 0)


def test_add_quota_is_additive_and_attributes_bundle(db, make_user, make_tier, make_subscription, period):
    user = make_user()
    tier = make_tier("Basic", 10)
    subscription = make_subscription(user, tier, *period)

    info = get_quota_info(db, user.id)

    assert info.total_remaining_messages == 13
    assert info.is_free_tier is False
    assert info.attributed_bundle_id == subscription.id
    assert info.attributed_bundle_remaining_quota == 10
    assert info.attributed_bundle_max_messages == 10
    assert info.attributed_bundle_name == "Basic"


def test_deduct_drains_grants_fifo(db, make_user, make_tier, make_subscription, period):
    """
    Scenario: free-tier remainder plus a 10-message bundle.
    Expected: the older free-tier grant is spent before the bundle.
    """
    user = make_user()
    subscription = make_subscription(user, make_tier("Basic", 10), *period)

    deduct_quota(db, user.id, 4)

    balances = {g.subscription_id: g.remaining for g in list_open_grants(db, user.id)}
    assert balances == {None: 0, subscription.id: 9}
    info = get_quota_info(db, user.id)
    assert info.total_remaining_messages == 9
    assert info.attributed_bundle_remaining_quota == 9


def test_renewal_nets_out_stale_remainder(db, make_user, make_tier, make_subscription, period):
    user = make_user()
    subscription = make_subscription(user, make_tier("Pro", 100), *period)
    deduct_quota(db, user.id, 33)  # 3 free + 30 from the bundle
    assert get_quota_info(db, user.id).total_remaining_messages == 70

    info = add_quota(db, user.id, subscription.id, "Pro", 100)

    assert info.total_remaining_messages == 100
    assert info.attributed_bundle_remaining_quota == 100
    assert len([g for g in list_open_grants(db, user.id) if g.subscription_id == subscription.id]) == 1


def test_unlimited_is_sticky(db, make_user, make_tier, make_subscription, period):
    user = make_user()
    make_subscription(user, make_tier("Enterprise", -1), *period)

    for _ in range(5):
        info = deduct_quota(db, user.id)

    assert info.is_unlimited is True
    assert info.has_quota is True
    assert info.total_remaining_messages == UNLIMITED_MESSAGES_SENTINEL

    # A finite bundle bought later does not end unlimited access
    make_subscription(user, make_tier("Basic", 10), *period)
    info = deduct_quota(db, user.id)
    assert info.is_unlimited is True
    assert info.total_remaining_messages == UNLIMITED_MESSAGES_SENTINEL


def test_release_falls_back_to_other_active_subscription(
    db, make_user, make_tier, make_subscription, set_grant_remaining, base_time
):
    """
    Scenario: Bundle A (10, attributed, 5 left) and Bundle B (20); pool of 25.
    Expected: releasing A leaves 20 and attributes B.
    """
    from datetime import timedelta

    user = make_user()
    deduct_quota(db, user.id, 3)
    sub_b = make_subscription(user, make_tier("Bundle B", 20), base_time, base_time + timedelta(days=60))
    sub_a = make_subscription(user, make_tier("Bundle A", 10), base_time, base_time + timedelta(days=30))
    set_grant_remaining(user.id, sub_a.id, 5)
    assert get_quota_info(db, user.id).total_remaining_messages == 25

    release = release_subscription_quota(db, user.id, sub_a.id, now=base_time + timedelta(days=30))

    info = get_quota_info(db, user.id)
    assert release.removed_messages == 5
    assert release.shifted_to_free_tier is False
    assert release.attributed_subscription_id == sub_b.id
    assert info.attributed_bundle_id == sub_b.id
    assert info.attributed_bundle_name == "Bundle B"
    assert info.attributed_bundle_remaining_quota == 20
    assert info.total_remaining_messages == 20
    assert info.is_free_tier is False


def test_release_last_subscription_shifts_to_free_tier(db, make_user, make_tier, make_subscription, period):
    user = make_user()
    deduct_quota(db, user.id, 3)
    subscription = make_subscription(user, make_tier("Basic", 10), *period)

    release = release_subscription_quota(db, user.id, subscription.id, now=period[1])

    info = get_quota_info(db, user.id)
    assert release.shifted_to_free_tier is True
    assert release.attributed_subscription_id is None
    assert info.is_free_tier is True
    assert info.total_remaining_messages == 3
    assert info.attributed_bundle_id is None


def test_shift_to_free_tier_drops_subscription_grants(db, make_user, make_tier, make_subscription, period):
    user = make_user()
    make_subscription(user, make_tier("Pro", 100), *period)

    info = shift_to_free_tier(db, user.id)

    assert info.total_remaining_messages == 3
    assert info.is_free_tier is True
    assert info.attributed_bundle_name == "Free Tier"
    assert [g.source for g in list_open_grants(db, user.id)] == [GrantSource.FREE_TIER.value]


def test_reset_single_free_tier_user(db, make_user):
    user = make_user()
    deduct_quota(db, user.id, 3)

    info = reset_free_tier_quota(db, user.id)

    assert info.total_remaining_messages == 3


def test_reset_single_user_rejects_paid_user(db, make_user, make_tier, make_subscription, period):
    user = make_user()
    make_subscription(user, make_tier("Basic", 10), *period)

    with pytest.raises(ValidationError) as exc_info:
        reset_free_tier_quota(db, user.id)

    assert exc_info.value.code == "not_free_tier"
    assert get_quota_info(db, user.id).total_remaining_messages == 13
