"""
Monthly free-tier reset tests.
"""
from app.models.quota_grant import QuotaGrant
from app.services.quota import deduct_quota, get_quota_info, reset_all_free_tier_users
from app.services.scheduler import manual_free_tier_reset, reset_free_tier_quotas


def test_reset_round_trip(db, make_user):
    """
    Scenario: a free-tier user spends all 3 messages, then the monthly job runs.
    Expected: back to 3.
    """
    user = make_user()
    deduct_quota(db, user.id, 3)
    assert get_quota_info(db, user.id).total_remaining_messages == 0

    count = reset_all_free_tier_users(db)

    assert count == 1
    info = get_quota_info(db, user.id)
    assert info.total_remaining_messages == 3
    assert info.attributed_bundle_remaining_quota == 3


def test_reset_skips_paid_users(db, make_user, make_tier, make_subscription, period):
    free_user = make_user()
    paid_user = make_user()
    make_subscription(paid_user, make_tier("Pro", 100), *period)
    deduct_quota(db, paid_user.id, 50)

    count = reset_all_free_tier_users(db)

    assert count == 1
    assert get_quota_info(db, free_user.id).total_remaining_messages == 3
    assert get_quota_info(db, paid_user.id).total_remaining_messages == 53


def test_reset_is_idempotent(db, make_user):
    users = [make_user() for _ in range(3)]
    deduct_quota(db, users[0].id, 2)

    reset_all_free_tier_users(db)
    reset_all_free_tier_users(db)

    for user in users:
        assert get_quota_info(db, user.id).total_remaining_messages == 3


def test_reset_creates_missing_free_tier_grant(db, make_user):
    user = make_user()
    db.query(QuotaGrant).filter(QuotaGrant.user_id == user.id).delete()
    db.commit()

    reset_all_free_tier_users(db)

    grants = db.query(QuotaGrant).filter(QuotaGrant.user_id == user.id, QuotaGrant.closed_at.is_(None)).all()
    assert len(grants) == 1
    assert grants[0].remaining == 3
    # Ledger and aggregate agree, so the grant is spendable
    assert deduct_quota(db, user.id).total_remaining_messages == 2


def test_scheduled_job_uses_own_session(db, make_user, session_factory, monkeypatch):
    user = make_user()
    deduct_quota(db, user.id, 3)
    monkeypatch.setattr("app.services.scheduler.free_tier_reset.SessionLocal", session_factory)

    count = reset_free_tier_quotas()

    assert count == 1
    db.expire_all()
    assert get_quota_info(db, user.id).total_remaining_messages == 3


def test_manual_reset(db, make_user):
    user = make_user()
    deduct_quota(db, user.id)

    assert manual_free_tier_reset(db) == 1
    assert get_quota_info(db, user.id).total_remaining_messages == 3
