"""
Pytest configuration for backend tests.

Every test gets a fresh in-memory SQLite database with all tables created
from the SQLAlchemy models.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
import app.models  # noqa: F401 (register all models with Base)
from app.core.errors import PaymentDeclined
from app.models.bundle_tier import BundleTier
from app.models.quota_grant import QuotaGrant
from app.models.subscription import Subscription
from app.services.lifecycle import PaymentGateway, PaymentReceipt
from app.services.quota import add_quota
from app.services.user import create_user


class RecordingExpiryQueue:
    """ExpiryQueue stand-in that records scheduled tasks."""

    def __init__(self):
        self.scheduled: List[Tuple[int, datetime]] = []
        self.cancelled: List[int] = []

    def schedule(self, subscription_id: int, run_at: datetime) -> str:
        self.scheduled = [s for s in self.scheduled if s[0] != subscription_id]
        self.scheduled.append((subscription_id, run_at))
        return f"subscription_expiry_{subscription_id}_{int(run_at.timestamp())}"

    def cancel(self, subscription_id: int) -> int:
        before = len(self.scheduled)
        self.scheduled = [s for s in self.scheduled if s[0] != subscription_id]
        self.cancelled.append(subscription_id)
        return before - len(self.scheduled)

    def pending(self, subscription_id: int) -> List[str]:
        return [
            f"subscription_expiry_{sid}_{int(run_at.timestamp())}"
            for sid, run_at in self.scheduled if sid == subscription_id
        ]


class FixedPaymentGateway(PaymentGateway):
    """Gateway with a predetermined outcome."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.charged: List[int] = []

    def charge(self, subscription: Subscription) -> PaymentReceipt:
        self.charged.append(subscription.id)
        if not self.succeed:
            raise PaymentDeclined(details={"subscription_id": subscription.id})
        return PaymentReceipt(
            subscription_id=subscription.id,
            amount=Decimal(str(subscription.bundle_price)),
            transaction_id=f"test_{subscription.id}_{len(self.charged)}",
            charged_at=datetime.now(timezone.utc),
        )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def expiry_queue():
    return RecordingExpiryQueue()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(email: Optional[str] = None, role: str = "user"):
        counter["n"] += 1
        return create_user(db, email or f"user{counter['n']}@example.com", role=role)

    return _make_user


@pytest.fixture
def make_tier(db):
    def _make_tier(
        name: str,
        max_messages: int,
        price_monthly: str = "10.00",
        price_yearly: str = "100.00",
        is_active: bool = True,
    ) -> BundleTier:
        tier = BundleTier(
            name=name,
            description=f"{name} tier",
            max_messages=max_messages,
            price_monthly=Decimal(price_monthly),
            price_yearly=Decimal(price_yearly),
            is_active=is_active,
        )
        db.add(tier)
        db.commit()
        db.refresh(tier)
        return tier

    return _make_tier


@pytest.fixture
def make_subscription(db):
    """Insert an active subscription with explicit dates and credit its quota."""

    def _make_subscription(
        user,
        tier: BundleTier,
        start_date: datetime,
        end_date: datetime,
        billing_cycle: str = "monthly",
        auto_renewal: bool = True,
    ) -> Subscription:
        subscription = Subscription(
            user_id=user.id,
            bundle_tier_id=tier.id,
            bundle_name=tier.name,
            bundle_max_messages=tier.max_messages,
            bundle_price=tier.price_monthly,
            billing_cycle=billing_cycle,
            auto_renewal=auto_renewal,
            status=True,
            start_date=start_date,
            end_date=end_date,
            renewal_date=end_date,
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        add_quota(db, user.id, subscription.id, tier.name, tier.max_messages)
        db.refresh(subscription)
        return subscription

    return _make_subscription


@pytest.fixture
def set_grant_remaining(db):
    """Force the open grant of a subscription to a balance (scenario setup)."""
    from app.models.user import User
    from app.services.quota.quota_service import _recalculate_total

    def _set(user_id: int, subscription_id: int, remaining: int):
        grant = db.query(QuotaGrant).filter(
            QuotaGrant.user_id == user_id,
            QuotaGrant.subscription_id == subscription_id,
            QuotaGrant.closed_at.is_(None),
        ).one()
        grant.remaining = remaining
        user = db.query(User).filter(User.id == user_id).one()
        if user.attributed_bundle_id == subscription_id:
            user.attributed_bundle_remaining_quota = remaining
        _recalculate_total(db, user)
        db.commit()

    return _set


@pytest.fixture
def base_time():
    return datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def period(base_time):
    return base_time, base_time + timedelta(days=31)
