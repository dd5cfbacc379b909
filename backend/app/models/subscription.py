"""
Subscription record model.
"""
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Subscription(Base):
    """One purchase of a bundle tier by a user.

    bundle_name / bundle_max_messages / bundle_price / billing_cycle are
    captured at purchase time and never re-read from the catalog.
    """

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    bundle_tier_id = Column(Integer, ForeignKey('bundle_tiers.id'), nullable=False, index=True)

    # Purchase-time snapshot
    bundle_name = Column(String(100), nullable=False)
    bundle_max_messages = Column(Integer, nullable=False)
    bundle_price = Column(Numeric(10, 2), nullable=False)
    billing_cycle = Column(String(10), nullable=False)  # 'monthly' | 'yearly'

    auto_renewal = Column(Boolean, nullable=False, default=True)
    status = Column(Boolean, nullable=False, default=True, index=True)  # active / inactive

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)
    renewal_date = Column(DateTime(timezone=True), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="subscriptions")
    bundle_tier = relationship("BundleTier", foreign_keys=[bundle_tier_id])
