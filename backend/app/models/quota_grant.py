"""
Quota grant model.

One open row per quota source of a user: the free tier, plus each
subscription that has been credited. users.total_remaining_messages is the
sum of the open grants.
"""
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base


class GrantSource(str, enum.Enum):
    FREE_TIER = "free_tier"
    SUBSCRIPTION = "subscription"


class QuotaGrant(Base):
    __tablename__ = "quota_grants"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey('subscriptions.id'), nullable=True, index=True)  # NULL for free tier
    source = Column(String(20), nullable=False)
    remaining = Column(Integer, nullable=False, default=0)
    is_unlimited = Column(Boolean, nullable=False, default=False)
    granted_at = Column(DateTime(timezone=True), nullable=False)  # FIFO consumption key
    closed_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="quota_grants")
