"""
User model with the per-user quota aggregate.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    role = Column(String(20), nullable=False, default='user')  # 'admin' or 'user'

    # Quota aggregate (read model over quota_grants)
    total_remaining_messages = Column(Integer, nullable=False, default=3)
    is_free_tier = Column(Boolean, nullable=False, default=True, index=True)
    attributed_bundle_id = Column(Integer, nullable=True)  # subscriptions.id, no FK: subscriptions reference users
    attributed_bundle_remaining_quota = Column(Integer, nullable=True, default=0)

    # Snapshot of the attributed bundle for display
    attributed_bundle_name = Column(String(100), nullable=True)
    attributed_bundle_max_messages = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    subscriptions = relationship("Subscription", back_populates="user")
    quota_grants = relationship("QuotaGrant", back_populates="user", cascade="all, delete-orphan")

    def is_platform_admin(self) -> bool:
        """Check if user is platform admin."""
        return self.role == 'admin'
