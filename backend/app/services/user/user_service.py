"""
User creation and lookup.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
from app.core.config import FREE_TIER_MONTHLY_MESSAGES, FREE_TIER_LABEL
from app.core.errors import NotFoundError, ValidationError
from app.models.user import User
from app.services.quota.quota_service import open_free_tier_grant

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def create_user(
    db: Session,
    email: str,
    full_name: Optional[str] = None,
    role: str = "user"
) -> User:
    """
    Create a user on the free tier.

    The user starts with FREE_TIER_MONTHLY_MESSAGES backed by a free-tier
    quota grant.

    Raises:
        ValidationError: email already registered or unknown role
    """
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if role not in ("user", "admin"):
        raise ValidationError(f"Unknown role '{role}'")
    if db.query(User.id).filter(User.email == email).first():
        raise ValidationError(f"User with email {email} already exists", code="duplicate_email")

    user = User(
        email=email,
        full_name=full_name,
        role=role,
        is_active=True,
        total_remaining_messages=FREE_TIER_MONTHLY_MESSAGES,
        is_free_tier=True,
        attributed_bundle_id=None,
        attributed_bundle_remaining_quota=FREE_TIER_MONTHLY_MESSAGES,
        attributed_bundle_name=FREE_TIER_LABEL,
        attributed_bundle_max_messages=FREE_TIER_MONTHLY_MESSAGES,
    )
    db.add(user)
    db.flush()
    open_free_tier_grant(db, user)
    db.commit()
    db.refresh(user)

    logger.info(f"Created user {user.id} ({email}) on free tier")
    return user
