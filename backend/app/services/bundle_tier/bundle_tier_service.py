"""
Read access to the bundle tier catalog.
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from app.models.bundle_tier import BundleTier


def get_bundle_tier(db: Session, bundle_tier_id: int) -> Optional[BundleTier]:
    """Get a bundle tier by ID (soft-deleted tiers are not returned)."""
    return db.query(BundleTier).filter(
        BundleTier.id == bundle_tier_id,
        BundleTier.deleted_at.is_(None),
    ).first()


def list_bundle_tiers(db: Session, active_only: bool = True) -> List[BundleTier]:
    """
    List bundle tiers ordered by monthly price.

    Args:
        db: Database session
        active_only: Only tiers that can currently be purchased
    """
    query = db.query(BundleTier).filter(BundleTier.deleted_at.is_(None))
    if active_only:
        query = query.filter(BundleTier.is_active.is_(True))
    return query.order_by(BundleTier.price_monthly.asc(), BundleTier.id.asc()).all()
