"""
Bundle tier catalog.
"""
from app.services.bundle_tier.bundle_tier_service import (
    get_bundle_tier,
    list_bundle_tiers,
)

__all__ = [
    "get_bundle_tier",
    "list_bundle_tiers",
]
