"""
Admin API endpoints.
"""
from app.api.admin.free_tier import router as free_tier_router

__all__ = ["free_tier_router"]
