"""
Quota API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from app.core.database import get_db
from app.core.auth import get_current_user_dependency
from app.models.user import User
from app.services.quota import get_quota_info

router = APIRouter()


class QuotaResponse(BaseModel):
    total_remaining_messages: int
    is_free_tier: bool
    has_quota: bool
    is_unlimited: bool
    attributed_bundle_id: Optional[int]
    attributed_bundle_name: Optional[str]
    attributed_bundle_remaining_quota: Optional[int]
    attributed_bundle_max_messages: Optional[int]


@router.get("", response_model=QuotaResponse)
async def get_quota(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Get remaining message quota for the current user."""
    info = get_quota_info(db, current_user.id)
    return QuotaResponse(
        total_remaining_messages=info.total_remaining_messages,
        is_free_tier=info.is_free_tier,
        has_quota=info.has_quota,
        is_unlimited=info.is_unlimited,
        attributed_bundle_id=info.attributed_bundle_id,
        attributed_bundle_name=info.attributed_bundle_name,
        attributed_bundle_remaining_quota=info.attributed_bundle_remaining_quota,
        attributed_bundle_max_messages=info.attributed_bundle_max_messages,
    )
