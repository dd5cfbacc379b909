"""
Admin free-tier API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from app.core.database import get_db
from app.core.auth import get_current_admin_user_dependency
from app.models.user import User
from app.services.scheduler import manual_free_tier_reset

router = APIRouter()


class FreeTierResetResponse(BaseModel):
    users_reset: int


@router.post("/reset", response_model=FreeTierResetResponse)
async def reset_free_tier(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user_dependency),
):
    """Run the monthly free-tier reset now."""
    return FreeTierResetResponse(users_reset=manual_free_tier_reset(db))
