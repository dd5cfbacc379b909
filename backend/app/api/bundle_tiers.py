"""
Bundle tier catalog API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from decimal import Decimal

from app.core.database import get_db
from app.services.bundle_tier import list_bundle_tiers

router = APIRouter()


class BundleTierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    max_messages: int  # -1 = unlimited
    price_monthly: Decimal
    price_yearly: Decimal
    is_unlimited: bool


@router.get("", response_model=List[BundleTierResponse])
async def get_bundle_tiers(db: Session = Depends(get_db)):
    """List purchasable bundle tiers."""
    return [BundleTierResponse.model_validate(tier) for tier in list_bundle_tiers(db)]
