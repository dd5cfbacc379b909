"""
Subscription management API endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from app.core.database import get_db
from app.core.auth import get_current_user_dependency
from app.models.user import User
from app.services.scheduler import ExpiryQueue
from app.services.subscription import (
    list_subscriptions,
    subscribe,
    cancel_subscription,
    toggle_auto_renewal,
)

router = APIRouter()


def get_expiry_queue() -> ExpiryQueue:
    """Dependency: queue backed by the global scheduler."""
    return ExpiryQueue()


# Request/Response Models
class SubscribeRequest(BaseModel):
    bundle_tier_id: int
    billing_cycle: str = "monthly"  # 'monthly' | 'yearly'


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bundle_tier_id: int
    bundle_name: str
    bundle_max_messages: int
    bundle_price: Decimal
    billing_cycle: str
    auto_renewal: bool
    status: bool
    start_date: datetime
    end_date: datetime
    renewal_date: datetime
    cancelled_at: Optional[datetime]


@router.get("", response_model=List[SubscriptionResponse])
async def get_subscriptions(
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """List the current user's subscriptions, newest first."""
    return [
        SubscriptionResponse.model_validate(s)
        for s in list_subscriptions(db, current_user.id, active_only=active_only)
    ]


@router.post("", response_model=SubscriptionResponse, status_code=201)
async def create_subscription(
    request: SubscribeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
    expiry_queue: ExpiryQueue = Depends(get_expiry_queue),
):
    """Subscribe the current user to a bundle tier."""
    subscription = subscribe(
        db,
        current_user.id,
        request.bundle_tier_id,
        request.billing_cycle,
        expiry_queue=expiry_queue,
    )
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel(
    subscription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Cancel a subscription of the current user."""
    subscription = cancel_subscription(db, current_user.id, subscription_id)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/toggle-auto-renewal", response_model=SubscriptionResponse)
async def toggle_renewal(
    subscription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Turn auto-renewal on or off."""
    subscription = toggle_auto_renewal(db, current_user.id, subscription_id)
    return SubscriptionResponse.model_validate(subscription)
