"""
Payment gateway used by the renewal path.

Only a simulated gateway exists: renewals are charged against a
configurable success rate. Real providers implement PaymentGateway.charge.
"""
import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from app.core.clock import utcnow
from app.core.config import PAYMENT_SUCCESS_RATE
from app.core.errors import PaymentDeclined
from app.models.subscription import Subscription

logger = logging.getLogger(__name__)


@dataclass
class PaymentReceipt:
    subscription_id: int
    amount: Decimal
    transaction_id: str
    charged_at: datetime


class PaymentGateway:
    """Charges the renewal price of a subscription."""

    def charge(self, subscription: Subscription) -> PaymentReceipt:
        """
        Charge one billing period.

        Raises:
            PaymentDeclined: charge was not accepted
        """
        raise NotImplementedError


class SimulatedPaymentGateway(PaymentGateway):
    """Accepts a charge with probability `success_rate`."""

    def __init__(self, success_rate: float = PAYMENT_SUCCESS_RATE, rng: Optional[random.Random] = None):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError(f"success_rate must be within [0, 1], got {success_rate}")
        self.success_rate = success_rate
        self.rng = rng or random.Random()

    def charge(self, subscription: Subscription) -> PaymentReceipt:
        if self.rng.random() >= self.success_rate:
            logger.warning(
                f"Simulated payment declined for subscription {subscription.id} "
                f"({subscription.bundle_price} {subscription.billing_cycle})"
            )
            raise PaymentDeclined(details={"subscription_id": subscription.id})

        return PaymentReceipt(
            subscription_id=subscription.id,
            amount=Decimal(str(subscription.bundle_price)),
            transaction_id=f"sim_{uuid.uuid4().hex}",
            charged_at=utcnow(),
        )
