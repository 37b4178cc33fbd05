"""
Payments module data models.

A payment buys a plan: a fixed bundle of credits for a fixed price. The
order is created with the gateway up front and settled once the client
returns with a signed payment confirmation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """Purchasable credit plans."""

    BASIC = "basic"
    PREMIUM = "premium"


class Plan(BaseModel):
    """A credit bundle and its price."""

    model_config = {"frozen": True}

    plan: PlanType = Field(..., description="Plan identifier")
    name: str = Field(..., description="Display name")
    amount: int = Field(..., gt=0, description="Price in major currency units")
    credits: int = Field(..., gt=0, description="Credits granted on payment")

    @property
    def amount_minor(self) -> int:
        """Price in the currency's minor unit (paise), as gateways expect it."""
        return self.amount * 100


PLANS: dict[PlanType, Plan] = {
    PlanType.BASIC: Plan(plan=PlanType.BASIC, name="Basic", amount=4000, credits=500),
    PlanType.PREMIUM: Plan(plan=PlanType.PREMIUM, name="Premium", amount=8000, credits=1000),
}


class TransactionStatus(str, Enum):
    """Payment transaction status."""

    PENDING = "pending"  # Order created, waiting for the client to pay
    SUCCESS = "success"  # Verified and credited
    FAILED = "failed"    # Abandoned or rejected, never credited


class Transaction(BaseModel):
    """
    A payment transaction.

    Moves from PENDING to SUCCESS at most once. That move is what grants
    the plan's credits, keyed by ``order_id``.
    """

    model_config = {"frozen": True}

    id: str = Field(..., description="Transaction ID (UUID)")
    user_id: str = Field(..., description="Paying user's ID")
    order_id: str = Field(..., description="Gateway order ID")
    payment_id: Optional[str] = Field(None, description="Gateway payment ID, set on success")
    amount: int = Field(..., gt=0, description="Price in major currency units")
    currency: str = Field(default="INR", description="ISO currency code")
    plan: PlanType = Field(..., description="Purchased plan")
    credits: int = Field(..., gt=0, description="Credits granted on success")
    status: TransactionStatus = Field(default=TransactionStatus.PENDING)
    payment_proof: Optional[str] = Field(None, description="Gateway signature that settled it")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Subscription(BaseModel):
    """Record of a purchased plan. Append-only."""

    model_config = {"frozen": True}

    id: str = Field(..., description="Subscription ID (UUID)")
    user_id: str = Field(..., description="User ID")
    plan: PlanType = Field(..., description="Purchased plan")
    order_id: str = Field(..., description="Gateway order ID")
    payment_id: str = Field(..., description="Gateway payment ID")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GatewayOrder(BaseModel):
    """An order as created on the payment gateway."""

    order_id: str
    amount: int = Field(..., description="Amount in minor units")
    currency: str


class SettlementOutcome(str, Enum):
    """Result of trying to settle a transaction."""

    SETTLED = "settled"                  # This call moved it to SUCCESS
    ALREADY_SETTLED = "already_settled"  # It was already SUCCESS
    NOT_PENDING = "not_pending"          # It was FAILED


class Settlement(BaseModel):
    """Outcome of a settlement together with the transaction after it."""

    outcome: SettlementOutcome
    transaction: Transaction


# API request/response models


class CreateOrderRequest(BaseModel):
    """Request to start a plan purchase."""

    plan: str = Field(..., description="Plan to buy: 'basic' or 'premium'")


class OrderResponse(BaseModel):
    """What the client needs to open the gateway checkout."""

    order_id: str = Field(..., description="Gateway order ID")
    amount: int = Field(..., description="Amount in minor units")
    currency: str = Field(..., description="ISO currency code")
    key_id: str = Field(..., description="Gateway public key for the checkout widget")
    plan: PlanType
    credits: int


class VerifyPaymentRequest(BaseModel):
    """Signed payment confirmation returned by the gateway checkout."""

    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class VerifyPaymentResponse(BaseModel):
    """Result of a successful verification."""

    success: bool = True
    order_id: str
    plan: PlanType
    credits: int = Field(..., description="Credits granted by this order")


class TransactionListResponse(BaseModel):
    """A user's payment transactions, most recent first."""

    transactions: list[Transaction]


class SubscriptionResponse(BaseModel):
    """A user's most recent plan purchase."""

    subscription: Optional[Subscription] = None
