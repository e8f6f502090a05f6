"""Normalized Stripe payloads and confirmation outcomes."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ConfirmationFailure(str, Enum):
    """Why a provider object failed verification."""

    PAYMENT_NOT_SUCCEEDED = "payment_not_succeeded"
    AMOUNT_MISMATCH = "amount_mismatch"
    METADATA_MISMATCH = "metadata_mismatch"
    SUBSCRIPTION_NOT_ACTIVE = "subscription_not_active"


class PaymentIntentSnapshot(BaseModel):
    """Normalized Stripe PaymentIntent payload."""

    id: str
    status: str
    amount: int
    currency: str = ""
    client_secret: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class SubscriptionSnapshot(BaseModel):
    """Normalized Stripe subscription payload."""

    subscription_id: str
    customer_id: str
    status: str
    client_secret: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class IssuedPaymentIntent(BaseModel):
    """Returned to the client so it can pay Stripe directly."""

    payment_intent_id: str
    client_secret: str


class IssuedSubscription(BaseModel):
    subscription_id: str
    client_secret: str | None = None
