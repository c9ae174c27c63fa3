import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from documind.models.payment_method import PaymentMethodKind
from documind.models.subscription import BillingPeriod, SubscriptionStatus


class CheckoutRequest(BaseModel):
    """Plan selection for any checkout rail. The price is looked up server-side."""

    plan_name: str = Field(..., min_length=1, max_length=50)
    billing_period: BillingPeriod = BillingPeriod.MONTHLY


class CreateIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    order_id: uuid.UUID
    amount: Decimal
    currency: str


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1)


class PayPalOrderResponse(BaseModel):
    order_id: str
    approval_url: str | None = None
    amount: Decimal
    currency: str


class CapturePayPalRequest(BaseModel):
    order_id: str = Field(..., min_length=1)


class CryptoOrderRequest(CheckoutRequest):
    coin: PaymentMethodKind = PaymentMethodKind.BTC


class CryptoOrderResponse(BaseModel):
    order_id: str
    coin: PaymentMethodKind
    address: str
    amount: Decimal
    currency: str


class CryptoConfirmRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    tx_hash: str = Field(..., min_length=1)


class SubscriptionSummary(BaseModel):
    id: uuid.UUID
    plan_name: str
    status: SubscriptionStatus


class ChargeSummary(BaseModel):
    id: str
    status: str
    amount: Decimal | None = None
    currency: str | None = None


class CheckoutResponse(BaseModel):
    """Outcome of a confirm/capture call.

    ``success`` is false when the provider reports a non-terminal state;
    nothing is written in that case and ``subscription`` is omitted.
    """

    success: bool
    status: str
    charge: ChargeSummary
    subscription: SubscriptionSummary | None = None
