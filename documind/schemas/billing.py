import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from documind.models.billing_history import BillingStatus
from documind.models.payment_method import PaymentMethodKind
from documind.models.subscription import BillingPeriod, SubscriptionStatus


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    price_monthly: Decimal
    price_yearly: Decimal
    max_documents: int | None
    max_questions_per_month: int | None
    max_storage_bytes: int | None
    features: list[str]
    is_active: bool


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    plan: PlanResponse
    billing_period: BillingPeriod
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    cancelled_at: datetime | None = None


class SubscriptionLimitsResponse(BaseModel):
    """Permission decision returned by the limit evaluator."""

    model_config = ConfigDict(from_attributes=True)

    plan_name: str | None
    can_upload_document: bool
    can_ask_question: bool
    max_documents: int | None
    max_questions_per_month: int | None
    max_storage_bytes: int | None
    documents_used: int
    questions_used_this_month: int
    storage_used: int


class BillingHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    plan_id: uuid.UUID
    subscription_id: uuid.UUID | None
    amount: Decimal
    currency: str
    billing_period: BillingPeriod
    payment_method: PaymentMethodKind
    payment_provider: str | None
    payment_intent_id: str | None
    status: BillingStatus
    invoice_url: str | None
    paid_at: datetime | None
    created_at: datetime


class PaymentMethodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: PaymentMethodKind
    provider: str
    provider_payment_method_id: str
    is_default: bool
    card_brand: str | None = None
    card_last4: str | None = None
    card_exp_month: int | None = None
    card_exp_year: int | None = None
    paypal_email: str | None = None
    crypto_address: str | None = None
    created_at: datetime
