"""
Checkout order model.

Created when a checkout starts, before the customer pays. The capture step
looks the order up by its provider reference, so plan, period and amount
always come from this row rather than from the client or the provider's
free-text description.
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from documind.db.base import Base
from documind.db.types import GUID, enum_values
from documind.models.payment_method import PaymentMethodKind
from documind.models.subscription import BillingPeriod
from documind.utils.dates import utcnow


class OrderStatus(str, enum.Enum):
    """Checkout order lifecycle."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class CheckoutOrder(Base):
    """Server-held record of what a checkout is paying for."""

    __tablename__ = "checkout_orders"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(GUID(), ForeignKey("subscription_plans.id"), nullable=False)

    billing_period = Column(
        Enum(BillingPeriod, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
    )
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    provider = Column(String(50), nullable=False)  # stripe, paypal, crypto
    payment_method = Column(
        Enum(PaymentMethodKind, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
    )
    # PaymentIntent id, PayPal order id, or the crypto order token
    provider_reference = Column(String(255), unique=True, index=True)

    status = Column(
        Enum(OrderStatus, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=OrderStatus.PENDING,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True))

    plan = relationship("SubscriptionPlan", lazy="joined")
