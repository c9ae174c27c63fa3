"""
Billing history ledger: one append-only row per charge attempt.
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from documind.db.base import Base
from documind.db.types import GUID, JSONType, enum_values
from documind.models.payment_method import PaymentMethodKind
from documind.models.subscription import BillingPeriod
from documind.utils.dates import utcnow


class BillingStatus(str, enum.Enum):
    """Outcome of a charge attempt."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class BillingHistory(Base):
    """Billing history entry. Never updated after insert.

    The plan is referenced, not copied: editing a plan later changes how
    historical entries are displayed.
    """

    __tablename__ = "billing_history"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(GUID(), ForeignKey("user_subscriptions.id", ondelete="SET NULL"))
    plan_id = Column(GUID(), ForeignKey("subscription_plans.id"), nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    billing_period = Column(
        Enum(BillingPeriod, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
    )
    payment_method = Column(
        Enum(PaymentMethodKind, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
    )
    payment_provider = Column(String(50))
    payment_intent_id = Column(String(255), index=True)  # provider transaction id
    status = Column(
        Enum(BillingStatus, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=BillingStatus.PAID,
    )
    invoice_url = Column(Text)
    extra_metadata = Column("metadata", JSONType, default=dict)

    paid_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="billing_history")
    plan = relationship("SubscriptionPlan", lazy="joined")
