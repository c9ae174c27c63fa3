"""
User subscription model: one row per user, enforced by a unique constraint.
"""

import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from documind.db.base import Base
from documind.db.types import GUID, enum_values
from documind.utils.dates import utcnow


class BillingPeriod(str, enum.Enum):
    """Recurrence granularity of a subscription."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, enum.Enum):
    """Subscription status enumeration."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAST_DUE = "past_due"


class UserSubscription(Base):
    """A user's current enrollment in a plan and billing period."""

    __tablename__ = "user_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_user_subscriptions_user_id"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(GUID(), ForeignKey("subscription_plans.id"), nullable=False)

    billing_period = Column(
        Enum(BillingPeriod, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=BillingPeriod.MONTHLY,
    )
    status = Column(
        Enum(SubscriptionStatus, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
        index=True,
    )

    current_period_start = Column(DateTime(timezone=True), nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=False)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    cancelled_at = Column(DateTime(timezone=True))

    # External processor references
    stripe_subscription_id = Column(String(255))
    stripe_customer_id = Column(String(255))
    paypal_subscription_id = Column(String(255))

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="subscription")
    plan = relationship("SubscriptionPlan", lazy="joined")
