"""
Database models for DocuMind API.

Importing this package registers every table on ``Base.metadata``.
"""

from documind.models.billing_history import BillingHistory, BillingStatus
from documind.models.billing_outbox import BillingOutboxEntry, OutboxKind
from documind.models.checkout_order import CheckoutOrder, OrderStatus
from documind.models.document import Document, QAHistory
from documind.models.payment_method import PaymentMethod, PaymentMethodKind
from documind.models.plan import SubscriptionPlan
from documind.models.subscription import BillingPeriod, SubscriptionStatus, UserSubscription
from documind.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "SubscriptionPlan",
    "UserSubscription",
    "BillingPeriod",
    "SubscriptionStatus",
    "BillingHistory",
    "BillingStatus",
    "PaymentMethod",
    "PaymentMethodKind",
    "CheckoutOrder",
    "OrderStatus",
    "BillingOutboxEntry",
    "OutboxKind",
    "Document",
    "QAHistory",
]
