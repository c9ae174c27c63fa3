"""
Billing history ledger. Rows are appended, never updated.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from documind.models.billing_history import BillingHistory, BillingStatus
from documind.models.payment_method import PaymentMethodKind
from documind.models.subscription import BillingPeriod
from documind.utils.dates import utcnow

logger = logging.getLogger(__name__)


def record_charge(
    db: Session,
    *,
    user_id: uuid.UUID,
    plan_id: uuid.UUID,
    amount: Decimal,
    currency: str,
    billing_period: BillingPeriod,
    payment_method: PaymentMethodKind,
    payment_provider: str | None = None,
    payment_intent_id: str | None = None,
    subscription_id: uuid.UUID | None = None,
    status: BillingStatus = BillingStatus.PAID,
    invoice_url: str | None = None,
    metadata: dict | None = None,
) -> BillingHistory:
    """Append one ledger entry and flush it. The caller commits."""
    status = BillingStatus(status)
    entry = BillingHistory(
        user_id=user_id,
        subscription_id=subscription_id,
        plan_id=plan_id,
        amount=Decimal(str(amount)),
        currency=(currency or "USD").upper(),
        billing_period=BillingPeriod(billing_period),
        payment_method=PaymentMethodKind(payment_method),
        payment_provider=payment_provider,
        payment_intent_id=payment_intent_id,
        status=status,
        invoice_url=invoice_url,
        extra_metadata=metadata or {},
        paid_at=utcnow() if status == BillingStatus.PAID else None,
    )
    db.add(entry)
    db.flush()
    logger.info(
        "Recorded %s charge %s for user %s: %s %s",
        status.value,
        payment_intent_id,
        user_id,
        entry.amount,
        entry.currency,
    )
    return entry


def list_billing_history(db: Session, user_id: uuid.UUID, limit: int = 50) -> list[BillingHistory]:
    """Newest entries first."""
    return (
        db.query(BillingHistory)
        .filter(BillingHistory.user_id == user_id)
        .order_by(BillingHistory.created_at.desc())
        .limit(limit)
        .all()
    )
