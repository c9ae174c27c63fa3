"""
Subscription record: one row per user, written through a native upsert.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from documind.core.exceptions import SubscriptionNotFoundError
from documind.models.plan import SubscriptionPlan
from documind.models.subscription import BillingPeriod, SubscriptionStatus, UserSubscription
from documind.utils.dates import add_months, add_years, utcnow

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# Kept from the existing row when the new checkout does not supply them
_EXTERNAL_REFERENCES = (
    "stripe_subscription_id",
    "stripe_customer_id",
    "paypal_subscription_id",
)


def get_active_subscription(db: Session, user_id: uuid.UUID) -> UserSubscription | None:
    return (
        db.query(UserSubscription)
        .filter(
            UserSubscription.user_id == user_id,
            UserSubscription.status == SubscriptionStatus.ACTIVE,
        )
        .first()
    )


def get_subscription(db: Session, user_id: uuid.UUID) -> UserSubscription | None:
    """The user's subscription row in any status."""
    return db.query(UserSubscription).filter(UserSubscription.user_id == user_id).first()


def compute_period(billing_period: BillingPeriod, start: datetime) -> tuple[datetime, datetime]:
    """Billing window starting at ``start``.

    Month and year arithmetic clamp to the end of the target month, so a
    subscription bought on Jan 31 renews on Feb 28/29.
    """
    if BillingPeriod(billing_period) == BillingPeriod.YEARLY:
        return start, add_years(start, 1)
    return start, add_months(start, 1)


def upsert_subscription(
    db: Session,
    user_id: uuid.UUID,
    plan: SubscriptionPlan,
    billing_period: BillingPeriod,
    *,
    start: datetime | None = None,
    stripe_subscription_id: str | None = None,
    stripe_customer_id: str | None = None,
    paypal_subscription_id: str | None = None,
) -> UserSubscription:
    """Create or replace the user's subscription in a single statement.

    Sets the plan and period, status=active, a fresh window, and clears any
    pending cancellation. Does not commit.
    """
    billing_period = BillingPeriod(billing_period)
    now = start or utcnow()
    period_start, period_end = compute_period(billing_period, now)

    table = UserSubscription.__table__
    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Subscription upsert is not supported on {dialect}")

    stmt = insert(table).values(
        id=uuid.uuid4(),
        user_id=user_id,
        plan_id=plan.id,
        billing_period=billing_period,
        status=SubscriptionStatus.ACTIVE,
        current_period_start=period_start,
        current_period_end=period_end,
        cancel_at_period_end=False,
        cancelled_at=None,
        stripe_subscription_id=stripe_subscription_id,
        stripe_customer_id=stripe_customer_id,
        paypal_subscription_id=paypal_subscription_id,
        created_at=now,
        updated_at=now,
    )

    update_values = {
        "plan_id": stmt.excluded.plan_id,
        "billing_period": stmt.excluded.billing_period,
        "status": stmt.excluded.status,
        "current_period_start": stmt.excluded.current_period_start,
        "current_period_end": stmt.excluded.current_period_end,
        "cancel_at_period_end": stmt.excluded.cancel_at_period_end,
        "cancelled_at": None,
        "updated_at": stmt.excluded.updated_at,
    }
    for column in _EXTERNAL_REFERENCES:
        update_values[column] = func.coalesce(
            getattr(stmt.excluded, column), table.c[column]
        )

    stmt = stmt.on_conflict_do_update(index_elements=[table.c.user_id], set_=update_values)

    db.flush()
    db.execute(stmt)

    subscription = (
        db.query(UserSubscription)
        .populate_existing()
        .filter(UserSubscription.user_id == user_id)
        .one()
    )
    logger.info(
        "Subscription for user %s set to %s/%s until %s",
        user_id,
        plan.name,
        billing_period.value,
        period_end.isoformat(),
    )
    return subscription


def cancel_subscription(db: Session, user_id: uuid.UUID) -> UserSubscription:
    """Request cancellation at period end. Access continues until then."""
    subscription = get_active_subscription(db, user_id)
    if subscription is None:
        raise SubscriptionNotFoundError("No active subscription to cancel")

    subscription.cancel_at_period_end = True
    subscription.cancelled_at = utcnow()
    db.commit()
    db.refresh(subscription)
    logger.info("User %s cancelled subscription %s at period end", user_id, subscription.id)
    return subscription


def resume_subscription(db: Session, user_id: uuid.UUID) -> UserSubscription:
    """Withdraw a pending cancellation."""
    subscription = get_active_subscription(db, user_id)
    if subscription is None:
        raise SubscriptionNotFoundError("No active subscription to resume")

    subscription.cancel_at_period_end = False
    subscription.cancelled_at = None
    db.commit()
    db.refresh(subscription)
    return subscription
