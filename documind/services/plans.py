"""
Plan catalog: the Free / Basic / Pro tiers and their limits.
"""

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from documind.core.exceptions import PlanNotFoundError
from documind.models.plan import SubscriptionPlan
from documind.models.subscription import BillingPeriod

logger = logging.getLogger(__name__)

MB = 1024 * 1024
GB = 1024 * MB

DEFAULT_PLANS = [
    {
        "name": "Free",
        "description": "Try DocuMind on a handful of documents.",
        "price_monthly": Decimal("0.00"),
        "price_yearly": Decimal("0.00"),
        "max_documents": 10,
        "max_questions_per_month": 50,
        "max_storage_bytes": 100 * MB,
        "features": [
            "Up to 10 documents",
            "50 questions per month",
            "100 MB storage",
            "Basic AI answers",
        ],
    },
    {
        "name": "Basic",
        "description": "For individuals working with documents every day.",
        "price_monthly": Decimal("9.00"),
        "price_yearly": Decimal("90.00"),
        "max_documents": 100,
        "max_questions_per_month": 500,
        "max_storage_bytes": 1 * GB,
        "features": [
            "Up to 100 documents",
            "500 questions per month",
            "1 GB storage",
            "Question history",
            "Email support",
        ],
    },
    {
        "name": "Pro",
        "description": "Unlimited documents and questions for teams.",
        "price_monthly": Decimal("29.00"),
        "price_yearly": Decimal("290.00"),
        "max_documents": None,
        "max_questions_per_month": None,
        "max_storage_bytes": 10 * GB,
        "features": [
            "Unlimited documents",
            "Unlimited questions",
            "10 GB storage",
            "Question history",
            "Priority support",
        ],
    },
]


def list_active_plans(db: Session) -> list[SubscriptionPlan]:
    """Active plans, cheapest first."""
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.price_monthly, SubscriptionPlan.name)
        .all()
    )


def get_plan_by_name(db: Session, name: str | None) -> SubscriptionPlan | None:
    """Exact-name lookup among active plans."""
    if not name:
        return None
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.name == name, SubscriptionPlan.is_active.is_(True))
        .first()
    )


def require_plan(db: Session, name: str | None) -> SubscriptionPlan:
    plan = get_plan_by_name(db, name)
    if plan is None:
        raise PlanNotFoundError(name or "")
    return plan


def price_for(plan: SubscriptionPlan, billing_period: BillingPeriod) -> Decimal:
    """Server-side price of a plan for one billing period."""
    if BillingPeriod(billing_period) == BillingPeriod.YEARLY:
        price = plan.price_yearly
    else:
        price = plan.price_monthly
    return Decimal(price).quantize(Decimal("0.01"))


def seed_default_plans(db: Session) -> list[SubscriptionPlan]:
    """Insert any default plan that is missing. Existing rows are left alone."""
    existing = {name for (name,) in db.query(SubscriptionPlan.name).all()}
    created = []
    for data in DEFAULT_PLANS:
        if data["name"] in existing:
            continue
        plan = SubscriptionPlan(**data, is_active=True)
        db.add(plan)
        created.append(plan)

    if created:
        db.commit()
        logger.info("Seeded plans: %s", ", ".join(p.name for p in created))
    return created
