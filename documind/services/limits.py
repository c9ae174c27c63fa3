"""
Usage counting and plan-limit evaluation.

``check_subscription_limits`` never raises for store errors: a failed lookup
produces a deny-everything decision so that callers fail closed.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from documind.core.config import settings
from documind.core.exceptions import UsageLimitExceeded
from documind.models.document import Document, QAHistory
from documind.models.plan import SubscriptionPlan
from documind.models.subscription import BillingPeriod
from documind.services import plans as plan_service
from documind.services import subscriptions as subscription_service
from documind.utils.dates import start_of_month, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageSnapshot:
    documents_count: int
    questions_this_month: int
    storage_used_bytes: int


@dataclass(frozen=True)
class SubscriptionLimits:
    plan_name: str | None
    can_upload_document: bool
    can_ask_question: bool
    max_documents: int | None
    max_questions_per_month: int | None
    max_storage_bytes: int | None
    documents_used: int
    questions_used_this_month: int
    storage_used: int

    @classmethod
    def deny_all(cls) -> "SubscriptionLimits":
        return cls(
            plan_name=None,
            can_upload_document=False,
            can_ask_question=False,
            max_documents=0,
            max_questions_per_month=0,
            max_storage_bytes=0,
            documents_used=0,
            questions_used_this_month=0,
            storage_used=0,
        )


def _within(used: int, limit: int | None) -> bool:
    # A user exactly at the limit may not add one more
    return limit is None or used < limit


def get_usage_snapshot(db: Session, user_id: uuid.UUID, now: datetime | None = None) -> UsageSnapshot:
    month_start = start_of_month(now or utcnow())

    documents_count = (
        db.query(func.count(Document.id)).filter(Document.user_id == user_id).scalar() or 0
    )
    questions_this_month = (
        db.query(func.count(QAHistory.id))
        .filter(QAHistory.user_id == user_id, QAHistory.created_at >= month_start)
        .scalar()
        or 0
    )
    storage_used = (
        db.query(func.coalesce(func.sum(Document.file_size), 0))
        .filter(Document.user_id == user_id)
        .scalar()
        or 0
    )

    return UsageSnapshot(
        documents_count=int(documents_count),
        questions_this_month=int(questions_this_month),
        storage_used_bytes=int(storage_used),
    )


def _resolve_plan(db: Session, user_id: uuid.UUID) -> SubscriptionPlan | None:
    subscription = subscription_service.get_active_subscription(db, user_id)
    if subscription is not None:
        return subscription.plan

    free_plan = plan_service.get_plan_by_name(db, settings.FREE_PLAN_NAME)
    if free_plan is None:
        return None

    # First check for this user: enroll in Free. The upsert keeps this idempotent.
    subscription_service.upsert_subscription(db, user_id, free_plan, BillingPeriod.MONTHLY)
    db.commit()
    logger.info("Enrolled user %s in the %s plan", user_id, free_plan.name)
    return free_plan


def check_subscription_limits(
    db: Session, user_id: uuid.UUID, now: datetime | None = None
) -> SubscriptionLimits:
    """Decide whether the user may upload a document or ask a question."""
    try:
        plan = _resolve_plan(db, user_id)
        if plan is None:
            logger.warning("No plan resolved for user %s; denying uploads and questions", user_id)
            return SubscriptionLimits.deny_all()

        usage = get_usage_snapshot(db, user_id, now)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Limit lookup failed for user %s; denying uploads and questions", user_id)
        return SubscriptionLimits.deny_all()

    return SubscriptionLimits(
        plan_name=plan.name,
        can_upload_document=_within(usage.documents_count, plan.max_documents),
        can_ask_question=_within(usage.questions_this_month, plan.max_questions_per_month),
        max_documents=plan.max_documents,
        max_questions_per_month=plan.max_questions_per_month,
        max_storage_bytes=plan.max_storage_bytes,
        documents_used=usage.documents_count,
        questions_used_this_month=usage.questions_this_month,
        storage_used=usage.storage_used_bytes,
    )


def ensure_can_upload(db: Session, user_id: uuid.UUID, incoming_bytes: int = 0) -> SubscriptionLimits:
    limits = check_subscription_limits(db, user_id)
    if not limits.can_upload_document:
        raise UsageLimitExceeded(
            "Document limit reached for your plan",
            metric="documents",
            current=limits.documents_used,
            limit=limits.max_documents,
        )

    if (
        limits.max_storage_bytes is not None
        and limits.storage_used + incoming_bytes > limits.max_storage_bytes
    ):
        raise UsageLimitExceeded(
            "Storage limit reached for your plan",
            metric="storage",
            current=limits.storage_used,
            limit=limits.max_storage_bytes,
        )
    return limits


def ensure_can_ask(db: Session, user_id: uuid.UUID) -> SubscriptionLimits:
    limits = check_subscription_limits(db, user_id)
    if not limits.can_ask_question:
        raise UsageLimitExceeded(
            "Monthly question limit reached for your plan",
            metric="questions",
            current=limits.questions_used_this_month,
            limit=limits.max_questions_per_month,
        )
    return limits
