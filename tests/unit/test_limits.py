"""Limit evaluator: plan resolution, usage counting and the allow/deny decision."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from documind.core.exceptions import UsageLimitExceeded
from documind.models import Document, QAHistory, User, UserSubscription
from documind.models.subscription import BillingPeriod, SubscriptionStatus
from documind.services import limits as limit_service
from documind.services import subscriptions as subscription_service
from documind.services.limits import SubscriptionLimits, check_subscription_limits

UTC = timezone.utc


def add_documents(db: Session, user: User, count: int, file_size: int | None = 1024) -> None:
    for i in range(count):
        db.add(
            Document(
                user_id=user.id,
                title=f"Doc {i}",
                file_name=f"doc-{i}.pdf",
                file_size=file_size,
            )
        )
    db.commit()


def add_question(db: Session, user: User, created_at: datetime) -> None:
    document = db.query(Document).filter(Document.user_id == user.id).first()
    if document is None:
        add_documents(db, user, 1)
        document = db.query(Document).filter(Document.user_id == user.id).first()
    db.add(
        QAHistory(
            user_id=user.id,
            document_id=document.id,
            question="What is this?",
            answer="A document.",
            created_at=created_at,
        )
    )
    db.commit()


class TestFreeEnrollment:
    def test_first_check_enrolls_user_in_free_plan(self, db, plans, test_user):
        limits = check_subscription_limits(db, test_user.id)

        assert limits.plan_name == "Free"
        subscriptions = db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).all()
        assert len(subscriptions) == 1
        assert subscriptions[0].plan.name == "Free"
        assert subscriptions[0].status == SubscriptionStatus.ACTIVE

    def test_repeated_checks_keep_a_single_row(self, db, plans, test_user):
        check_subscription_limits(db, test_user.id)
        check_subscription_limits(db, test_user.id)

        count = db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).count()
        assert count == 1

    def test_missing_free_plan_denies_everything(self, db, test_user):
        limits = check_subscription_limits(db, test_user.id)

        assert limits == SubscriptionLimits.deny_all()
        assert db.query(UserSubscription).count() == 0


class TestDocumentLimit:
    def test_user_at_limit_cannot_upload(self, db, plans, test_user):
        add_documents(db, test_user, plans["Free"].max_documents)

        limits = check_subscription_limits(db, test_user.id)

        assert limits.documents_used == 10
        assert limits.can_upload_document is False

    def test_user_one_below_limit_can_upload(self, db, plans, test_user):
        add_documents(db, test_user, plans["Free"].max_documents - 1)

        limits = check_subscription_limits(db, test_user.id)

        assert limits.can_upload_document is True

    def test_unlimited_plan_always_allows(self, db, plans, test_user):
        subscription_service.upsert_subscription(db, test_user.id, plans["Pro"], BillingPeriod.MONTHLY)
        db.commit()
        add_documents(db, test_user, 25)

        limits = check_subscription_limits(db, test_user.id)

        assert limits.plan_name == "Pro"
        assert limits.max_documents is None
        assert limits.can_upload_document is True
        assert limits.can_ask_question is True


class TestQuestionLimit:
    def test_questions_from_previous_month_do_not_count(self, db, plans, test_user):
        now = datetime(2025, 3, 15, 10, 0, tzinfo=UTC)
        add_question(db, test_user, datetime(2025, 2, 28, 23, 59, 59, tzinfo=UTC))
        add_question(db, test_user, datetime(2025, 3, 1, 0, 0, 0, tzinfo=UTC))

        limits = check_subscription_limits(db, test_user.id, now=now)

        assert limits.questions_used_this_month == 1

    def test_user_at_question_limit_cannot_ask(self, db, plans, test_user):
        plans["Free"].max_questions_per_month = 2
        db.commit()
        now = datetime(2025, 3, 15, tzinfo=UTC)
        add_question(db, test_user, datetime(2025, 3, 2, tzinfo=UTC))
        add_question(db, test_user, datetime(2025, 3, 3, tzinfo=UTC))

        limits = check_subscription_limits(db, test_user.id, now=now)

        assert limits.can_ask_question is False


class TestStorageUsage:
    def test_null_file_sizes_count_as_zero(self, db, plans, test_user):
        add_documents(db, test_user, 2, file_size=500)
        add_documents(db, test_user, 1, file_size=None)

        limits = check_subscription_limits(db, test_user.id)

        assert limits.storage_used == 1000

    def test_upload_rejected_when_storage_would_overflow(self, db, plans, test_user):
        max_bytes = plans["Free"].max_storage_bytes
        add_documents(db, test_user, 1, file_size=max_bytes - 10)

        with pytest.raises(UsageLimitExceeded) as exc_info:
            limit_service.ensure_can_upload(db, test_user.id, incoming_bytes=20)

        assert exc_info.value.metric == "storage"


class TestSafeDeny:
    def test_store_error_denies_instead_of_raising(self, db, plans, test_user, monkeypatch):
        def broken_lookup(*args, **kwargs):
            raise OperationalError("SELECT ...", {}, Exception("database is unavailable"))

        monkeypatch.setattr(subscription_service, "get_active_subscription", broken_lookup)

        limits = check_subscription_limits(db, test_user.id)

        assert limits == SubscriptionLimits.deny_all()

    def test_ensure_can_ask_raises_on_deny(self, db, test_user):
        # No plans seeded: nothing resolves
        with pytest.raises(UsageLimitExceeded) as exc_info:
            limit_service.ensure_can_ask(db, test_user.id)

        assert exc_info.value.metric == "questions"


def test_inactive_subscription_plan_is_not_used(db: Session, plans, test_user):
    subscription_service.upsert_subscription(db, test_user.id, plans["Basic"], BillingPeriod.MONTHLY)
    db.commit()
    subscription = subscription_service.get_subscription(db, test_user.id)
    subscription.status = SubscriptionStatus.EXPIRED
    db.commit()

    limits = check_subscription_limits(db, test_user.id)

    # An expired row is replaced by the Free enrollment, still one row per user
    assert limits.plan_name == "Free"
    assert db.query(UserSubscription).filter(UserSubscription.user_id == test_user.id).count() == 1
