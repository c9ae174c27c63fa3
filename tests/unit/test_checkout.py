"""Checkout orchestration across the card, PayPal and crypto rails."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.attributes import set_committed_value

from documind.core.exceptions import (
    InvalidCheckoutError,
    PaymentAmountMismatchError,
    PaymentNotFoundError,
    PaymentOwnershipError,
    PlanNotFoundError,
)
from documind.models import (
    BillingHistory,
    BillingOutboxEntry,
    CheckoutOrder,
    PaymentMethod,
    UserSubscription,
)
from documind.models.billing_history import BillingStatus
from documind.models.checkout_order import OrderStatus
from documind.models.payment_method import PaymentMethodKind
from documind.models.subscription import BillingPeriod, SubscriptionStatus
from documind.services import billing_history as billing_history_service
from documind.services import outbox as outbox_service
from documind.services.payments.gateways import ProviderCharge
from documind.utils.dates import add_months, ensure_utc, utcnow


def assert_nothing_written(db):
    assert db.query(UserSubscription).count() == 0
    assert db.query(BillingHistory).count() == 0
    assert db.query(PaymentMethod).count() == 0


class TestCardCheckout:
    def test_successful_payment_activates_plan(self, db, plans, test_user, checkout_service, stripe_gateway):
        order, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)

        assert order.amount == Decimal("29.00")
        assert stripe_gateway.created[0]["amount"] == Decimal("29.00")
        assert intent.client_secret == "pi_test_1_secret"

        before = utcnow()
        result = checkout_service.confirm_card_payment(db, test_user, intent.id)
        after = utcnow()

        assert result.success is True
        assert result.subscription.plan.name == "Pro"
        assert result.subscription.status == SubscriptionStatus.ACTIVE
        period_end = ensure_utc(result.subscription.current_period_end)
        assert add_months(before, 1) <= period_end <= add_months(after, 1)

        entry = db.query(BillingHistory).one()
        assert entry.amount == Decimal("29.00")
        assert entry.status == BillingStatus.PAID
        assert entry.payment_method == PaymentMethodKind.CARD
        assert entry.payment_intent_id == "pi_test_1"

        method = db.query(PaymentMethod).one()
        assert method.is_default is True
        assert method.card_last4 == "4242"
        assert method.provider_payment_method_id == "pm_card_visa"

        db.refresh(order)
        assert order.status == OrderStatus.COMPLETED
        assert order.completed_at is not None

    def test_unsucceeded_intent_writes_nothing(self, db, plans, test_user, checkout_service, stripe_gateway):
        _, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)
        stripe_gateway.charge = ProviderCharge(id=intent.id, status="requires_payment_method")

        result = checkout_service.confirm_card_payment(db, test_user, intent.id)

        assert result.success is False
        assert result.status == "requires_payment_method"
        assert_nothing_written(db)

    def test_amount_mismatch_is_rejected(self, db, plans, test_user, checkout_service, stripe_gateway):
        _, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)
        stripe_gateway.charge = ProviderCharge(
            id=intent.id, status="succeeded", amount=Decimal("1.00"), currency="USD"
        )

        with pytest.raises(PaymentAmountMismatchError):
            checkout_service.confirm_card_payment(db, test_user, intent.id)

        assert_nothing_written(db)

    def test_another_users_intent_is_rejected(
        self, db, plans, test_user, other_user, checkout_service, stripe_gateway
    ):
        _, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)

        with pytest.raises(PaymentOwnershipError):
            checkout_service.confirm_card_payment(db, other_user, intent.id)

        assert stripe_gateway.retrieved == []
        assert_nothing_written(db)

    def test_unknown_intent(self, db, plans, test_user, checkout_service):
        with pytest.raises(PaymentNotFoundError):
            checkout_service.confirm_card_payment(db, test_user, "pi_does_not_exist")

    def test_repeated_confirmation_is_idempotent(self, db, plans, test_user, checkout_service, stripe_gateway):
        _, intent = checkout_service.start_card_checkout(db, test_user, "Basic", BillingPeriod.MONTHLY)

        checkout_service.confirm_card_payment(db, test_user, intent.id)
        again = checkout_service.confirm_card_payment(db, test_user, intent.id)

        assert again.success is True
        assert again.subscription.plan.name == "Basic"
        assert stripe_gateway.retrieved == [intent.id]
        assert db.query(BillingHistory).count() == 1

    def test_confirmation_with_stale_pending_order_writes_once(
        self, db, plans, test_user, checkout_service, stripe_gateway
    ):
        """A request that read the order before another one completed it must not charge the ledger twice."""
        order, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)
        checkout_service.confirm_card_payment(db, test_user, intent.id)

        # Simulate a concurrent request that loaded the order while it was still pending
        db.refresh(order)
        set_committed_value(order, "status", OrderStatus.PENDING)

        again = checkout_service.confirm_card_payment(db, test_user, intent.id)

        assert again.success is True
        assert again.subscription.plan.name == "Pro"
        assert stripe_gateway.retrieved == [intent.id, intent.id]
        assert db.query(BillingHistory).count() == 1
        assert db.query(PaymentMethod).count() == 1
        db.refresh(order)
        assert order.status == OrderStatus.COMPLETED

    def test_canceled_intent_marks_order_failed(self, db, plans, test_user, checkout_service, stripe_gateway):
        order, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)
        stripe_gateway.charge = ProviderCharge(id=intent.id, status="canceled")

        result = checkout_service.confirm_card_payment(db, test_user, intent.id)

        assert result.success is False
        assert result.status == "canceled"
        db.refresh(order)
        assert order.status == OrderStatus.FAILED
        assert_nothing_written(db)

        # A failed order is never activated, even if retried
        stripe_gateway.charge = None
        again = checkout_service.confirm_card_payment(db, test_user, intent.id)

        assert again.success is False
        assert again.status == "failed"
        assert stripe_gateway.retrieved == [intent.id]
        assert_nothing_written(db)

    def test_free_plan_cannot_be_bought(self, db, plans, test_user, checkout_service, stripe_gateway):
        with pytest.raises(InvalidCheckoutError):
            checkout_service.start_card_checkout(db, test_user, "Free", BillingPeriod.MONTHLY)

        assert stripe_gateway.created == []

    def test_unknown_plan(self, db, plans, test_user, checkout_service):
        with pytest.raises(PlanNotFoundError):
            checkout_service.start_card_checkout(db, test_user, "Enterprise", BillingPeriod.MONTHLY)

    def test_upgrade_replaces_existing_subscription(self, db, plans, test_user, checkout_service):
        _, basic = checkout_service.start_card_checkout(db, test_user, "Basic", BillingPeriod.MONTHLY)
        first = checkout_service.confirm_card_payment(db, test_user, basic.id).subscription.id

        _, pro = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.YEARLY)
        result = checkout_service.confirm_card_payment(db, test_user, pro.id)

        assert result.subscription.id == first
        assert result.subscription.plan.name == "Pro"
        assert result.subscription.billing_period == BillingPeriod.YEARLY
        assert db.query(UserSubscription).count() == 1
        assert db.query(BillingHistory).count() == 2


class TestPayPalCheckout:
    def test_capture_activates_plan(self, db, plans, test_user, checkout_service, paypal_gateway):
        order, paypal_order = checkout_service.start_paypal_checkout(
            db, test_user, "Basic", BillingPeriod.MONTHLY
        )
        assert paypal_order.approval_url.endswith(paypal_order.id)
        assert order.provider_reference == paypal_order.id

        result = checkout_service.capture_paypal_order(db, test_user, paypal_order.id)

        assert result.success is True
        assert result.subscription.plan.name == "Basic"
        method = db.query(PaymentMethod).one()
        assert method.kind == PaymentMethodKind.PAYPAL
        assert method.paypal_email == "buyer@example.com"
        assert db.query(BillingHistory).one().payment_intent_id == f"CAPTURE-{paypal_order.id}"

    def test_plan_deactivated_before_capture_writes_nothing(
        self, db, plans, test_user, checkout_service, paypal_gateway
    ):
        _, paypal_order = checkout_service.start_paypal_checkout(
            db, test_user, "Basic", BillingPeriod.MONTHLY
        )
        plans["Basic"].is_active = False
        db.commit()

        with pytest.raises(PlanNotFoundError):
            checkout_service.capture_paypal_order(db, test_user, paypal_order.id)

        assert_nothing_written(db)
        order = db.query(CheckoutOrder).one()
        assert order.status == OrderStatus.PENDING

    def test_incomplete_capture_writes_nothing(self, db, plans, test_user, checkout_service, paypal_gateway):
        _, paypal_order = checkout_service.start_paypal_checkout(
            db, test_user, "Pro", BillingPeriod.MONTHLY
        )
        paypal_gateway.charge = ProviderCharge(id=paypal_order.id, status="PAYER_ACTION_REQUIRED")

        result = checkout_service.capture_paypal_order(db, test_user, paypal_order.id)

        assert result.success is False
        assert_nothing_written(db)

    def test_voided_order_is_marked_failed(self, db, plans, test_user, checkout_service, paypal_gateway):
        order, paypal_order = checkout_service.start_paypal_checkout(
            db, test_user, "Pro", BillingPeriod.MONTHLY
        )
        paypal_gateway.charge = ProviderCharge(id=paypal_order.id, status="VOIDED")

        result = checkout_service.capture_paypal_order(db, test_user, paypal_order.id)

        assert result.success is False
        db.refresh(order)
        assert order.status == OrderStatus.FAILED
        assert_nothing_written(db)


class TestCryptoCheckout:
    def test_yearly_basic_with_eth(self, db, plans, test_user, checkout_service):
        order, crypto_order = checkout_service.start_crypto_checkout(
            db, test_user, "Basic", BillingPeriod.YEARLY, PaymentMethodKind.ETH
        )

        assert order.amount == Decimal("90.00")
        assert crypto_order.address == "0xTestAddress"
        assert crypto_order.id.startswith("crypto_")

        result = checkout_service.confirm_crypto_payment(db, test_user, crypto_order.id, "0xabc123")

        assert result.success is True
        assert result.subscription.billing_period == BillingPeriod.YEARLY
        method = db.query(PaymentMethod).one()
        assert method.kind == PaymentMethodKind.ETH
        assert method.crypto_address == "0xTestAddress"

    def test_blank_transaction_hash_stays_pending(self, db, plans, test_user, checkout_service):
        _, crypto_order = checkout_service.start_crypto_checkout(
            db, test_user, "Pro", BillingPeriod.MONTHLY, PaymentMethodKind.BTC
        )

        result = checkout_service.confirm_crypto_payment(db, test_user, crypto_order.id, "   ")

        assert result.success is False
        assert result.status == "pending"
        assert_nothing_written(db)

    def test_card_is_not_a_coin(self, db, plans, test_user, checkout_service):
        with pytest.raises(InvalidCheckoutError):
            checkout_service.start_crypto_checkout(
                db, test_user, "Pro", BillingPeriod.MONTHLY, PaymentMethodKind.CARD
            )


class TestOutboxFallback:
    def test_ledger_failure_is_queued_and_replayed(
        self, db, plans, test_user, checkout_service, monkeypatch
    ):
        def failing_record_charge(*args, **kwargs):
            raise OperationalError("INSERT INTO billing_history ...", {}, Exception("disk I/O error"))

        monkeypatch.setattr(billing_history_service, "record_charge", failing_record_charge)

        _, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)
        result = checkout_service.confirm_card_payment(db, test_user, intent.id)

        # The subscription and payment method still commit
        assert result.success is True
        assert db.query(UserSubscription).one().plan.name == "Pro"
        assert db.query(PaymentMethod).count() == 1
        assert db.query(BillingHistory).count() == 0

        entry = db.query(BillingOutboxEntry).one()
        assert entry.kind == "billing_history"
        assert entry.processed_at is None
        assert "disk I/O error" in entry.last_error

        monkeypatch.undo()
        assert outbox_service.replay_pending(db) == (1, 0)

        history = db.query(BillingHistory).one()
        assert history.amount == Decimal("29.00")
        assert history.payment_method == PaymentMethodKind.CARD
        db.refresh(entry)
        assert entry.processed_at is not None

    def test_failed_replay_counts_attempts(self, db, plans, test_user, checkout_service, monkeypatch):
        def failing_record_charge(*args, **kwargs):
            raise OperationalError("INSERT INTO billing_history ...", {}, Exception("locked"))

        monkeypatch.setattr(billing_history_service, "record_charge", failing_record_charge)
        _, intent = checkout_service.start_card_checkout(db, test_user, "Pro", BillingPeriod.MONTHLY)
        checkout_service.confirm_card_payment(db, test_user, intent.id)

        assert outbox_service.replay_pending(db) == (0, 1)

        entry = db.query(BillingOutboxEntry).one()
        assert entry.attempts == 2
        assert entry.processed_at is None
