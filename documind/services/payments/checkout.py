"""
Checkout orchestration for the card, PayPal and crypto rails.

Starting a checkout prices the plan on the server and stores a pending
``CheckoutOrder``. Confirming looks that order up by the provider's
reference, checks ownership, status and amount, and only then activates
the subscription.

Activation writes, in one transaction:

1. plan resolution (nothing is written if the plan is gone)
2. the order claim, a conditional pending -> completed update
3. the subscription upsert
4. the billing history entry, in a savepoint
5. the default payment method, in a savepoint

Only one confirmation can win the claim in step 2; a request that loses
it writes nothing and reports the completed order. A failure in step 4
or 5 rolls back only its savepoint and queues the write in the billing
outbox; the checkout still succeeds.

Orders whose provider reports a terminal failure are marked failed and
are never activated.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from documind.core.config import settings
from documind.core.exceptions import (
    InvalidCheckoutError,
    PaymentAmountMismatchError,
    PaymentNotFoundError,
    PaymentOwnershipError,
    PlanNotFoundError,
)
from documind.models.billing_history import BillingStatus
from documind.models.billing_outbox import OutboxKind
from documind.models.checkout_order import CheckoutOrder, OrderStatus
from documind.models.payment_method import PaymentMethodKind
from documind.models.plan import SubscriptionPlan
from documind.models.subscription import BillingPeriod, UserSubscription
from documind.models.user import User
from documind.services import billing_history as billing_history_service
from documind.services import outbox as outbox_service
from documind.services import payment_methods as payment_method_service
from documind.services import plans as plan_service
from documind.services import subscriptions as subscription_service
from documind.services.payments.gateways import (
    CRYPTO_CONFIRMED,
    PAYPAL_COMPLETED,
    PAYPAL_FAILED,
    STRIPE_FAILED,
    STRIPE_SUCCEEDED,
    CryptoGateway,
    PayPalGateway,
    ProviderCharge,
    ProviderOrder,
    StripeGateway,
)
from documind.utils.dates import utcnow

logger = logging.getLogger(__name__)

CURRENCY = "USD"
CENT = Decimal("0.01")


@dataclass
class CheckoutResult:
    success: bool
    status: str
    charge: ProviderCharge
    subscription: UserSubscription | None = None


class CheckoutService:
    """Runs checkouts against injectable provider gateways."""

    def __init__(
        self,
        stripe_gateway: StripeGateway | None = None,
        paypal_gateway: PayPalGateway | None = None,
        crypto_gateway: CryptoGateway | None = None,
    ):
        self.stripe = stripe_gateway or StripeGateway()
        self.paypal = paypal_gateway or PayPalGateway()
        self.crypto = crypto_gateway or CryptoGateway()

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def _price(
        self, db: Session, plan_name: str, billing_period: BillingPeriod
    ) -> tuple[SubscriptionPlan, Decimal]:
        plan = plan_service.require_plan(db, plan_name)
        amount = plan_service.price_for(plan, billing_period)
        if amount <= 0:
            raise InvalidCheckoutError(f"The {plan.name} plan does not require payment")
        return plan, amount

    def _create_order(
        self,
        db: Session,
        user: User,
        plan: SubscriptionPlan,
        billing_period: BillingPeriod,
        amount: Decimal,
        provider: str,
        payment_method: PaymentMethodKind,
        provider_reference: str,
        order_id: uuid.UUID | None = None,
    ) -> CheckoutOrder:
        order = CheckoutOrder(
            id=order_id or uuid.uuid4(),
            user_id=user.id,
            plan_id=plan.id,
            billing_period=BillingPeriod(billing_period),
            amount=amount,
            currency=CURRENCY,
            provider=provider,
            payment_method=payment_method,
            provider_reference=provider_reference,
            status=OrderStatus.PENDING,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        logger.info(
            "Created %s checkout order %s for user %s: %s %s %s",
            provider,
            provider_reference,
            user.id,
            plan.name,
            order.billing_period.value,
            amount,
        )
        return order

    def _get_order(self, db: Session, user: User, provider: str, reference: str) -> CheckoutOrder:
        order = (
            db.query(CheckoutOrder)
            .filter(
                CheckoutOrder.provider == provider,
                CheckoutOrder.provider_reference == reference,
            )
            .first()
        )
        if order is None:
            raise PaymentNotFoundError(f"Checkout order not found: {reference}")
        if order.user_id != user.id:
            logger.warning("User %s tried to confirm order %s owned by another user", user.id, reference)
            raise PaymentOwnershipError("This payment does not belong to the current user")
        return order

    def _already_completed(self, db: Session, order: CheckoutOrder) -> CheckoutResult:
        """A repeated confirmation returns the existing state without writing."""
        subscription = subscription_service.get_subscription(db, order.user_id)
        charge = ProviderCharge(
            id=order.provider_reference,
            status=OrderStatus.COMPLETED.value,
            amount=order.amount,
            currency=order.currency,
        )
        return CheckoutResult(
            success=True, status=charge.status, charge=charge, subscription=subscription
        )

    @staticmethod
    def _already_failed(order: CheckoutOrder) -> CheckoutResult:
        charge = ProviderCharge(id=order.provider_reference, status=OrderStatus.FAILED.value)
        return CheckoutResult(success=False, status=charge.status, charge=charge)

    def _settled(self, db: Session, order: CheckoutOrder) -> CheckoutResult | None:
        if order.status == OrderStatus.COMPLETED:
            return self._already_completed(db, order)
        if order.status == OrderStatus.FAILED:
            return self._already_failed(order)
        return None

    def _mark_failed(self, db: Session, order: CheckoutOrder, charge: ProviderCharge) -> CheckoutResult:
        updated = (
            db.query(CheckoutOrder)
            .filter(CheckoutOrder.id == order.id, CheckoutOrder.status == OrderStatus.PENDING)
            .update({CheckoutOrder.status: OrderStatus.FAILED}, synchronize_session=False)
        )
        db.commit()
        if updated:
            logger.warning(
                "%s order %s failed at the provider (%s)", order.provider, order.provider_reference, charge.status
            )
        return CheckoutResult(success=False, status=charge.status, charge=charge)

    @staticmethod
    def _verify_amount(order: CheckoutOrder, charge: ProviderCharge) -> None:
        if charge.amount is None:
            raise PaymentAmountMismatchError("Provider did not report a charged amount")

        expected = Decimal(str(order.amount)).quantize(CENT)
        charged = Decimal(str(charge.amount)).quantize(CENT)
        currency_matches = (charge.currency or CURRENCY).upper() == order.currency.upper()
        if charged != expected or not currency_matches:
            logger.error(
                "Amount mismatch on order %s: expected %s %s, provider reported %s %s",
                order.provider_reference,
                expected,
                order.currency,
                charged,
                charge.currency,
            )
            raise PaymentAmountMismatchError(
                f"Charged amount {charged} does not match order amount {expected}"
            )

    # ------------------------------------------------------------------
    # Card (Stripe)
    # ------------------------------------------------------------------

    def start_card_checkout(
        self, db: Session, user: User, plan_name: str, billing_period: BillingPeriod
    ) -> tuple[CheckoutOrder, ProviderOrder]:
        plan, amount = self._price(db, plan_name, billing_period)
        intent = self.stripe.create_payment_intent(
            amount,
            CURRENCY,
            metadata={
                "user_id": str(user.id),
                "plan_name": plan.name,
                "billing_period": BillingPeriod(billing_period).value,
            },
        )
        order = self._create_order(
            db, user, plan, billing_period, amount, "stripe", PaymentMethodKind.CARD, intent.id
        )
        return order, intent

    def confirm_card_payment(self, db: Session, user: User, payment_intent_id: str) -> CheckoutResult:
        order = self._get_order(db, user, "stripe", payment_intent_id)
        settled = self._settled(db, order)
        if settled is not None:
            return settled

        charge = self.stripe.retrieve_payment_intent(payment_intent_id)
        if charge.status in STRIPE_FAILED:
            return self._mark_failed(db, order, charge)
        if charge.status != STRIPE_SUCCEEDED:
            logger.info("Payment intent %s is %s; nothing recorded", payment_intent_id, charge.status)
            return CheckoutResult(success=False, status=charge.status, charge=charge)

        self._verify_amount(order, charge)

        details = {}
        if charge.payment_method_id:
            details = self.stripe.retrieve_payment_method(charge.payment_method_id)

        return self.activate_subscription(
            db, order, charge, payment_method_id=charge.payment_method_id, details=details
        )

    # ------------------------------------------------------------------
    # PayPal
    # ------------------------------------------------------------------

    def start_paypal_checkout(
        self, db: Session, user: User, plan_name: str, billing_period: BillingPeriod
    ) -> tuple[CheckoutOrder, ProviderOrder]:
        plan, amount = self._price(db, plan_name, billing_period)
        order_id = uuid.uuid4()
        app_url = settings.APP_URL.rstrip("/")
        paypal_order = self.paypal.create_order(
            amount,
            CURRENCY,
            description=f"{settings.BRAND_NAME} {plan.name} ({BillingPeriod(billing_period).value})",
            return_url=f"{app_url}/payment/paypal/return",
            cancel_url=f"{app_url}/payment?canceled=true",
            reference_id=str(order_id),
        )
        order = self._create_order(
            db,
            user,
            plan,
            billing_period,
            amount,
            "paypal",
            PaymentMethodKind.PAYPAL,
            paypal_order.id,
            order_id=order_id,
        )
        return order, paypal_order

    def capture_paypal_order(self, db: Session, user: User, order_id: str) -> CheckoutResult:
        order = self._get_order(db, user, "paypal", order_id)
        settled = self._settled(db, order)
        if settled is not None:
            return settled

        charge = self.paypal.capture_order(order_id)
        if charge.status in PAYPAL_FAILED:
            return self._mark_failed(db, order, charge)
        if charge.status != PAYPAL_COMPLETED:
            logger.info("PayPal order %s is %s; nothing recorded", order_id, charge.status)
            return CheckoutResult(success=False, status=charge.status, charge=charge)

        self._verify_amount(order, charge)
        return self.activate_subscription(
            db, order, charge, payment_method_id=charge.payment_method_id, details=charge.payer
        )

    # ------------------------------------------------------------------
    # Crypto (simulated)
    # ------------------------------------------------------------------

    def start_crypto_checkout(
        self,
        db: Session,
        user: User,
        plan_name: str,
        billing_period: BillingPeriod,
        coin: PaymentMethodKind,
    ) -> tuple[CheckoutOrder, ProviderOrder]:
        coin = PaymentMethodKind(coin)
        if not coin.is_crypto:
            raise InvalidCheckoutError(f"Unsupported coin: {coin.value}")

        plan, amount = self._price(db, plan_name, billing_period)
        crypto_order = self.crypto.create_order(coin)
        order = self._create_order(
            db, user, plan, billing_period, amount, "crypto", coin, crypto_order.id
        )
        return order, crypto_order

    def confirm_crypto_payment(
        self, db: Session, user: User, order_id: str, tx_hash: str
    ) -> CheckoutResult:
        order = self._get_order(db, user, "crypto", order_id)
        settled = self._settled(db, order)
        if settled is not None:
            return settled

        charge = self.crypto.confirm_payment(
            order_id, tx_hash, order.amount, order.currency, order.payment_method
        )
        if charge.status != CRYPTO_CONFIRMED:
            return CheckoutResult(success=False, status=charge.status, charge=charge)

        self._verify_amount(order, charge)
        return self.activate_subscription(
            db, order, charge, payment_method_id=charge.payment_method_id, details=charge.payer
        )

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate_subscription(
        self,
        db: Session,
        order: CheckoutOrder,
        charge: ProviderCharge,
        payment_method_id: str | None = None,
        details: dict | None = None,
    ) -> CheckoutResult:
        """Apply a confirmed charge to the user's account and commit once."""
        plan = db.get(SubscriptionPlan, order.plan_id)
        if plan is None or not plan.is_active:
            logger.error("Plan %s for order %s is no longer available", order.plan_id, order.provider_reference)
            raise PlanNotFoundError(order.plan.name if order.plan else str(order.plan_id))

        try:
            claimed = (
                db.query(CheckoutOrder)
                .filter(CheckoutOrder.id == order.id, CheckoutOrder.status == OrderStatus.PENDING)
                .update(
                    {CheckoutOrder.status: OrderStatus.COMPLETED, CheckoutOrder.completed_at: utcnow()},
                    synchronize_session=False,
                )
            )
            if claimed != 1:
                db.rollback()
                logger.info("Order %s was already settled by another request", order.provider_reference)
                return self._settled(db, order) or self._already_completed(db, order)

            subscription = subscription_service.upsert_subscription(
                db, order.user_id, plan, order.billing_period
            )

            ledger_payload = {
                "user_id": order.user_id,
                "plan_id": plan.id,
                "subscription_id": subscription.id,
                "amount": order.amount,
                "currency": order.currency,
                "billing_period": order.billing_period,
                "payment_method": order.payment_method,
                "payment_provider": order.provider,
                "payment_intent_id": charge.transaction_id or charge.id,
                "status": BillingStatus.PAID,
                "metadata": {
                    "checkout_order_id": str(order.id),
                    "provider_order_id": charge.id,
                },
            }
            self._write_or_enqueue(
                db,
                OutboxKind.BILLING_HISTORY,
                order.user_id,
                ledger_payload,
                billing_history_service.record_charge,
            )

            if payment_method_id:
                method_payload = {
                    "user_id": order.user_id,
                    "kind": order.payment_method,
                    "provider": order.provider,
                    "provider_payment_method_id": payment_method_id,
                    "is_default": True,
                    **{key: value for key, value in (details or {}).items() if value is not None},
                }
                self._write_or_enqueue(
                    db,
                    OutboxKind.PAYMENT_METHOD,
                    order.user_id,
                    method_payload,
                    payment_method_service.upsert_payment_method,
                )

            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(subscription)
        logger.info(
            "Activated %s (%s) for user %s from %s charge %s",
            plan.name,
            subscription.billing_period.value,
            order.user_id,
            order.provider,
            charge.id,
        )
        return CheckoutResult(
            success=True, status=charge.status, charge=charge, subscription=subscription
        )

    @staticmethod
    def _write_or_enqueue(db: Session, kind: OutboxKind, user_id, payload: dict, write) -> None:
        try:
            with db.begin_nested():
                write(db, **payload)
        except SQLAlchemyError as e:
            logger.error("%s write failed for user %s, queued for replay: %s", kind.value, user_id, e)
            outbox_service.enqueue(db, kind, user_id, payload, e)
