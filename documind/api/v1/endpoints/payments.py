"""Checkout endpoints for the card, PayPal and crypto rails.

Prices always come from the plan catalog; the client only names a plan
and a billing period.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from documind.api import deps
from documind.api.errors import http_error
from documind.core.exceptions import DocuMindError
from documind.models.user import User
from documind.schemas.payments import (
    CapturePayPalRequest,
    ChargeSummary,
    CheckoutRequest,
    CheckoutResponse,
    ConfirmPaymentRequest,
    CreateIntentResponse,
    CryptoConfirmRequest,
    CryptoOrderRequest,
    CryptoOrderResponse,
    PayPalOrderResponse,
    SubscriptionSummary,
)
from documind.services.payments.checkout import CheckoutResult, CheckoutService

router = APIRouter()


def _checkout_response(result: CheckoutResult) -> CheckoutResponse:
    subscription = None
    if result.subscription is not None:
        subscription = SubscriptionSummary(
            id=result.subscription.id,
            plan_name=result.subscription.plan.name,
            status=result.subscription.status,
        )
    return CheckoutResponse(
        success=result.success,
        status=result.status,
        charge=ChargeSummary(
            id=result.charge.id,
            status=result.charge.status,
            amount=result.charge.amount,
            currency=result.charge.currency,
        ),
        subscription=subscription,
    )


@router.post("/create-intent", response_model=CreateIntentResponse)
def create_payment_intent(
    request: CheckoutRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
):
    """Start a card checkout and return the Stripe client secret."""
    try:
        order, intent = checkout.start_card_checkout(
            db, current_user, request.plan_name, request.billing_period
        )
    except DocuMindError as e:
        raise http_error(e)

    return CreateIntentResponse(
        client_secret=intent.client_secret,
        payment_intent_id=intent.id,
        order_id=order.id,
        amount=order.amount,
        currency=order.currency,
    )


@router.post("/confirm", response_model=CheckoutResponse)
def confirm_payment(
    request: ConfirmPaymentRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
):
    """Activate the subscription once the PaymentIntent has succeeded."""
    try:
        result = checkout.confirm_card_payment(db, current_user, request.payment_intent_id)
    except DocuMindError as e:
        raise http_error(e)
    return _checkout_response(result)


@router.post("/create-paypal-order", response_model=PayPalOrderResponse)
def create_paypal_order(
    request: CheckoutRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
):
    try:
        order, paypal_order = checkout.start_paypal_checkout(
            db, current_user, request.plan_name, request.billing_period
        )
    except DocuMindError as e:
        raise http_error(e)

    return PayPalOrderResponse(
        order_id=paypal_order.id,
        approval_url=paypal_order.approval_url,
        amount=order.amount,
        currency=order.currency,
    )


@router.post("/capture-paypal-order", response_model=CheckoutResponse)
def capture_paypal_order(
    request: CapturePayPalRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
):
    try:
        result = checkout.capture_paypal_order(db, current_user, request.order_id)
    except DocuMindError as e:
        raise http_error(e)
    return _checkout_response(result)


@router.post("/crypto/create-order", response_model=CryptoOrderResponse)
def create_crypto_order(
    request: CryptoOrderRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
):
    try:
        order, crypto_order = checkout.start_crypto_checkout(
            db, current_user, request.plan_name, request.billing_period, request.coin
        )
    except DocuMindError as e:
        raise http_error(e)

    return CryptoOrderResponse(
        order_id=crypto_order.id,
        coin=order.payment_method,
        address=crypto_order.address,
        amount=order.amount,
        currency=order.currency,
    )


@router.post("/crypto/confirm", response_model=CheckoutResponse)
def confirm_crypto_payment(
    request: CryptoConfirmRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
):
    try:
        result = checkout.confirm_crypto_payment(
            db, current_user, request.order_id, request.tx_hash
        )
    except DocuMindError as e:
        raise http_error(e)
    return _checkout_response(result)
