"""
Payment provider clients.

Each gateway turns a provider's own objects into ``ProviderCharge`` so the
checkout service handles card, PayPal and crypto confirmations the same way.
"""

import logging
import secrets
from dataclasses import dataclass, field
from decimal import Decimal

import httpx
import stripe

from documind.core.config import settings
from documind.core.exceptions import PaymentNotFoundError, PaymentProviderError
from documind.models.payment_method import PaymentMethodKind

logger = logging.getLogger(__name__)

CENTS = Decimal("100")

STRIPE_SUCCEEDED = "succeeded"
PAYPAL_COMPLETED = "COMPLETED"
CRYPTO_CONFIRMED = "confirmed"

# Provider states after which a charge can never succeed
STRIPE_FAILED = frozenset({"canceled"})
PAYPAL_FAILED = frozenset({"VOIDED", "DECLINED"})


@dataclass
class ProviderCharge:
    """A provider's view of one charge."""

    id: str
    status: str
    amount: Decimal | None = None
    currency: str | None = None
    transaction_id: str | None = None
    payment_method_id: str | None = None
    payer: dict = field(default_factory=dict)


@dataclass
class ProviderOrder:
    """A charge the customer still has to approve or pay."""

    id: str
    client_secret: str | None = None
    approval_url: str | None = None
    address: str | None = None


class StripeGateway:
    """Card rail backed by Stripe PaymentIntents."""

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY

    def _require_key(self) -> str:
        if not self.api_key:
            raise PaymentProviderError("Stripe is not configured")
        return self.api_key

    def create_payment_intent(
        self, amount: Decimal, currency: str, metadata: dict[str, str]
    ) -> ProviderOrder:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._require_key(),
                amount=int((amount * CENTS).to_integral_value()),
                currency=currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error("Stripe PaymentIntent create failed: %s", e)
            raise PaymentProviderError(f"Failed to create payment intent: {e.user_message or e}")

        return ProviderOrder(id=intent.id, client_secret=intent.client_secret)

    def retrieve_payment_intent(self, payment_intent_id: str) -> ProviderCharge:
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self._require_key())
        except stripe.InvalidRequestError as e:
            raise PaymentNotFoundError(f"Payment intent not found: {payment_intent_id}") from e
        except stripe.StripeError as e:
            logger.error("Stripe PaymentIntent retrieve failed for %s: %s", payment_intent_id, e)
            raise PaymentProviderError(f"Failed to retrieve payment intent: {e}")

        payment_method_id = intent.payment_method
        if payment_method_id is not None and not isinstance(payment_method_id, str):
            payment_method_id = payment_method_id.id

        return ProviderCharge(
            id=intent.id,
            status=intent.status,
            amount=Decimal(intent.amount) / CENTS,
            currency=(intent.currency or "usd").upper(),
            transaction_id=intent.id,
            payment_method_id=payment_method_id,
        )

    def retrieve_payment_method(self, payment_method_id: str) -> dict:
        """Card display details for a saved method."""
        try:
            method = stripe.PaymentMethod.retrieve(payment_method_id, api_key=self._require_key())
        except stripe.StripeError as e:
            logger.warning("Could not load Stripe payment method %s: %s", payment_method_id, e)
            return {}

        card = getattr(method, "card", None)
        if card is None:
            return {}
        return {
            "card_brand": card.brand,
            "card_last4": card.last4,
            "card_exp_month": card.exp_month,
            "card_exp_year": card.exp_year,
        }


class PayPalGateway:
    """PayPal Orders v2 over its REST API."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.client_id = client_id or settings.PAYPAL_CLIENT_ID
        self.client_secret = client_secret or settings.PAYPAL_CLIENT_SECRET
        self.base_url = (base_url or settings.PAYPAL_BASE_URL).rstrip("/")
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=settings.PAYPAL_TIMEOUT_SECONDS,
            transport=self.transport,
        )

    def _access_token(self, client: httpx.Client) -> str:
        if not self.client_id or not self.client_secret:
            raise PaymentProviderError("PayPal credentials not configured")

        response = client.post(
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        if response.status_code != 200:
            logger.error("PayPal token error %s: %s", response.status_code, response.text)
            raise PaymentProviderError("Failed to authenticate with PayPal")
        return response.json()["access_token"]

    def create_order(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        return_url: str,
        cancel_url: str,
        reference_id: str | None = None,
    ) -> ProviderOrder:
        purchase_unit = {
            "amount": {"currency_code": currency.upper(), "value": f"{amount:.2f}"},
            "description": description,
        }
        if reference_id:
            purchase_unit["reference_id"] = reference_id

        body = {
            "intent": "CAPTURE",
            "purchase_units": [purchase_unit],
            "application_context": {
                "brand_name": settings.BRAND_NAME,
                "landing_page": "BILLING",
                "user_action": "PAY_NOW",
                "return_url": return_url,
                "cancel_url": cancel_url,
            },
        }

        try:
            with self._client() as client:
                token = self._access_token(client)
                response = client.post(
                    "/v2/checkout/orders",
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.error("PayPal create order request failed: %s", e)
            raise PaymentProviderError("Failed to create PayPal order") from e

        if response.status_code not in (200, 201):
            logger.error("PayPal order error %s: %s", response.status_code, response.text)
            raise PaymentProviderError("Failed to create PayPal order")

        data = response.json()
        approval_url = next(
            (link["href"] for link in data.get("links", []) if link.get("rel") == "approve"),
            None,
        )
        return ProviderOrder(id=data["id"], approval_url=approval_url)

    def capture_order(self, order_id: str) -> ProviderCharge:
        try:
            with self._client() as client:
                token = self._access_token(client)
                response = client.post(
                    f"/v2/checkout/orders/{order_id}/capture",
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            logger.error("PayPal capture request failed for %s: %s", order_id, e)
            raise PaymentProviderError("Failed to capture PayPal order") from e

        if response.status_code == 404:
            raise PaymentNotFoundError(f"PayPal order not found: {order_id}")
        if response.status_code not in (200, 201):
            logger.error("PayPal capture error %s: %s", response.status_code, response.text)
            raise PaymentProviderError("Failed to capture PayPal order")

        data = response.json()
        capture = {}
        units = data.get("purchase_units") or []
        if units:
            captures = (units[0].get("payments") or {}).get("captures") or []
            if captures:
                capture = captures[0]
        amount = capture.get("amount") or {}
        payer = data.get("payer") or {}

        return ProviderCharge(
            id=data.get("id", order_id),
            status=data.get("status", ""),
            amount=Decimal(amount["value"]) if "value" in amount else None,
            currency=amount.get("currency_code"),
            transaction_id=capture.get("id") or data.get("id", order_id),
            payment_method_id=payer.get("payer_id") or payer.get("email_address"),
            payer={"paypal_email": payer.get("email_address")},
        )


class CryptoGateway:
    """Simulated crypto rail: fixed deposit addresses, trust-on-submit confirmation."""

    def __init__(self, addresses: dict[str, str] | None = None, simulation: bool | None = None):
        self.addresses = addresses or settings.CRYPTO_ADDRESSES
        self.simulation = settings.CRYPTO_SIMULATION_ENABLED if simulation is None else simulation

    def create_order(self, coin: PaymentMethodKind) -> ProviderOrder:
        coin = PaymentMethodKind(coin)
        if not coin.is_crypto:
            raise PaymentProviderError(f"Unsupported coin: {coin.value}")

        address = self.addresses.get(coin.value)
        if not address:
            raise PaymentProviderError(f"No deposit address configured for {coin.value}")
        return ProviderOrder(id=f"crypto_{secrets.token_hex(12)}", address=address)

    def confirm_payment(
        self, order_id: str, tx_hash: str, amount: Decimal, currency: str, coin: PaymentMethodKind
    ) -> ProviderCharge:
        if not self.simulation:
            raise PaymentProviderError("Crypto payments are not enabled")

        status = CRYPTO_CONFIRMED if tx_hash.strip() else "pending"
        address = self.addresses.get(PaymentMethodKind(coin).value)
        return ProviderCharge(
            id=order_id,
            status=status,
            amount=amount,
            currency=currency,
            transaction_id=tx_hash.strip() or None,
            payment_method_id=address,
            payer={"crypto_address": address},
        )
