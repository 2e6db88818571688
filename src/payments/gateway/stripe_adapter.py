"""Stripe payment gateway adapter.

Uses stripe-python's ``StripeClient`` with the httpx transport so every call
is awaited. Webhook signatures are checked with Stripe's own constant-time
verification before the payload is parsed.
"""

import json

import stripe
import structlog
from protean.exceptions import ObjectNotFoundError

from payments.gateway.port import (
    DEFAULT_REFUND_REASON,
    PaymentGateway,
    PaymentIntent,
    PaymentIntentResult,
    RefundResult,
    WebhookEvent,
)
from shared.errors import GatewayError, SignatureError

logger = structlog.get_logger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300

# Reasons Stripe accepts; anything else is kept in refund metadata instead.
_STRIPE_REFUND_REASONS = {"duplicate", "fraudulent", "requested_by_customer"}


def _stripe_message(exc: stripe.StripeError) -> str:
    return exc.user_message or str(exc)


def _as_dict(obj) -> dict:
    return obj.to_dict() if obj is not None else {}


def _string_metadata(metadata: dict) -> dict[str, str]:
    """Stripe metadata values must be strings."""
    return {str(key): str(value) for key, value in metadata.items() if value is not None}


def _stripe_shipping(shipping: dict | None) -> dict | None:
    if not shipping or not shipping.get("name"):
        return None
    address = {key: value for key, value in (shipping.get("address") or {}).items() if value}
    if not address.get("line1"):
        return None
    result = {"name": shipping["name"], "address": address}
    if shipping.get("phone"):
        result["phone"] = shipping["phone"]
    return result


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str, client: stripe.StripeClient | None = None) -> None:
        self.webhook_secret = webhook_secret
        self.client = client or stripe.StripeClient(api_key, http_client=stripe.HTTPXClient())

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        shipping: dict | None = None,
        description: str | None = None,
    ) -> PaymentIntentResult:
        params = {
            "amount": amount,
            "currency": currency,
            "metadata": _string_metadata(metadata),
            "automatic_payment_methods": {"enabled": True},
        }
        if description:
            params["description"] = description
        stripe_shipping = _stripe_shipping(shipping)
        if stripe_shipping:
            params["shipping"] = stripe_shipping

        try:
            intent = await self.client.v1.payment_intents.create_async(params)
        except stripe.StripeError as exc:
            logger.error("stripe_create_intent_failed", amount=amount, error=_stripe_message(exc))
            raise GatewayError(_stripe_message(exc)) from exc

        return PaymentIntentResult(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        try:
            intent = await self.client.v1.payment_intents.retrieve_async(payment_intent_id)
        except stripe.InvalidRequestError as exc:
            if exc.code == "resource_missing":
                raise ObjectNotFoundError({"_entity": _stripe_message(exc)}) from exc
            raise GatewayError(_stripe_message(exc)) from exc
        except stripe.StripeError as exc:
            raise GatewayError(_stripe_message(exc)) from exc
        return PaymentIntent.from_payload(_as_dict(intent))

    async def create_refund(
        self,
        charge_id: str,
        amount: int | None = None,
        reason: str | None = None,
    ) -> RefundResult:
        reason = reason or DEFAULT_REFUND_REASON
        params = {"charge": charge_id}
        if reason in _STRIPE_REFUND_REASONS:
            params["reason"] = reason
        else:
            params["reason"] = DEFAULT_REFUND_REASON
            params["metadata"] = {"reason": reason[:500]}
        # Omitting amount asks Stripe for a full refund of the charge
        if amount is not None:
            params["amount"] = amount

        try:
            refund = await self.client.v1.refunds.create_async(params)
        except stripe.StripeError as exc:
            logger.error("stripe_refund_failed", charge_id=charge_id, amount=amount, error=_stripe_message(exc))
            raise GatewayError(_stripe_message(exc)) from exc

        return RefundResult(id=refund.id, status=refund.status, amount=refund.amount, charge=charge_id)

    def construct_event(
        self,
        payload: bytes,
        signature_header: str | None,
        secret: str | None = None,
    ) -> WebhookEvent:
        secret = secret or self.webhook_secret
        if not signature_header:
            raise SignatureError("No stripe-signature header value was provided.")
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as exc:
            raise SignatureError("Invalid payload") from exc

        try:
            stripe.WebhookSignature.verify_header(text, signature_header, secret, WEBHOOK_TOLERANCE_SECONDS)
        except stripe.SignatureVerificationError as exc:
            raise SignatureError(_stripe_message(exc)) from exc

        try:
            event = json.loads(text)
        except ValueError as exc:
            raise SignatureError("Invalid payload") from exc

        return WebhookEvent(
            id=event.get("id", ""),
            type=event.get("type", ""),
            data_object=(event.get("data") or {}).get("object") or {},
        )
