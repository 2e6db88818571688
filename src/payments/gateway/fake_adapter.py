"""Configurable fake payment gateway for development and testing.

This adapter simulates the gateway without any external calls. It keeps the
intents it creates so they can be retrieved, "captured" and refunded, and can
be configured at runtime to fail, making it useful for:
- Running the service locally without Stripe credentials
- Automated tests with predictable outcomes

Webhook payloads are accepted only with the signature ``test-signature``.
"""

import json
from uuid import uuid4

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

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Your card was declined."
        self.calls: list[dict] = []
        self.intents: dict[str, dict] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Your card was declined.") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def reset(self) -> None:
        self.should_succeed = True
        self.failure_reason = "Your card was declined."
        self.calls.clear()
        self.intents.clear()

    def _fail_if_configured(self) -> None:
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        shipping: dict | None = None,
        description: str | None = None,
    ) -> PaymentIntentResult:
        self.calls.append(
            {
                "method": "create_payment_intent",
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "shipping": shipping,
                "description": description,
            }
        )
        self._fail_if_configured()

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        self.intents[intent_id] = {
            "id": intent_id,
            "amount": amount,
            "currency": currency,
            "status": "requires_payment_method",
            "created": 0,
            "metadata": {k: str(v) for k, v in metadata.items() if v is not None},
            "latest_charge": None,
            "payment_method_types": ["card"],
        }
        return PaymentIntentResult(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
            amount=amount,
            currency=currency,
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        self.calls.append({"method": "retrieve_payment_intent", "payment_intent_id": payment_intent_id})
        self._fail_if_configured()
        payload = self.intents.get(payment_intent_id)
        if payload is None:
            raise ObjectNotFoundError({"_entity": f"No such payment_intent: '{payment_intent_id}'"})
        return PaymentIntent.from_payload(payload)

    def capture(self, payment_intent_id: str) -> dict:
        """Simulate the customer completing payment; returns the intent payload."""
        payload = self.intents[payment_intent_id]
        payload["status"] = "succeeded"
        payload["latest_charge"] = payload["latest_charge"] or f"ch_fake_{uuid4().hex[:16]}"
        return dict(payload)

    async def create_refund(
        self,
        charge_id: str,
        amount: int | None = None,
        reason: str | None = None,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "charge_id": charge_id,
                "amount": amount,
                "reason": reason or DEFAULT_REFUND_REASON,
            }
        )
        self._fail_if_configured()
        return RefundResult(
            id=f"re_fake_{uuid4().hex[:16]}",
            status="succeeded",
            amount=amount,
            charge=charge_id,
        )

    def construct_event(
        self,
        payload: bytes,
        signature_header: str | None,
        secret: str | None = None,  # noqa: ARG002
    ) -> WebhookEvent:
        if signature_header != TEST_SIGNATURE:
            raise SignatureError("No signatures found matching the expected signature for payload")
        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise SignatureError("Invalid payload") from exc
        return WebhookEvent(
            id=event.get("id") or f"evt_fake_{uuid4().hex[:12]}",
            type=event.get("type", ""),
            data_object=(event.get("data") or {}).get("object") or {},
        )
