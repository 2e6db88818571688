"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing the order lifecycle.

Amounts are always integers in minor units (fils).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

DEFAULT_REFUND_REASON = "requested_by_customer"


@dataclass(frozen=True)
class PaymentIntentResult:
    """Result of creating a payment intent."""

    id: str
    client_secret: str
    amount: int
    currency: str
    status: str = "requires_payment_method"


@dataclass(frozen=True)
class PaymentIntent:
    """The gateway's view of an attempted charge."""

    id: str
    amount: int
    currency: str
    status: str
    created: int | None = None
    metadata: dict = field(default_factory=dict)
    latest_charge: str | None = None
    payment_method_types: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict) -> "PaymentIntent":
        latest_charge = payload.get("latest_charge")
        if isinstance(latest_charge, dict):
            latest_charge = latest_charge.get("id")
        return cls(
            id=payload.get("id"),
            amount=int(payload.get("amount") or 0),
            currency=payload.get("currency") or "aed",
            status=payload.get("status") or "unknown",
            created=payload.get("created"),
            metadata=dict(payload.get("metadata") or {}),
            latest_charge=latest_charge,
            payment_method_types=tuple(payload.get("payment_method_types") or ()),
        )

    @property
    def order_id(self) -> str | None:
        return self.metadata.get("orderId") or None

    @property
    def payment_method(self) -> str | None:
        return self.payment_method_types[0] if self.payment_method_types else None

    def to_payment_data(self) -> dict:
        """Snapshot stored on the order; ``latest_charge`` backs refund lookups."""
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "created": self.created,
            "latest_charge": self.latest_charge,
            "payment_method_types": list(self.payment_method_types),
        }


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund request."""

    id: str
    status: str
    amount: int | None = None
    charge: str | None = None


@dataclass(frozen=True)
class WebhookEvent:
    """A verified webhook delivery."""

    id: str
    type: str
    data_object: dict


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        shipping: dict | None = None,
        description: str | None = None,
    ) -> PaymentIntentResult:
        """Create a payment intent for ``amount`` fils."""
        ...

    @abstractmethod
    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        """Fetch an intent; raises ``ObjectNotFoundError`` when it does not exist."""
        ...

    @abstractmethod
    async def create_refund(
        self,
        charge_id: str,
        amount: int | None = None,
        reason: str | None = None,
    ) -> RefundResult:
        """Refund a captured charge. ``amount=None`` refunds the full charge."""
        ...

    @abstractmethod
    def construct_event(
        self,
        payload: bytes,
        signature_header: str | None,
        secret: str | None = None,
    ) -> WebhookEvent:
        """Verify a webhook signature and parse the event.

        Raises ``SignatureError`` when verification fails; nothing from the
        payload is trusted in that case.
        """
        ...
