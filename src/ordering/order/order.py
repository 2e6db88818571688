"""Order aggregate: the record of one checkout attempt.

An Order is created before any money moves (status ``pending``) so that the
payment intent can carry its id, and is afterwards only ever *updated*: the
amounts fixed at creation are never recomputed. Persistence lives behind the
``OrderStore`` port; the aggregate is responsible for validating what gets
written and for guarding the status machine.

State Machine:
    PENDING → PAID | PAYMENT_FAILED | PROCESSING (cash on delivery)
    PAYMENT_FAILED → PAID (card retried on the same intent)
    PAID → REFUNDED | PARTIALLY_REFUNDED
    PARTIALLY_REFUNDED → PARTIALLY_REFUNDED | REFUNDED

Documents use the camelCase keys the storefront reads (``totalAmount``,
``paymentIntentId``...); ``to_document`` / ``from_document`` translate.
"""

import re
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Dict,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.vat import GUEST_USER_ID, TAX_REGISTRATION_NUMBER, VatBreakdown
from shared.money import DEFAULT_CURRENCY


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PAYMENT_FAILED = "payment_failed"
    PROCESSING = "processing"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


CASH_ON_DELIVERY = "cash_on_delivery"

# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PAID,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.PROCESSING,
    },
    OrderStatus.PAYMENT_FAILED: {OrderStatus.PAID},
    OrderStatus.PAID: {OrderStatus.REFUNDED, OrderStatus.PARTIALLY_REFUNDED},
    OrderStatus.PARTIALLY_REFUNDED: {
        OrderStatus.PARTIALLY_REFUNDED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PROCESSING: set(),
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CURRENCY_TOKEN = re.compile(r"^\s*[^\d\s.]+(?:\.(?=\s))?\s*")
_PRICE_CHARS = re.compile(r"[^0-9.]")


def parse_price(value) -> float:
    """Unit prices arrive as numbers or display strings ("AED 120.00", "Dhs. 120")."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = _CURRENCY_TOKEN.sub("", str(value or ""), count=1)
    try:
        return float(_PRICE_CHARS.sub("", text))
    except ValueError:
        return 0.0


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Recipient and address captured at checkout, in the gateway's shipping shape."""

    name = String(max_length=255)
    phone = String(max_length=50)
    line1 = String(max_length=255)
    line2 = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)

    @classmethod
    def from_shipping(cls, shipping: dict | None) -> "ShippingAddress | None":
        if not shipping:
            return None
        address = shipping.get("address") or {}
        return cls(
            name=shipping.get("name"),
            phone=shipping.get("phone"),
            line1=address.get("line1"),
            line2=address.get("line2"),
            city=address.get("city"),
            state=address.get("state"),
            postal_code=address.get("postal_code"),
            country=address.get("country"),
        )

    def to_shipping(self) -> dict:
        return {
            "name": self.name,
            "phone": self.phone,
            "address": {
                "line1": self.line1,
                "line2": self.line2,
                "city": self.city,
                "state": self.state,
                "postal_code": self.postal_code,
                "country": self.country,
            },
        }


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class LineItem:
    """A cart line frozen into the order. Price is in major units (AED)."""

    product_id = String(max_length=255)
    name = String(max_length=255)
    price = Float(default=0.0, min_value=0.0)
    quantity = Integer(default=1, min_value=1)
    size = String(max_length=50)
    color = Text()
    display_color = Text()
    image = Text()

    @classmethod
    def from_cart_item(cls, data: dict) -> "LineItem":
        if not isinstance(data, dict):
            raise ValidationError({"cartItems": ["Each cart item must be an object"]})
        return cls(
            product_id=_as_text(data.get("productId") or data.get("id")),
            name=data.get("name"),
            price=parse_price(data.get("price")),
            quantity=int(data.get("quantity") or 1),
            size=data.get("size"),
            color=data.get("color"),
            display_color=data.get("displayColor"),
            image=data.get("image"),
        )

    def to_document(self) -> dict:
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "size": self.size,
            "color": self.color,
            "displayColor": self.display_color,
            "image": self.image,
        }


def _as_text(value):
    return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    user_id = Identifier(required=True)
    items = HasMany(LineItem)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    subtotal_amount = Integer(default=0, min_value=0)
    vat_amount = Integer(default=0, min_value=0)
    total_amount = Integer(default=0, min_value=0)
    vat_rate = Float(default=0.05)
    vat_percentage = String(max_length=10, default="5%")
    tax_registration_number = String(max_length=30, default=TAX_REGISTRATION_NUMBER)
    shipping = ValueObject(ShippingAddress)
    metadata = Dict()
    is_guest_order = Boolean(default=False)
    payment_intent_id = String(max_length=255)
    payment_method = String(max_length=50)
    payment_data = Dict()
    refund_amount = Integer(min_value=0)
    refund_id = String(max_length=255)
    status = String(
        max_length=30,
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory methods
    # -------------------------------------------------------------------
    @classmethod
    def create_pending(
        cls,
        user_id,
        breakdown: VatBreakdown,
        items_data=None,
        currency=None,
        shipping=None,
        metadata=None,
        order_id=None,
    ):
        """Create a pending order for a checkout attempt.

        Args:
            user_id: Authenticated buyer id, or ``"guest"``.
            breakdown: VAT breakdown computed from the pre-tax subtotal.
            items_data: Cart items (camelCase dicts) copied onto the order.
            currency: ISO currency code; stored lower-case.
            shipping: ``{name, phone, address: {line1, ..., country}}``.
            metadata: Free-form checkout metadata (email, names, etc.).
            order_id: Pre-allocated document id, when the store hands one out.
        """
        if not user_id:
            raise ValidationError({"userId": ["is required"]})
        if breakdown.total_amount != breakdown.subtotal_amount + breakdown.vat_amount:
            raise ValidationError({"totalAmount": ["must equal subtotalAmount + vatAmount"]})
        if items_data is not None and not isinstance(items_data, list):
            raise ValidationError({"cartItems": ["must be a list"]})

        metadata = dict(metadata or {})
        now = datetime.now(UTC)
        kwargs = {}
        if order_id:
            kwargs["id"] = order_id

        return cls(
            user_id=str(user_id),
            items=[LineItem.from_cart_item(item) for item in items_data or []],
            currency=(currency or DEFAULT_CURRENCY).lower(),
            subtotal_amount=breakdown.subtotal_amount,
            vat_amount=breakdown.vat_amount,
            total_amount=breakdown.total_amount,
            vat_rate=breakdown.vat_rate,
            vat_percentage=breakdown.vat_percentage,
            tax_registration_number=TAX_REGISTRATION_NUMBER,
            shipping=ShippingAddress.from_shipping(shipping),
            metadata=metadata,
            is_guest_order=_is_guest(user_id, metadata),
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            **kwargs,
        )

    @classmethod
    def create_cash_on_delivery(cls, user_id, breakdown, items_data=None, currency=None, shipping=None, metadata=None):
        """Cash orders skip the payment gateway and go straight to processing."""
        metadata = {**(metadata or {}), "paymentMethod": CASH_ON_DELIVERY}
        order = cls.create_pending(user_id, breakdown, items_data, currency, shipping, metadata)
        order.payment_method = CASH_ON_DELIVERY
        order._transition(OrderStatus.PROCESSING)
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _transition(self, target_status):
        self._assert_can_transition(target_status)
        self.status = target_status.value
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def attach_payment_intent(self, payment_intent_id):
        if self.payment_intent_id and self.payment_intent_id != payment_intent_id:
            raise ValidationError({"paymentIntentId": ["Order already has a payment intent"]})
        self.payment_intent_id = payment_intent_id
        self.updated_at = datetime.now(UTC)

    def mark_paid(self, payment_data, payment_method=None) -> bool:
        """Record a captured payment.

        Returns False when the order is already paid so re-delivered
        webhooks become no-ops instead of errors.
        """
        if OrderStatus(self.status) == OrderStatus.PAID:
            return False
        self._transition(OrderStatus.PAID)
        self.payment_data = dict(payment_data or {})
        if payment_method:
            self.payment_method = payment_method
        return True

    def mark_payment_failed(self, payment_data) -> bool:
        if OrderStatus(self.status) == OrderStatus.PAYMENT_FAILED:
            return False
        self._transition(OrderStatus.PAYMENT_FAILED)
        self.payment_data = dict(payment_data or {})
        return True

    def record_refund(self, refund_id, refund_amount, full_refund: bool) -> bool:
        """Move to ``refunded`` or ``partially_refunded``.

        A repeated full refund on an already refunded order is a no-op.
        """
        target = OrderStatus.REFUNDED if full_refund else OrderStatus.PARTIALLY_REFUNDED
        if OrderStatus(self.status) == OrderStatus.REFUNDED and target == OrderStatus.REFUNDED:
            return False
        self._transition(target)
        if refund_id:
            self.refund_id = refund_id
        if refund_amount is not None:
            self.refund_amount = int(refund_amount)
        return True

    # -------------------------------------------------------------------
    # Document mapping
    # -------------------------------------------------------------------
    def to_document(self) -> dict:
        return {
            "userId": self.user_id,
            "items": [item.to_document() for item in self.items],
            "currency": self.currency,
            "subtotalAmount": self.subtotal_amount,
            "vatAmount": self.vat_amount,
            "totalAmount": self.total_amount,
            "vatRate": self.vat_rate,
            "vatPercentage": self.vat_percentage,
            "taxRegistrationNumber": self.tax_registration_number,
            "shipping": self.shipping.to_shipping() if self.shipping else None,
            "metadata": dict(self.metadata or {}),
            "isGuestOrder": self.is_guest_order,
            "paymentIntentId": self.payment_intent_id,
            "paymentMethod": self.payment_method,
            "paymentData": self.payment_data,
            "refundAmount": self.refund_amount,
            "refundId": self.refund_id,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def document_fields(self, *names) -> dict:
        """Subset of ``to_document`` for partial merges."""
        document = self.to_document()
        return {name: document[name] for name in names}

    @classmethod
    def from_document(cls, order_id, document: dict):
        """Rebuild an aggregate from a stored document.

        The creation-time amount invariant is not re-checked here: orders
        written by older flows may lack the VAT fields.
        """
        return cls(
            id=order_id,
            user_id=str(document.get("userId") or GUEST_USER_ID),
            items=[LineItem.from_cart_item(item) for item in document.get("items") or []],
            currency=(document.get("currency") or DEFAULT_CURRENCY).lower(),
            subtotal_amount=int(document.get("subtotalAmount") or 0),
            vat_amount=int(document.get("vatAmount") or 0),
            total_amount=int(document.get("totalAmount") or 0),
            vat_rate=document.get("vatRate", 0.05),
            vat_percentage=document.get("vatPercentage") or "5%",
            tax_registration_number=document.get("taxRegistrationNumber") or TAX_REGISTRATION_NUMBER,
            shipping=ShippingAddress.from_shipping(document.get("shipping")),
            metadata=dict(document.get("metadata") or {}),
            is_guest_order=bool(document.get("isGuestOrder", False)),
            payment_intent_id=document.get("paymentIntentId"),
            payment_method=document.get("paymentMethod"),
            payment_data=document.get("paymentData"),
            refund_amount=document.get("refundAmount"),
            refund_id=document.get("refundId"),
            status=document.get("status") or OrderStatus.PENDING.value,
            created_at=document.get("createdAt"),
            updated_at=document.get("updatedAt"),
        )


def _is_guest(user_id, metadata: dict) -> bool:
    return (
        str(user_id) == GUEST_USER_ID
        or bool(metadata.get("isGuest"))
        or bool(metadata.get("isGuestCheckout"))
    )
