"""Pydantic request/response schemas for the checkout API.

These are external contracts (anti-corruption layer): the storefront speaks
camelCase JSON, while shipping addresses keep the gateway's snake_case shape.
Amount rules (positive, integer fils) are enforced by the lifecycle so every
entry point reports them the same way.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


class ShippingSchema(BaseModel):
    name: str | None = None
    phone: str | None = None
    address: AddressSchema | None = None


class CartItemSchema(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    product_id: str | int | None = None
    name: str | None = None
    price: float | str | None = None
    quantity: int = Field(default=1, ge=1)
    size: str | None = None
    color: str | None = None
    display_color: str | None = None
    image: str | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(CamelModel):
    amount: int | None = None
    user_id: str | None = None
    currency: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    shipping: ShippingSchema | None = None
    cart_items: list[CartItemSchema] = Field(default_factory=list)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "amount": 10000,
                    "currency": "aed",
                    "userId": "uid-123",
                    "metadata": {"email": "layla@example.com", "customerName": "Layla"},
                    "shipping": {
                        "name": "Layla",
                        "phone": "+971500000000",
                        "address": {"line1": "1 Beach Rd", "city": "Dubai", "country": "AE"},
                    },
                    "cartItems": [{"productId": "p-1", "name": "Kaftan", "price": 100.0, "quantity": 1}],
                }
            ]
        },
    )

    def shipping_dict(self) -> dict | None:
        return self.shipping.model_dump() if self.shipping else None

    def cart_item_dicts(self) -> list[dict]:
        return [item.model_dump(by_alias=True, exclude_none=True) for item in self.cart_items]


class CreateIntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str
    order_id: str


class PaymentIntentResponse(BaseModel):
    id: str
    amount: int
    status: str
    created: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RefundRequest(CamelModel):
    payment_intent_id: str | None = None
    amount: int | None = None
    reason: str | None = None


class RefundResponse(CamelModel):
    success: bool = True
    refund_id: str
    status: str


class CashOnDeliveryResponse(CamelModel):
    success: bool = True
    order_id: str
    status: str
    total_amount: int


# ---------------------------------------------------------------------------
# VAT
# ---------------------------------------------------------------------------
class VatCalculateRequest(BaseModel):
    amount: int | None = None


class CalculateVatRequest(BaseModel):
    subtotal: int | None = None
