"""Application tests for checkout: pending order first, then the payment intent."""

import json

import pytest
from payments.gateway.fake_adapter import TEST_SIGNATURE
from protean.exceptions import ObjectNotFoundError, ValidationError
from shared.errors import GatewayError, StoreUnavailableError

CHECKOUT = {
    "amount": 10000,
    "user_id": "uid-001",
    "currency": "aed",
    "metadata": {"email": "layla@example.com", "customerName": "Layla"},
    "shipping": {
        "name": "Layla",
        "phone": "+971500000000",
        "address": {"line1": "1 Beach Road", "city": "Dubai", "country": "AE"},
    },
    "cart_items": [{"productId": "p-1", "name": "Kaftan", "price": 100.0, "quantity": 1}],
}


class TestCreatePaymentIntent:
    async def test_returns_client_secret_and_ids(self, lifecycle):
        checkout = await lifecycle.create_payment_intent(**CHECKOUT)
        assert checkout.client_secret.startswith(checkout.payment_intent_id)
        assert checkout.order_id

    async def test_intent_charges_vat_inclusive_total(self, lifecycle, gateway):
        await lifecycle.create_payment_intent(**CHECKOUT)
        call = gateway.calls[0]
        assert call["method"] == "create_payment_intent"
        assert call["amount"] == 10500
        assert call["currency"] == "aed"
        assert call["description"] == "Subtotal: 100.00 + VAT (5%): 5.00 = Total: 105.00 AED"

    async def test_intent_metadata_carries_order_and_tax(self, lifecycle, gateway):
        checkout = await lifecycle.create_payment_intent(**CHECKOUT)
        metadata = gateway.calls[0]["metadata"]
        assert metadata["orderId"] == checkout.order_id
        assert metadata["userId"] == "uid-001"
        assert metadata["vatAmount"] == "500"
        assert metadata["subtotalAmount"] == "10000"
        assert metadata["vatRate"] == "5%"
        assert metadata["taxRegistrationNumber"] == "100123456789003"
        assert metadata["taxCompliant"] == "UAE_VAT_5_PERCENT"
        assert metadata["email"] == "layla@example.com"

    async def test_pending_order_written_before_intent(self, lifecycle, store):
        checkout = await lifecycle.create_payment_intent(**CHECKOUT)
        operations = [write["operation"] for write in store.writes]
        assert operations == ["create_pending_order", "update_order"]
        created = store.writes[0]["data"]
        assert created["status"] == "pending"
        assert created["paymentIntentId"] is None
        assert created["metadata"]["orderId"] == checkout.order_id

    async def test_order_stores_breakdown_and_intent(self, lifecycle, store):
        checkout = await lifecycle.create_payment_intent(**CHECKOUT)
        order = await store.get_order(checkout.order_id)
        assert order["subtotalAmount"] == 10000
        assert order["vatAmount"] == 500
        assert order["totalAmount"] == 10500
        assert order["paymentIntentId"] == checkout.payment_intent_id
        assert order["items"][0]["name"] == "Kaftan"
        assert order["shipping"]["address"]["city"] == "Dubai"

    async def test_gateway_failure_leaves_pending_order(self, lifecycle, gateway, store):
        gateway.configure(should_succeed=False, failure_reason="Gateway down")
        with pytest.raises(GatewayError, match="Gateway down"):
            await lifecycle.create_payment_intent(**CHECKOUT)

        orders = store.collections["orders"]
        assert len(orders) == 1
        (order,) = orders.values()
        assert order["status"] == "pending"
        assert order["paymentIntentId"] is None

    async def test_retry_after_failure_creates_new_order(self, lifecycle, gateway, store):
        gateway.configure(should_succeed=False)
        with pytest.raises(GatewayError):
            await lifecycle.create_payment_intent(**CHECKOUT)
        gateway.configure(should_succeed=True)
        await lifecycle.create_payment_intent(**CHECKOUT)
        assert len(store.collections["orders"]) == 2

    async def test_store_outage_stops_before_gateway(self, lifecycle, gateway, store):
        store.configure(StoreUnavailableError("firestore down"), {"create_pending_order"})
        with pytest.raises(StoreUnavailableError):
            await lifecycle.create_payment_intent(**CHECKOUT)
        assert gateway.calls == []

    @pytest.mark.parametrize("amount", [0, -100, None, 99.5, "100"])
    async def test_invalid_amount_rejected(self, lifecycle, gateway, amount):
        with pytest.raises(ValidationError):
            await lifecycle.create_payment_intent(**{**CHECKOUT, "amount": amount})
        assert gateway.calls == []

    async def test_missing_user_rejected(self, lifecycle, store):
        with pytest.raises(ValidationError) as exc:
            await lifecycle.create_payment_intent(**{**CHECKOUT, "user_id": None})
        assert "userId" in exc.value.messages
        assert store.writes == []

    async def test_palette_product_keeps_its_gradient_swatch(self, lifecycle, gateway, store, jobs):
        swatch = "linear-gradient(90deg, #ffffff, #000000, #aaaaaa, #0000ff)"
        palette = '["#ffffff","#000000","#aaaaaa","#0000ff","#ff00ff","#00ffff"]'
        item = {
            "productId": "p-9",
            "name": "Sunset Kaftan",
            "price": 100.0,
            "quantity": 1,
            "color": palette,
            "displayColor": swatch,
        }
        checkout = await lifecycle.create_payment_intent(**{**CHECKOUT, "cart_items": [item]})

        order = await store.get_order(checkout.order_id)
        assert order["items"][0]["displayColor"] == swatch
        assert order["items"][0]["color"] == palette

        intent = gateway.capture(checkout.payment_intent_id)
        event = {"id": "evt_9", "type": "payment_intent.succeeded", "data": {"object": intent}}
        outcome = await lifecycle.handle_webhook(json.dumps(event).encode(), TEST_SIGNATURE)
        await jobs.drain()
        assert outcome.action == "paid"

    async def test_guest_checkout(self, lifecycle, store):
        checkout = await lifecycle.create_payment_intent(**{**CHECKOUT, "user_id": "guest"})
        order = await store.get_order(checkout.order_id)
        assert order["isGuestOrder"] is True


class TestGetPaymentIntent:
    async def test_retrieves_created_intent(self, lifecycle):
        checkout = await lifecycle.create_payment_intent(**CHECKOUT)
        intent = await lifecycle.get_payment_intent(checkout.payment_intent_id)
        assert intent.id == checkout.payment_intent_id
        assert intent.amount == 10500
        assert intent.order_id == checkout.order_id

    async def test_unknown_intent(self, lifecycle):
        with pytest.raises(ObjectNotFoundError):
            await lifecycle.get_payment_intent("pi_missing")

    async def test_empty_id_rejected(self, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.get_payment_intent("")
