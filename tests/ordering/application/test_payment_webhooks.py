"""Application tests for gateway webhooks: paid, failed and refunded charges."""

import json

import pytest
from payments.gateway.fake_adapter import TEST_SIGNATURE
from shared.errors import SignatureError, StoreError

CHECKOUT = {
    "amount": 10000,
    "user_id": "uid-001",
    "metadata": {"email": "layla@example.com", "customerName": "Layla"},
    "cart_items": [{"productId": "p-1", "name": "Kaftan", "price": 100.0, "quantity": 1}],
}


def _event(event_type, data_object, event_id="evt_001"):
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": data_object}}).encode()


async def _checkout(lifecycle, gateway, **overrides):
    checkout = await lifecycle.create_payment_intent(**{**CHECKOUT, **overrides})
    intent = gateway.capture(checkout.payment_intent_id)
    return checkout, intent


async def _deliver(lifecycle, event_type, data_object, signature=TEST_SIGNATURE):
    return await lifecycle.handle_webhook(_event(event_type, data_object), signature)


def _charge(intent, amount_refunded, refund_id="re_001"):
    return {
        "id": intent["latest_charge"],
        "amount": intent["amount"],
        "amount_refunded": amount_refunded,
        "currency": "aed",
        "refunds": {"data": [{"id": refund_id, "reason": "requested_by_customer"}]},
    }


class TestSignature:
    async def test_bad_signature_rejected_before_any_read(self, lifecycle, store):
        with pytest.raises(SignatureError):
            await _deliver(lifecycle, "payment_intent.succeeded", {"id": "pi_1"}, signature="forged")
        assert store.writes == []

    async def test_missing_signature_rejected(self, lifecycle):
        with pytest.raises(SignatureError):
            await _deliver(lifecycle, "payment_intent.succeeded", {"id": "pi_1"}, signature=None)

    async def test_unknown_event_type_ignored(self, lifecycle):
        outcome = await _deliver(lifecycle, "customer.created", {"id": "cus_1"})
        assert outcome.action == "ignored"


class TestPaymentSucceeded:
    async def test_marks_order_paid(self, lifecycle, gateway, store, jobs):
        checkout, intent = await _checkout(lifecycle, gateway)
        outcome = await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()

        assert outcome.action == "paid"
        assert outcome.order_id == checkout.order_id
        order = await store.get_order(checkout.order_id)
        assert order["status"] == "paid"
        assert order["paymentData"]["latest_charge"] == intent["latest_charge"]
        assert order["paymentMethod"] == "card"

    async def test_writes_payment_record(self, lifecycle, gateway, store, jobs):
        checkout, intent = await _checkout(lifecycle, gateway)
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()

        record = store.collections["payments"][checkout.order_id]
        assert record["paymentIntentId"] == intent["id"]
        assert record["amount"] == 10500
        assert record["status"] == "succeeded"

    async def test_clears_registered_users_cart(self, lifecycle, gateway, store, jobs):
        store.seed_cart("uid-001", [{"id": "c1", "productId": "p-1"}, {"id": "c2", "productId": "p-2"}])
        _, intent = await _checkout(lifecycle, gateway)
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()
        assert store.cart_items("uid-001") == []

    async def test_guest_cart_left_alone(self, lifecycle, gateway, store, jobs):
        _, intent = await _checkout(lifecycle, gateway, user_id="guest")
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()
        assert "clear_cart" not in [write["operation"] for write in store.writes]

    async def test_emails_pdf_receipt(self, lifecycle, gateway, email, jobs, fake_browser):
        checkout, intent = await _checkout(lifecycle, gateway)
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()

        assert len(email.sent_emails) == 1
        sent = email.sent_emails[0]
        assert sent["to"] == "layla@example.com"
        assert sent["subject"] == f"Your Order Receipt - Order #{checkout.order_id.upper()}"
        (attachment,) = sent["attachments"]
        assert attachment.filename == f"Tax-Invoice-{checkout.order_id}.pdf"
        assert attachment.content_type == "application/pdf"
        assert attachment.content.startswith(b"%PDF")
        assert fake_browser.closed == 1

    async def test_guest_gets_no_receipt_email(self, lifecycle, gateway, email, jobs, fake_browser):
        _, intent = await _checkout(lifecycle, gateway, user_id="guest")
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()
        assert email.sent_emails == []
        assert fake_browser.calls == []

    async def test_duplicate_delivery_is_a_no_op(self, lifecycle, gateway, store, email, jobs):
        checkout, intent = await _checkout(lifecycle, gateway)
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()
        writes_after_first = len(store.writes)

        outcome = await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()

        assert outcome.action == "duplicate"
        assert len(store.writes) == writes_after_first
        assert len(email.sent_emails) == 1
        assert (await store.get_order(checkout.order_id))["status"] == "paid"

    async def test_unknown_order_acknowledged(self, lifecycle, store):
        outcome = await _deliver(
            lifecycle,
            "payment_intent.succeeded",
            {"id": "pi_x", "amount": 100, "metadata": {"orderId": "missing"}},
        )
        assert outcome.action == "order_not_found"
        assert store.writes == []

    async def test_intent_without_order_reference_acknowledged(self, lifecycle):
        outcome = await _deliver(lifecycle, "payment_intent.succeeded", {"id": "pi_x", "amount": 100})
        assert outcome.action == "missing_order_id"

    async def test_bookkeeping_failure_does_not_undo_payment(self, lifecycle, gateway, store, jobs):
        checkout, intent = await _checkout(lifecycle, gateway)
        store.configure(StoreError("payments collection unavailable"), {"record_payment", "clear_cart"})

        outcome = await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()

        assert outcome.action == "paid"
        store.configure(None)
        assert (await store.get_order(checkout.order_id))["status"] == "paid"

    async def test_status_update_failure_propagates(self, lifecycle, gateway, store):
        _, intent = await _checkout(lifecycle, gateway)
        store.configure(StoreError("write failed"), {"update_order"})
        with pytest.raises(StoreError):
            await _deliver(lifecycle, "payment_intent.succeeded", intent)

    async def test_success_after_failure(self, lifecycle, gateway, store, jobs):
        checkout, intent = await _checkout(lifecycle, gateway)
        await _deliver(lifecycle, "payment_intent.payment_failed", {**intent, "status": "requires_payment_method"})
        outcome = await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()
        assert outcome.action == "paid"
        assert (await store.get_order(checkout.order_id))["status"] == "paid"


class TestPaymentFailed:
    async def test_marks_order_failed(self, lifecycle, gateway, store):
        checkout = await lifecycle.create_payment_intent(**CHECKOUT)
        intent = dict(gateway.intents[checkout.payment_intent_id])
        outcome = await _deliver(lifecycle, "payment_intent.payment_failed", intent)
        assert outcome.action == "payment_failed"
        assert (await store.get_order(checkout.order_id))["status"] == "payment_failed"

    async def test_failure_after_paid_is_rejected_not_raised(self, lifecycle, gateway, store, jobs):
        checkout, intent = await _checkout(lifecycle, gateway)
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()

        outcome = await _deliver(lifecycle, "payment_intent.payment_failed", intent)
        assert outcome.action == "rejected"
        assert (await store.get_order(checkout.order_id))["status"] == "paid"


class TestChargeRefunded:
    async def _paid(self, lifecycle, gateway, jobs):
        checkout, intent = await _checkout(lifecycle, gateway)
        await _deliver(lifecycle, "payment_intent.succeeded", intent)
        await jobs.drain()
        return checkout, intent

    async def test_full_refund(self, lifecycle, gateway, store, jobs):
        checkout, intent = await self._paid(lifecycle, gateway, jobs)
        outcome = await _deliver(lifecycle, "charge.refunded", _charge(intent, 10500))

        assert outcome.action == "refunded"
        order = await store.get_order(checkout.order_id)
        assert order["status"] == "refunded"
        assert order["refundAmount"] == 10500
        assert order["refundId"] == "re_001"

    async def test_partial_refund(self, lifecycle, gateway, store, jobs):
        checkout, intent = await self._paid(lifecycle, gateway, jobs)
        outcome = await _deliver(lifecycle, "charge.refunded", _charge(intent, 3000))
        assert outcome.action == "partially_refunded"
        assert (await store.get_order(checkout.order_id))["refundAmount"] == 3000

    async def test_refund_record_keyed_by_charge_and_amount(self, lifecycle, gateway, store, jobs):
        checkout, intent = await self._paid(lifecycle, gateway, jobs)
        await _deliver(lifecycle, "charge.refunded", _charge(intent, 3000))
        key = f"{intent['latest_charge']}-3000"
        record = store.collections["refunds"][key]
        assert record["orderId"] == checkout.order_id
        assert record["status"] == "partially_refunded"

    async def test_repeated_full_refund_is_a_no_op(self, lifecycle, gateway, store, jobs):
        checkout, intent = await self._paid(lifecycle, gateway, jobs)
        await _deliver(lifecycle, "charge.refunded", _charge(intent, 10500))
        outcome = await _deliver(lifecycle, "charge.refunded", _charge(intent, 10500, refund_id="re_002"))
        assert outcome.action == "duplicate"
        assert (await store.get_order(checkout.order_id))["refundId"] == "re_001"

    async def test_unknown_charge_acknowledged(self, lifecycle):
        charge = {"id": "ch_unknown", "amount": 100, "amount_refunded": 100}
        outcome = await _deliver(lifecycle, "charge.refunded", charge)
        assert outcome.action == "order_not_found"

    async def test_refund_of_unpaid_order_rejected(self, lifecycle, gateway, store):
        checkout = await lifecycle.create_payment_intent(**CHECKOUT)
        await store.update_order(checkout.order_id, {"paymentData": {"latest_charge": "ch_pending"}})
        outcome = await _deliver(
            lifecycle,
            "charge.refunded",
            {"id": "ch_pending", "amount": 10500, "amount_refunded": 10500},
        )
        assert outcome.action == "rejected"
        assert (await store.get_order(checkout.order_id))["status"] == "pending"
