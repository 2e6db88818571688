"""Integration tests for receipt, cash-on-delivery and status email endpoints."""

import base64

import pytest

COD_BODY = {
    "amount": 20000,
    "userId": "uid-002",
    "metadata": {"email": "omar@example.com", "customerName": "Omar"},
    "shipping": {"name": "Omar", "address": {"line1": "12 Marina Walk", "city": "Dubai", "country": "AE"}},
    "cartItems": [{"productId": "p-1", "name": "Linen Shirt", "price": "AED 200.00", "quantity": 1}],
}


@pytest.fixture()
async def order_id(client, jobs):
    response = await client.post("/api/orders/cash-on-delivery", json=COD_BODY)
    assert response.status_code == 201, response.text
    await jobs.drain()
    return response.json()["orderId"]


class TestCashOnDeliveryApi:
    async def test_creates_processing_order(self, client, jobs):
        response = await client.post("/api/orders/cash-on-delivery", json=COD_BODY)
        await jobs.drain()
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "processing"
        assert body["totalAmount"] == 21000

    async def test_rejects_missing_amount(self, client):
        response = await client.post("/api/orders/cash-on-delivery", json={"userId": "uid-002"})
        assert response.status_code == 400


class TestReceiptApi:
    async def test_returns_base64_svg(self, client, jobs, order_id):
        response = await client.get(f"/api/receipt/{order_id}")
        await jobs.drain()

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["mimeType"] == "image/svg+xml"
        assert body["format"] == "svg"
        svg = base64.b64decode(body["receipt"]).decode("utf-8")
        assert svg.startswith("<?xml")
        assert "Linen Shirt" in svg

    async def test_order_details(self, client, jobs, order_id):
        response = await client.get(f"/api/receipt/{order_id}")
        await jobs.drain()

        details = response.json()["orderDetails"]
        assert details["orderId"] == order_id
        assert details["status"] == "processing"
        assert details["total"] == 21000
        assert details["currency"] == "aed"
        assert details["items"][0]["name"] == "Linen Shirt"
        assert details["shipping"]["name"] == "Omar"

    async def test_emails_receipt_after_responding(self, client, email, jobs, order_id):
        email.reset()
        await client.get(f"/api/receipt/{order_id}")
        await jobs.drain()
        (sent,) = email.sent_emails
        assert sent["attachments"][0].content_type == "application/pdf"

    async def test_unknown_order_is_404(self, client):
        response = await client.get("/api/receipt/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Order not found"}


class TestSendEmailApi:
    async def test_sends(self, client, email, order_id):
        email.reset()
        response = await client.post(f"/api/orders/{order_id}/send-email")
        assert response.status_code == 200
        body = response.json()
        assert body["emailSent"] is True
        assert body["recipient"] == "omar@example.com"
        assert body["status"] == "processing"
        assert len(email.sent_emails) == 1

    async def test_no_recipient_is_400(self, client, jobs):
        created = await client.post("/api/orders/cash-on-delivery", json={**COD_BODY, "metadata": {}})
        await jobs.drain()

        response = await client.post(f"/api/orders/{created.json()['orderId']}/send-email")
        assert response.status_code == 400
        body = response.json()
        assert body["emailSent"] is False
        assert body["reason"] == "No email provided"

    async def test_unknown_order_is_404(self, client):
        response = await client.post("/api/orders/missing/send-email")
        assert response.status_code == 404
