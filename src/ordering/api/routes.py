"""FastAPI routes for checkout, payments, VAT and receipts."""

import base64
from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ordering.api.schemas import (
    CalculateVatRequest,
    CashOnDeliveryResponse,
    CheckoutRequest,
    CreateIntentResponse,
    PaymentIntentResponse,
    RefundRequest,
    RefundResponse,
    VatCalculateRequest,
)
from ordering.order.lifecycle import OrderLifecycle
from ordering.order.vat import TAX_REGISTRATION_NUMBER, calculate_vat_breakdown, vat_from_inclusive
from protean.exceptions import ValidationError
from shared.errors import SignatureError, error_message
from shared.money import DISPLAY_CURRENCY, format_minor

logger = structlog.get_logger(__name__)


def get_lifecycle(request: Request) -> OrderLifecycle:
    return request.app.state.services.lifecycle


def _order_details(order_id: str, order: dict) -> dict:
    return {
        "orderId": order_id,
        "status": order.get("status"),
        "total": order.get("totalAmount"),
        "currency": order.get("currency") or DISPLAY_CURRENCY,
        "createdAt": order.get("createdAt") or datetime.now(UTC),
        "items": order.get("items") or [],
    }


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/api/payment", tags=["payment"])


@payment_router.post("/create-intent", response_model=CreateIntentResponse)
async def create_payment_intent(
    body: CheckoutRequest,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> CreateIntentResponse:
    checkout = await lifecycle.create_payment_intent(
        amount=body.amount,
        user_id=body.user_id,
        currency=body.currency,
        metadata=body.metadata,
        shipping=body.shipping_dict(),
        cart_items=body.cart_item_dicts(),
    )
    return CreateIntentResponse(
        client_secret=checkout.client_secret,
        payment_intent_id=checkout.payment_intent_id,
        order_id=checkout.order_id,
    )


@payment_router.post("/refund", response_model=RefundResponse)
async def refund_payment(
    body: RefundRequest,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> RefundResponse:
    outcome = await lifecycle.refund_payment(body.payment_intent_id, amount=body.amount, reason=body.reason)
    return RefundResponse(refund_id=outcome.refund.id, status=outcome.refund.status)


@payment_router.post("/webhook")
async def payment_webhook(request: Request, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    payload = await request.body()
    try:
        outcome = await lifecycle.handle_webhook(payload, request.headers.get("stripe-signature"))
    except SignatureError as exc:
        logger.warning("webhook_signature_rejected", error=exc.message)
        return PlainTextResponse(f"Webhook Error: {exc.message}", status_code=400)
    except Exception as exc:
        logger.error("webhook_processing_failed", error=error_message(exc), exc_info=True)
        return JSONResponse({"error": "Webhook processing failed"}, status_code=500)

    logger.info("webhook_processed", event_type=outcome.event_type, action=outcome.action, order_id=outcome.order_id)
    return {"received": True}


@payment_router.get("/{payment_intent_id}", response_model=PaymentIntentResponse)
async def get_payment_intent(
    payment_intent_id: str,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> PaymentIntentResponse:
    intent = await lifecycle.get_payment_intent(payment_intent_id)
    return PaymentIntentResponse(
        id=intent.id,
        amount=intent.amount,
        status=intent.status,
        created=intent.created,
        metadata=intent.metadata,
    )


# ---------------------------------------------------------------------------
# VAT Router
# ---------------------------------------------------------------------------
vat_router = APIRouter(prefix="/api", tags=["vat"])


@vat_router.post("/vat/calculate")
async def vat_breakdown_from_total(body: VatCalculateRequest) -> dict:
    """Split a VAT-inclusive amount into subtotal and VAT."""
    if not body.amount or body.amount <= 0:
        raise ValidationError({"amount": ["Valid amount is required"]})
    breakdown = vat_from_inclusive(body.amount)
    return {
        "success": True,
        "input": {
            "totalAmountWithVAT": body.amount,
            "currency": DISPLAY_CURRENCY,
        },
        "breakdown": {
            "subtotal": f"{format_minor(breakdown.subtotal_amount)} {DISPLAY_CURRENCY}",
            "vat": f"{format_minor(breakdown.vat_amount)} {DISPLAY_CURRENCY}",
            "total": f"{format_minor(breakdown.total_amount)} {DISPLAY_CURRENCY}",
            "vatRate": breakdown.vat_percentage,
        },
        "compliance": {
            "taxRegistrationNumber": TAX_REGISTRATION_NUMBER,
            "vatCompliant": True,
            "region": "UAE",
            "authority": "Federal Tax Authority (FTA)",
        },
    }


@vat_router.post("/calculate-vat")
async def vat_breakdown_from_subtotal(body: CalculateVatRequest) -> dict:
    """VAT charged on top of a pre-tax subtotal."""
    if not body.subtotal or body.subtotal <= 0:
        raise ValidationError({"subtotal": ["Valid subtotal is required"]})
    breakdown = calculate_vat_breakdown(body.subtotal)
    return {
        "success": True,
        "calculation": {
            "subtotal": f"{format_minor(breakdown.subtotal_amount)} {DISPLAY_CURRENCY}",
            "vatRate": breakdown.vat_percentage,
            "vatAmount": f"{format_minor(breakdown.vat_amount)} {DISPLAY_CURRENCY}",
            "total": f"{format_minor(breakdown.total_amount)} {DISPLAY_CURRENCY}",
        },
        "breakdown": {
            "subtotalFils": breakdown.subtotal_amount,
            "vatFils": breakdown.vat_amount,
            "totalFils": breakdown.total_amount,
        },
        "note": "VAT is calculated as an ADDITIONAL 5% charge on top of the subtotal, not included in product prices",
    }


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/api", tags=["orders"])


@order_router.get("/receipt/{order_id}")
async def get_receipt(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> dict:
    receipt = await lifecycle.get_receipt(order_id)
    order = receipt.order
    return {
        "success": True,
        "orderId": order_id,
        "receipt": base64.b64encode(receipt.svg.encode("utf-8")).decode("ascii"),
        "mimeType": "image/svg+xml",
        "format": "svg",
        "orderDetails": {
            **_order_details(order_id, order),
            "customerInfo": order.get("customerInfo") or order.get("metadata"),
            "shipping": order.get("shipping"),
        },
    }


@order_router.post("/orders/cash-on-delivery", status_code=201, response_model=CashOnDeliveryResponse)
async def create_cash_on_delivery_order(
    body: CheckoutRequest,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> CashOnDeliveryResponse:
    order_id, order = await lifecycle.create_cash_on_delivery_order(
        amount=body.amount,
        user_id=body.user_id,
        currency=body.currency,
        metadata=body.metadata,
        shipping=body.shipping_dict(),
        cart_items=body.cart_item_dicts(),
    )
    return CashOnDeliveryResponse(order_id=order_id, status=order["status"], total_amount=order["totalAmount"])


@order_router.post("/orders/{order_id}/send-email")
async def send_order_email(order_id: str, lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    order, result = await lifecycle.send_status_email(order_id)
    if result.success:
        return {
            "success": True,
            "message": "Order status email sent successfully",
            "orderId": order_id,
            "status": order.get("status"),
            "recipient": result.recipient,
            "emailSent": True,
            "messageId": result.message_id,
            "orderDetails": _order_details(order_id, order),
        }

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Failed to send email",
            "orderId": order_id,
            "status": order.get("status"),
            "reason": result.reason or result.error,
            "emailSent": False,
        },
    )
