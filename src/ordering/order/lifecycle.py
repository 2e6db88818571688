"""Order lifecycle: checkout, payment webhooks, refunds and receipts.

``OrderLifecycle`` is the single place that coordinates the order store, the
payment gateway and the receipt mailer. Its collaborators are handed in once
at startup (see ``container.build_services``).

Error policy:
    Money-moving steps (order creation, intent creation, refunds, the status
    update a webhook exists for) propagate their errors. Bookkeeping that
    follows a settled payment (payment record, refund record, cart clear,
    emails) is logged and swallowed: it must never undo or hide a payment the
    gateway already considers complete.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from notifications.jobs import BackgroundJobs
from notifications.receipt.dispatch import DispatchResult, ReceiptMailer
from notifications.receipt.svg import render_receipt_svg
from ordering.order.order import Order
from ordering.order.vat import (
    GUEST_USER_ID,
    TAX_COMPLIANCE_TAG,
    TAX_REGISTRATION_NUMBER,
    VatBreakdown,
    calculate_vat_breakdown,
)
from ordering.store.port import OrderStore, refund_record_key
from payments.gateway.port import PaymentGateway, PaymentIntent, RefundResult
from shared.errors import error_message
from shared.money import DEFAULT_CURRENCY, format_minor

logger = structlog.get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"


@dataclass(frozen=True)
class CheckoutIntent:
    client_secret: str
    payment_intent_id: str
    order_id: str
    breakdown: VatBreakdown


@dataclass(frozen=True)
class WebhookOutcome:
    event_type: str
    action: str
    order_id: str | None = None


@dataclass(frozen=True)
class RefundOutcome:
    refund: RefundResult
    order_id: str | None
    order_status: str | None


@dataclass(frozen=True)
class Receipt:
    order_id: str
    order: dict
    svg: str


def _require_amount(value, field: str, message: str | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError({field: [message or "Must be a positive integer amount in fils"]})
    return value


def intent_description(breakdown: VatBreakdown) -> str:
    return (
        f"Subtotal: {format_minor(breakdown.subtotal_amount)} + "
        f"VAT ({breakdown.vat_percentage}): {format_minor(breakdown.vat_amount)} = "
        f"Total: {format_minor(breakdown.total_amount)} AED"
    )


def tax_metadata(metadata: dict, order_id: str, user_id: str, breakdown: VatBreakdown) -> dict:
    """Checkout metadata plus the order reference and tax fields the gateway keeps."""
    return {
        **metadata,
        "orderId": order_id,
        "userId": user_id,
        "vatAmount": str(breakdown.vat_amount),
        "vatRate": breakdown.vat_percentage,
        "subtotalAmount": str(breakdown.subtotal_amount),
        "taxRegistrationNumber": TAX_REGISTRATION_NUMBER,
        "taxCompliant": TAX_COMPLIANCE_TAG,
    }


class OrderLifecycle:
    def __init__(
        self,
        store: OrderStore,
        gateway: PaymentGateway,
        mailer: ReceiptMailer,
        jobs: BackgroundJobs,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.mailer = mailer
        self.jobs = jobs

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    async def create_payment_intent(
        self,
        amount,
        user_id,
        currency: str | None = None,
        metadata: dict | None = None,
        shipping: dict | None = None,
        cart_items: list | None = None,
    ) -> CheckoutIntent:
        """Create a pending order, then a payment intent for its VAT-inclusive total.

        ``amount`` is the pre-tax subtotal in fils. If the gateway call fails
        the order stays ``pending``; a retry creates a new pending order.
        """
        if not user_id:
            raise ValidationError({"userId": ["Missing required parameters: amount and userId"]})
        _require_amount(amount, "amount")
        currency = (currency or DEFAULT_CURRENCY).lower()
        metadata = dict(metadata or {})

        breakdown = calculate_vat_breakdown(amount)
        order = Order.create_pending(
            user_id=user_id,
            breakdown=breakdown,
            items_data=cart_items,
            currency=currency,
            shipping=shipping,
            metadata=metadata,
        )
        order_id = str(order.id)
        order.metadata = {**metadata, "orderId": order_id, "userId": str(user_id)}
        await self.store.create_pending_order(order.to_document(), order_id=order_id)
        logger.info(
            "pending_order_created",
            order_id=order_id,
            subtotal=breakdown.subtotal_amount,
            vat=breakdown.vat_amount,
            total=breakdown.total_amount,
        )

        try:
            intent = await self.gateway.create_payment_intent(
                amount=breakdown.total_amount,
                currency=currency,
                metadata=tax_metadata(metadata, order_id, str(user_id), breakdown),
                shipping=shipping,
                description=intent_description(breakdown),
            )
        except Exception:
            logger.warning("payment_intent_failed_order_left_pending", order_id=order_id)
            raise

        order.attach_payment_intent(intent.id)
        await self.store.update_order(order_id, order.document_fields("paymentIntentId", "updatedAt"))
        logger.info("payment_intent_created", order_id=order_id, payment_intent_id=intent.id)

        return CheckoutIntent(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            order_id=order_id,
            breakdown=breakdown,
        )

    async def create_cash_on_delivery_order(
        self,
        amount,
        user_id,
        currency: str | None = None,
        metadata: dict | None = None,
        shipping: dict | None = None,
        cart_items: list | None = None,
    ) -> tuple[str, dict]:
        """Cash orders go straight to ``processing``; no payment intent is created."""
        if not user_id:
            raise ValidationError({"userId": ["is required"]})
        _require_amount(amount, "amount")

        breakdown = calculate_vat_breakdown(amount)
        order = Order.create_cash_on_delivery(
            user_id=user_id,
            breakdown=breakdown,
            items_data=cart_items,
            currency=currency,
            shipping=shipping,
            metadata=metadata,
        )
        order_id = str(order.id)
        order.metadata = {**order.metadata, "orderId": order_id, "userId": str(user_id)}
        document = order.to_document()
        await self.store.create_pending_order(document, order_id=order_id)
        logger.info("cash_on_delivery_order_created", order_id=order_id, total=breakdown.total_amount)

        if str(user_id) != GUEST_USER_ID:
            await self._best_effort("clear_cart", self.store.clear_cart(str(user_id)), order_id=order_id)
        self.jobs.submit(
            "order_status_email",
            self.mailer.send_order_status_email(document, order_id),
            order_id=order_id,
        )
        return order_id, document

    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        if not payment_intent_id:
            raise ValidationError({"paymentIntentId": ["Payment intent ID is required"]})
        return await self.gateway.retrieve_payment_intent(payment_intent_id)

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    async def refund_payment(
        self,
        payment_intent_id: str,
        amount: int | None = None,
        reason: str | None = None,
    ) -> RefundOutcome:
        """Refund the intent's captured charge, fully when ``amount`` is None.

        The order must already be ``paid`` (or partially refunded). A charge
        captured at the gateway whose ``payment_intent.succeeded`` webhook has
        not been applied yet is refused with ``ValidationError`` and no money
        moves; the refund has to be retried once the webhook lands.
        """
        if not payment_intent_id:
            raise ValidationError({"paymentIntentId": ["Payment intent ID is required"]})
        if amount is not None:
            _require_amount(amount, "amount")

        intent = await self.gateway.retrieve_payment_intent(payment_intent_id)
        if not intent.latest_charge:
            raise ValidationError({"paymentIntentId": ["No charge to refund"]})

        order = None
        order_id = intent.order_id
        if order_id:
            document = await self.store.get_order(order_id)
            if document is None:
                logger.warning("refund_order_missing", order_id=order_id, payment_intent_id=payment_intent_id)
            else:
                order = Order.from_document(order_id, document)

        already_refunded = (order.refund_amount or 0) if order else 0
        refunded_total = intent.amount if amount is None else min(already_refunded + amount, intent.amount)
        full_refund = refunded_total >= intent.amount
        # Validate against the order before any money moves
        if order is not None and not order.record_refund(None, refunded_total, full_refund):
            raise ValidationError({"paymentIntentId": ["Order has already been refunded"]})

        refund = await self.gateway.create_refund(intent.latest_charge, amount=amount, reason=reason)
        logger.info(
            "refund_created",
            refund_id=refund.id,
            payment_intent_id=payment_intent_id,
            amount=amount,
            full_refund=full_refund,
        )

        if order is None:
            return RefundOutcome(refund=refund, order_id=order_id, order_status=None)

        order.refund_id = refund.id
        await self.store.update_order(
            order_id,
            order.document_fields("status", "refundId", "refundAmount", "updatedAt"),
        )
        return RefundOutcome(refund=refund, order_id=order_id, order_status=order.status)

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    async def handle_webhook(self, payload: bytes, signature_header: str | None) -> WebhookOutcome:
        """Verify and apply a gateway event.

        ``SignatureError`` propagates before anything is read or written.
        Events that reference unknown orders are acknowledged with a warning
        so the gateway does not retry them.
        """
        event = self.gateway.construct_event(payload, signature_header)
        log = logger.bind(event_id=event.id, event_type=event.type)
        log.info("webhook_received")

        if event.type == PAYMENT_SUCCEEDED:
            return await self._payment_succeeded(event.type, PaymentIntent.from_payload(event.data_object))
        if event.type == PAYMENT_FAILED:
            return await self._payment_failed(event.type, PaymentIntent.from_payload(event.data_object))
        if event.type == CHARGE_REFUNDED:
            return await self._charge_refunded(event.type, event.data_object)

        log.info("webhook_event_ignored")
        return WebhookOutcome(event_type=event.type, action="ignored")

    async def _load_for_intent(self, event_type: str, intent: PaymentIntent) -> tuple[str, dict] | WebhookOutcome:
        order_id = intent.order_id
        if not order_id:
            logger.warning("webhook_missing_order_id", event_type=event_type, payment_intent_id=intent.id)
            return WebhookOutcome(event_type=event_type, action="missing_order_id")
        document = await self.store.get_order(order_id)
        if document is None:
            logger.warning("webhook_order_not_found", event_type=event_type, order_id=order_id)
            return WebhookOutcome(event_type=event_type, action="order_not_found", order_id=order_id)
        return order_id, document

    async def _payment_succeeded(self, event_type: str, intent: PaymentIntent) -> WebhookOutcome:
        loaded = await self._load_for_intent(event_type, intent)
        if isinstance(loaded, WebhookOutcome):
            return loaded
        order_id, document = loaded

        try:
            order = Order.from_document(order_id, document)
            changed = order.mark_paid(intent.to_payment_data(), intent.payment_method)
        except ValidationError as exc:
            logger.warning("webhook_transition_rejected", order_id=order_id, error=error_message(exc))
            return WebhookOutcome(event_type=event_type, action="rejected", order_id=order_id)

        if not changed:
            logger.info("payment_already_recorded", order_id=order_id)
            return WebhookOutcome(event_type=event_type, action="duplicate", order_id=order_id)

        fields = order.document_fields("status", "paymentData", "paymentMethod", "updatedAt")
        await self.store.update_order(order_id, fields)
        logger.info("order_paid", order_id=order_id, amount=intent.amount)

        await self._best_effort(
            "record_payment",
            self.store.record_payment(
                order_id,
                {
                    "orderId": order_id,
                    "paymentIntentId": intent.id,
                    "amount": intent.amount,
                    "currency": intent.currency,
                    "status": "succeeded",
                    "paymentMethod": intent.payment_method,
                    "createdAt": datetime.now(UTC),
                    "metadata": intent.metadata,
                },
            ),
            order_id=order_id,
        )

        user_id = str(order.user_id or "")
        if user_id and user_id != GUEST_USER_ID:
            await self._best_effort("clear_cart", self.store.clear_cart(user_id), order_id=order_id)

        paid_document = {**document, **fields}
        self.jobs.submit("receipt_email", self._email_receipt(order_id, paid_document), order_id=order_id)
        return WebhookOutcome(event_type=event_type, action="paid", order_id=order_id)

    async def _payment_failed(self, event_type: str, intent: PaymentIntent) -> WebhookOutcome:
        loaded = await self._load_for_intent(event_type, intent)
        if isinstance(loaded, WebhookOutcome):
            return loaded
        order_id, document = loaded

        try:
            order = Order.from_document(order_id, document)
            changed = order.mark_payment_failed(intent.to_payment_data())
        except ValidationError as exc:
            logger.warning("webhook_transition_rejected", order_id=order_id, error=error_message(exc))
            return WebhookOutcome(event_type=event_type, action="rejected", order_id=order_id)

        if not changed:
            return WebhookOutcome(event_type=event_type, action="duplicate", order_id=order_id)

        await self.store.update_order(order_id, order.document_fields("status", "paymentData", "updatedAt"))
        logger.info("order_payment_failed", order_id=order_id)
        return WebhookOutcome(event_type=event_type, action="payment_failed", order_id=order_id)

    async def _charge_refunded(self, event_type: str, charge: dict) -> WebhookOutcome:
        charge_id = charge.get("id")
        if not charge_id:
            logger.warning("webhook_refund_without_charge")
            return WebhookOutcome(event_type=event_type, action="missing_charge")

        found = await self.store.find_order_by_charge_id(charge_id)
        if found is None:
            logger.warning("webhook_order_not_found_for_charge", charge_id=charge_id)
            return WebhookOutcome(event_type=event_type, action="order_not_found")
        order_id, document = found

        amount = int(charge.get("amount") or 0)
        amount_refunded = int(charge.get("amount_refunded") or 0)
        full_refund = amount_refunded >= amount
        refunds = (charge.get("refunds") or {}).get("data") or []
        latest_refund = refunds[0] if refunds else {}

        try:
            order = Order.from_document(order_id, document)
            changed = order.record_refund(latest_refund.get("id"), amount_refunded, full_refund)
        except ValidationError as exc:
            logger.warning("webhook_transition_rejected", order_id=order_id, error=error_message(exc))
            return WebhookOutcome(event_type=event_type, action="rejected", order_id=order_id)

        if changed:
            fields = ["status", "refundAmount", "updatedAt"]
            if latest_refund.get("id"):
                fields.append("refundId")
            await self.store.update_order(order_id, order.document_fields(*fields))
            logger.info("order_refunded", order_id=order_id, amount_refunded=amount_refunded, status=order.status)

        await self._best_effort(
            "record_refund",
            self.store.record_refund(
                refund_record_key(charge_id, amount_refunded),
                {
                    "orderId": order_id,
                    "chargeId": charge_id,
                    "amount": amount_refunded,
                    "currency": charge.get("currency"),
                    "reason": latest_refund.get("reason"),
                    "status": order.status,
                    "createdAt": datetime.now(UTC),
                },
            ),
            order_id=order_id,
        )
        return WebhookOutcome(event_type=event_type, action=order.status if changed else "duplicate", order_id=order_id)

    # -------------------------------------------------------------------
    # Receipts and emails
    # -------------------------------------------------------------------
    async def get_receipt(self, order_id: str) -> Receipt:
        """Render the receipt and schedule the receipt email in the background."""
        document = await self._require_order(order_id)
        svg = render_receipt_svg(document, order_id)
        self.jobs.submit(
            "receipt_email",
            self.mailer.send_receipt_email(document, order_id, svg),
            order_id=order_id,
        )
        return Receipt(order_id=order_id, order=document, svg=svg)

    async def send_status_email(self, order_id: str) -> tuple[dict, DispatchResult]:
        document = await self._require_order(order_id)
        return document, await self.mailer.send_order_status_email(document, order_id)

    async def _require_order(self, order_id: str) -> dict:
        if not order_id:
            raise ValidationError({"orderId": ["Order ID is required"]})
        document = await self.store.get_order(order_id)
        if document is None:
            raise ObjectNotFoundError({"_entity": "Order not found"})
        return document

    async def _email_receipt(self, order_id: str, document: dict) -> DispatchResult:
        try:
            svg = render_receipt_svg(document, order_id)
        except Exception as exc:
            logger.error("receipt_render_failed", order_id=order_id, error=error_message(exc), exc_info=True)
            return DispatchResult(success=False, order_id=order_id, error=error_message(exc))
        return await self.mailer.send_receipt_email(document, order_id, svg)

    async def _best_effort(self, operation: str, awaitable, **context):
        try:
            return await awaitable
        except Exception as exc:
            logger.error("side_effect_failed", operation=operation, error=error_message(exc), exc_info=True, **context)
            return None
