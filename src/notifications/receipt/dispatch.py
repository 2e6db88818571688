"""Transactional order emails: the PDF receipt and status updates.

Both operations are best-effort side channels. They never raise: every
failure (PDF rendering, SMTP, bad data) comes back as a ``DispatchResult``
with ``success=False`` and is logged here.
"""

from dataclasses import asdict, dataclass
from datetime import UTC, datetime

import structlog

from notifications.channel.email_port import Attachment, EmailPort
from notifications.receipt.pdf import ReceiptPdfConverter
from notifications.receipt.svg import format_date, order_timestamp
from notifications.templates import get_template
from ordering.order.vat import TAX_REGISTRATION_NUMBER
from shared.errors import error_message
from shared.logging import mask_email
from shared.money import display_currency, format_minor

logger = structlog.get_logger(__name__)

GUEST_OR_NO_EMAIL = "Guest order or no email"
NO_EMAIL = "No email provided"


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    recipient: str | None = None
    order_id: str | None = None
    message_id: str | None = None
    reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


def is_guest_order(order: dict) -> bool:
    metadata = order.get("metadata") or {}
    return bool(
        order.get("isGuest")
        or metadata.get("isGuest")
        or metadata.get("isGuestCheckout")
        or order.get("isGuestOrder")
    )


def resolve_recipient(order: dict) -> str | None:
    customer = order.get("customerInfo") or {}
    metadata = order.get("metadata") or {}
    return (
        customer.get("email")
        or metadata.get("email")
        or metadata.get("customerEmail")
        or metadata.get("userEmail")
        or order.get("email")
        or None
    )


def resolve_customer_name(order: dict) -> str:
    customer = order.get("customerInfo") or {}
    metadata = order.get("metadata") or {}
    shipping = order.get("shipping") or {}
    return (
        customer.get("name")
        or customer.get("customerName")
        or metadata.get("customerName")
        or shipping.get("name")
        or "Valued Customer"
    )


def receipt_filename(order_id: str) -> str:
    return f"Tax-Invoice-{order_id}.pdf"


class ReceiptMailer:
    def __init__(self, channel: EmailPort, converter: ReceiptPdfConverter, site_url: str) -> None:
        self.channel = channel
        self.converter = converter
        self.site_url = site_url.rstrip("/")

    def tracking_url(self, order_id: str) -> str:
        return f"{self.site_url}/track-order?orderId={order_id}"

    async def send_receipt_email(self, order: dict, order_id: str, receipt_svg: str) -> DispatchResult:
        """Email the rendered receipt as a PDF attachment.

        Guest orders and orders without any resolvable address are skipped
        without touching the PDF converter or the transport.
        """
        recipient = resolve_recipient(order)
        guest = is_guest_order(order)
        logger.info(
            "receipt_email_check",
            order_id=order_id,
            is_guest=guest,
            email=mask_email(recipient),
        )
        if guest or not recipient:
            return DispatchResult(success=False, order_id=order_id, reason=GUEST_OR_NO_EMAIL)

        try:
            pdf = await self.converter.render(receipt_svg)
            content = get_template("receipt").render(
                {
                    "customer_name": resolve_customer_name(order),
                    "order_id": order_id,
                    "order_date": format_date(order_timestamp(datetime.now(UTC))),
                    "currency": display_currency(order.get("currency")),
                    "subtotal": format_minor(order.get("subtotalAmount")),
                    "vat": format_minor(order.get("vatAmount")),
                    "total": format_minor(order.get("totalAmount")),
                    "trn": order.get("taxRegistrationNumber") or TAX_REGISTRATION_NUMBER,
                    "tracking_url": self.tracking_url(order_id),
                }
            )
            outcome = await self.channel.send(
                to=recipient,
                subject=content["subject"],
                body=content["body"],
                html_body=content["html_body"],
                attachments=[Attachment(receipt_filename(order_id), pdf, "application/pdf")],
            )
        except Exception as exc:
            logger.error("receipt_email_failed", order_id=order_id, error=error_message(exc), exc_info=True)
            return DispatchResult(success=False, order_id=order_id, recipient=recipient, error=error_message(exc))

        if outcome.get("status") != "sent":
            logger.warning("receipt_email_rejected", order_id=order_id, error=outcome.get("error"))
            return DispatchResult(success=False, order_id=order_id, recipient=recipient, error=outcome.get("error"))

        logger.info(
            "receipt_email_sent",
            order_id=order_id,
            email=mask_email(recipient),
            message_id=outcome.get("message_id"),
            pdf_bytes=len(pdf),
        )
        return DispatchResult(
            success=True,
            order_id=order_id,
            recipient=recipient,
            message_id=outcome.get("message_id"),
        )

    async def send_order_status_email(self, order: dict, order_id: str) -> DispatchResult:
        """Email the customer the copy matching the order's current status."""
        recipient = resolve_recipient(order)
        if not recipient:
            logger.warning("status_email_no_recipient", order_id=order_id)
            return DispatchResult(success=False, order_id=order_id, reason=NO_EMAIL)

        status = order.get("status") or "pending"
        try:
            content = get_template("order_status").render(
                {
                    "customer_name": resolve_customer_name(order),
                    "order_id": order_id,
                    "order_date": format_date(order_timestamp(order.get("createdAt"))),
                    "currency": display_currency(order.get("currency")),
                    "total": format_minor(order.get("totalAmount")),
                    "status": status,
                    "items": order.get("items") or [],
                    "tracking_url": self.tracking_url(order_id),
                }
            )
            outcome = await self.channel.send(
                to=recipient,
                subject=content["subject"],
                body=content["body"],
                html_body=content["html_body"],
            )
        except Exception as exc:
            logger.error("status_email_failed", order_id=order_id, status=status, error=error_message(exc), exc_info=True)
            return DispatchResult(success=False, order_id=order_id, recipient=recipient, error=error_message(exc))

        if outcome.get("status") != "sent":
            return DispatchResult(success=False, order_id=order_id, recipient=recipient, error=outcome.get("error"))

        logger.info("status_email_sent", order_id=order_id, status=status, email=mask_email(recipient))
        return DispatchResult(
            success=True,
            order_id=order_id,
            recipient=recipient,
            message_id=outcome.get("message_id"),
        )
