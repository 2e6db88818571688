"""Order status template, one email per order status, with a generic fallback."""

from html import escape

_STATUS_COPY = {
    "pending": {
        "subject": "Order Confirmation - Order #{order_id}",
        "heading": "Thank You for Your Order!",
        "message": (
            "We've received your order and it's being processed. "
            "You'll receive another email once your order has been confirmed."
        ),
        "color": "#f59e0b",
        "background": "#fef3c7",
        "label": "PENDING",
    },
    "confirmed": {
        "subject": "Order Confirmed - Order #{order_id}",
        "heading": "Your Order is Confirmed!",
        "message": (
            "Great news! Your order has been confirmed and is being prepared for shipment. "
            "We'll notify you once it's on its way."
        ),
        "color": "#3b82f6",
        "background": "#dbeafe",
        "label": "CONFIRMED",
    },
    "paid": {
        "subject": "Payment Received - Order #{order_id}",
        "heading": "Payment Successfully Processed!",
        "message": (
            "Your payment has been received and confirmed. Your order is now being prepared for shipment."
        ),
        "color": "#10b981",
        "background": "#d1fae5",
        "label": "PAID",
    },
    "processing": {
        "subject": "Order Processing - Order #{order_id}",
        "heading": "We're Preparing Your Order!",
        "message": (
            "Your order is currently being processed and prepared. "
            "We're working hard to get it ready for shipment."
        ),
        "color": "#8b5cf6",
        "background": "#ede9fe",
        "label": "PROCESSING",
    },
    "shipped": {
        "subject": "Order Shipped - Order #{order_id}",
        "heading": "Your Order is On Its Way!",
        "message": (
            "Exciting news! Your order has been shipped and is on its way to you. "
            "Track your shipment using the link below."
        ),
        "color": "#0ea5e9",
        "background": "#e0f2fe",
        "label": "SHIPPED",
    },
    "delivered": {
        "subject": "Order Delivered - Order #{order_id}",
        "heading": "Your Order Has Been Delivered!",
        "message": (
            "Your order has been successfully delivered. We hope you love your new beachwear! "
            "Thank you for shopping with us."
        ),
        "color": "#10b981",
        "background": "#d1fae5",
        "label": "DELIVERED",
    },
    "cancelled": {
        "subject": "Order Cancelled - Order #{order_id}",
        "heading": "Your Order Has Been Cancelled",
        "message": (
            "Your order has been cancelled as requested. If you have any questions or this was "
            "done in error, please contact our support team."
        ),
        "color": "#ef4444",
        "background": "#fee2e2",
        "label": "CANCELLED",
    },
    "refunded": {
        "subject": "Order Refunded - Order #{order_id}",
        "heading": "Your Refund Has Been Processed",
        "message": (
            "Your refund has been successfully processed. The amount will be credited to your "
            "original payment method within 5-10 business days."
        ),
        "color": "#f59e0b",
        "background": "#fef3c7",
        "label": "REFUNDED",
    },
    "partially_refunded": {
        "subject": "Partial Refund Processed - Order #{order_id}",
        "heading": "Your Partial Refund Has Been Processed",
        "message": (
            "A partial refund has been processed for your order. The amount will be credited to "
            "your original payment method within 5-10 business days."
        ),
        "color": "#f59e0b",
        "background": "#fef3c7",
        "label": "PARTIALLY REFUNDED",
    },
}


def status_copy(status: str) -> dict:
    return _STATUS_COPY.get(
        status,
        {
            "subject": "Order Update - Order #{order_id}",
            "heading": "Order Status Update",
            "message": "There has been an update to your order status.",
            "color": "#6b7280",
            "background": "#f3f4f6",
            "label": status.upper(),
        },
    )


def _item_rows(items: list[dict], currency: str) -> str:
    rows = []
    for item in items:
        details = ""
        if item.get("size"):
            details += f'<br/><span style="color:#6b7280;font-size:12px;">Size: {escape(str(item["size"]))}</span>'
        if item.get("color"):
            details += f'<br/><span style="color:#6b7280;font-size:12px;">Color: {escape(str(item["color"]))}</span>'
        rows.append(
            f'<tr style="border-bottom:1px solid #e5e7eb;">'
            f'<td style="padding:15px;"><strong>{escape(str(item.get("name") or "Item"))}</strong>{details}</td>'
            f'<td style="padding:15px;text-align:center;">{int(item.get("quantity") or 1)}</td>'
            f'<td style="padding:15px;text-align:right;">{currency} {escape(str(item.get("price") or ""))}</td>'
            f"</tr>"
        )
    return "".join(rows)


class OrderStatusTemplate:
    template_key = "order_status"

    @staticmethod
    def render(context: dict) -> dict:
        status = context.get("status") or "pending"
        order_id = str(context.get("order_id", "N/A"))
        name = context.get("customer_name") or "Valued Customer"
        currency = context.get("currency", "AED")
        total = context.get("total", "0.00")
        order_date = context.get("order_date", "")
        tracking_url = context.get("tracking_url", "")
        copy = status_copy(status)

        body = (
            f"Dear {name},\n\n"
            f"{copy['heading']}\n{copy['message']}\n\n"
            f"Order #{order_id.upper()} ({order_date})\n"
            f"Status: {copy['label']}\n"
            f"Total: {currency} {total}\n\n"
            f"Track your order: {tracking_url}\n"
        )

        html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><title>{escape(copy["heading"])}</title></head>
<body style="margin:0;padding:0;background:#f9fafb;font-family:'Segoe UI',Arial,sans-serif;color:#1f2937;">
  <div style="max-width:600px;margin:0 auto;background:#ffffff;">
    <div style="background:linear-gradient(135deg,#e6994b,#c97a35);padding:36px 30px;text-align:center;color:#ffffff;">
      <h1 style="margin:0;font-size:26px;">Origins By The Sea</h1>
    </div>
    <div style="padding:30px;">
      <p style="display:inline-block;padding:6px 16px;border-radius:16px;background:{copy["background"]};color:{copy["color"]};font-weight:700;">{escape(copy["label"])}</p>
      <h2>{escape(copy["heading"])}</h2>
      <p>Dear {escape(name)},</p>
      <p>{escape(copy["message"])}</p>
      <p style="color:#6b7280;">Order <span style="font-family:monospace;">#{escape(order_id.upper())}</span> &middot; {escape(order_date)}</p>
      <table style="width:100%;border-collapse:collapse;font-size:14px;">
        <tr style="background:#f3f4f6;"><th style="padding:10px;text-align:left;">Item</th><th style="padding:10px;">Qty</th><th style="padding:10px;text-align:right;">Price</th></tr>
        {_item_rows(context.get("items") or [], currency)}
      </table>
      <p style="text-align:right;font-size:16px;font-weight:700;">Total: {currency} {total}</p>
      <p style="text-align:center;margin:30px 0;">
        <a href="{escape(tracking_url, quote=True)}" style="background:#d78a3f;color:#ffffff;padding:12px 28px;border-radius:6px;text-decoration:none;font-weight:600;">Track Your Order</a>
      </p>
    </div>
  </div>
</body>
</html>"""

        return {
            "subject": copy["subject"].format(order_id=order_id.upper()),
            "body": body,
            "html_body": html_body,
        }
