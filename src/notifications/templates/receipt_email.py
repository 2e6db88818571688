"""Receipt email template, sent with the PDF tax invoice once payment clears."""

from html import escape

BRAND = "Origins By The Sea"


class ReceiptEmailTemplate:
    template_key = "receipt"

    @staticmethod
    def render(context: dict) -> dict:
        order_id = str(context.get("order_id", "N/A"))
        name = context.get("customer_name") or "Valued Customer"
        currency = context.get("currency", "AED")
        subtotal = context.get("subtotal", "0.00")
        vat = context.get("vat", "0.00")
        total = context.get("total", "0.00")
        trn = context.get("trn", "")
        order_date = context.get("order_date", "")
        tracking_url = context.get("tracking_url", "")

        body = (
            f"Dear {name},\n\n"
            f"Thank you for shopping with {BRAND}. Your tax invoice for order "
            f"#{order_id.upper()} is attached.\n\n"
            f"Order date: {order_date}\n"
            f"Subtotal: {currency} {subtotal}\n"
            f"VAT (5%): {currency} {vat}\n"
            f"Total: {currency} {total}\n"
            f"TRN: {trn}\n\n"
            f"Track your order: {tracking_url}\n"
        )

        html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><title>Your Order Receipt</title></head>
<body style="margin:0;padding:0;background:#f9fafb;font-family:'Segoe UI',Arial,sans-serif;color:#1f2937;">
  <div style="max-width:600px;margin:0 auto;background:#ffffff;">
    <div style="background:linear-gradient(135deg,#e6994b,#c97a35);padding:40px 30px;text-align:center;color:#ffffff;">
      <h1 style="margin:0;font-size:28px;letter-spacing:1px;">{BRAND}</h1>
      <p style="margin:8px 0 0;opacity:0.9;">Luxury Beachwear Collection</p>
    </div>
    <div style="padding:30px;">
      <h2 style="margin-top:0;">Thank you for your order, {escape(name)}!</h2>
      <p>Your payment was received. Your tax invoice is attached to this email as a PDF.</p>
      <table style="width:100%;border-collapse:collapse;margin:20px 0;font-size:14px;">
        <tr><td style="padding:8px 0;color:#6b7280;">Order ID</td>
            <td style="padding:8px 0;text-align:right;font-family:monospace;">#{escape(order_id.upper())}</td></tr>
        <tr><td style="padding:8px 0;color:#6b7280;">Order Date</td>
            <td style="padding:8px 0;text-align:right;">{escape(order_date)}</td></tr>
        <tr><td style="padding:8px 0;color:#6b7280;">Subtotal</td>
            <td style="padding:8px 0;text-align:right;">{currency} {subtotal}</td></tr>
        <tr><td style="padding:8px 0;color:#dc2626;">VAT (5%)</td>
            <td style="padding:8px 0;text-align:right;color:#dc2626;">{currency} {vat}</td></tr>
        <tr><td style="padding:12px 0;font-weight:700;border-top:2px solid #e5e7eb;">Total (Including VAT)</td>
            <td style="padding:12px 0;text-align:right;font-weight:700;border-top:2px solid #e5e7eb;">{currency} {total}</td></tr>
      </table>
      <p style="font-size:12px;color:#9ca3af;">Tax Registration Number: {escape(trn)}</p>
      <p style="text-align:center;margin:30px 0;">
        <a href="{escape(tracking_url, quote=True)}" style="background:#d78a3f;color:#ffffff;padding:12px 28px;border-radius:6px;text-decoration:none;font-weight:600;">Track Your Order</a>
      </p>
    </div>
    <div style="background:#f9fafb;padding:20px;text-align:center;font-size:12px;color:#9ca3af;">
      Tax Invoice - Valid for VAT refund as per UAE Federal Tax Authority<br/>
      support@originbythesea.com
    </div>
  </div>
</body>
</html>"""

        return {
            "subject": f"Your Order Receipt - Order #{order_id.upper()}",
            "body": body,
            "html_body": html_body,
        }
