"""Tax invoice rendered as a standalone SVG document.

Pure functions of the stored order document (camelCase keys); no I/O. The
page is 800 units wide and grows by ``ROW_HEIGHT`` per line item. Every piece
of caller-supplied text goes through ``escape_xml`` before interpolation.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ordering.order.order import parse_price
from ordering.order.vat import TAX_REGISTRATION_NUMBER, VAT_RATE
from shared.money import format_major, to_major

WIDTH = 800
HEADER_HEIGHT = 200
ORDER_INFO_HEIGHT = 160
CUSTOMER_SHIPPING_HEIGHT = 140
ITEMS_HEADER_HEIGHT = 50
ROW_HEIGHT = 60
SUMMARY_HEIGHT = 240
FOOTER_HEIGHT = 140
SPACING = 20

FIRST_ROW_Y = 610

BRAND = "Origins By The Sea"
TAGLINE = "Luxury Beachwear Collection"

# Invoices are dated in UAE local time (UTC+4, no DST)
GULF_TIME = timezone(timedelta(hours=4), "GST")

_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}


def escape_xml(value) -> str:
    if value is None:
        return ""
    return "".join(_XML_ESCAPES.get(char, char) for char in str(value))


def receipt_height(item_count: int) -> int:
    return (
        HEADER_HEIGHT
        + ORDER_INFO_HEIGHT
        + SPACING
        + CUSTOMER_SHIPPING_HEIGHT
        + SPACING
        + ITEMS_HEADER_HEIGHT
        + item_count * ROW_HEIGHT
        + SPACING
        + SUMMARY_HEIGHT
        + SPACING
        + FOOTER_HEIGHT
    )


def order_timestamp(value) -> datetime:
    """Stored timestamps may be datetimes, ISO strings or missing."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            moment = datetime.now(timezone.utc)
    else:
        moment = datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(GULF_TIME)


def format_date(moment: datetime) -> str:
    return f"{moment:%B} {moment.day}, {moment.year}"


def format_time(moment: datetime) -> str:
    return moment.strftime("%I:%M %p")


def receipt_totals(order: dict) -> tuple[Decimal, Decimal, Decimal]:
    """Subtotal, VAT and total in major units.

    Prefers the amounts stored at checkout; orders written without them fall
    back to summing the line items and applying the fixed rate.
    """
    items = order.get("items") or []
    calculated = sum(
        (Decimal(str(parse_price(item.get("price")))) * int(item.get("quantity") or 1) for item in items),
        Decimal("0"),
    )
    stored_subtotal = order.get("subtotalAmount") or 0
    stored_vat = order.get("vatAmount") or 0

    subtotal = to_major(stored_subtotal) if stored_subtotal > 0 else calculated
    vat = to_major(stored_vat) if stored_vat > 0 else subtotal * VAT_RATE
    return subtotal, vat, subtotal + vat


def _item_rows(items: list[dict]) -> str:
    rows = []
    for index, item in enumerate(items):
        y = FIRST_ROW_Y + index * ROW_HEIGHT
        price = Decimal(str(parse_price(item.get("price"))))
        quantity = int(item.get("quantity") or 1)
        fill = "#ffffff" if index % 2 == 0 else "#f9fafb"
        separators = "".join(
            f'<line x1="{x}" y1="{y}" x2="{x}" y2="{y + ROW_HEIGHT}" stroke="#d1d5db" stroke-width="1"/>'
            for x in (280, 360, 480, 570, 660)
        )
        if item.get("displayColor"):
            swatch = (
                f'<circle cx="420" cy="{y + 30}" r="7" fill="{escape_xml(item["displayColor"])}" '
                f'stroke="#9ca3af" stroke-width="1.5"/>'
            )
        else:
            swatch = f'<text x="420" y="{y + 35}" font-size="11" fill="#9ca3af" text-anchor="middle">-</text>'

        rows.append(
            f"""
  <rect x="40" y="{y}" width="720" height="{ROW_HEIGHT}" fill="{fill}" stroke="#e5e7eb" stroke-width="1"/>
  {separators}
  <text x="55" y="{y + 35}" font-size="11" font-weight="600" fill="#1f2937">{escape_xml(item.get("name"))}</text>
  <text x="320" y="{y + 35}" font-size="11" fill="#374151" text-anchor="middle">{escape_xml(item.get("size") or "-")}</text>
  {swatch}
  <text x="525" y="{y + 35}" font-size="11" fill="#374151" text-anchor="middle">{quantity}</text>
  <text x="650" y="{y + 35}" font-size="11" fill="#374151" text-anchor="end">AED {format_major(price)}</text>
  <text x="750" y="{y + 35}" font-size="12" font-weight="600" fill="#1f2937" text-anchor="end">AED {format_major(price * quantity)}</text>"""
        )
    return "".join(rows)


def _customer_block(customer: dict, shipping: dict) -> str:
    address = shipping.get("address") or {}
    if address:
        locality = f"{address.get('city') or ''}, {address.get('state') or ''} {address.get('postal_code') or ''}"
    else:
        locality = ""
    name = customer.get("customerName") or shipping.get("name") or "Guest User"
    phone = shipping.get("phone") or customer.get("phone") or ""
    line1 = address.get("line1") or customer.get("address") or "N/A"

    return f"""
  <rect x="40" y="380" width="350" height="140" fill="#f9fafb" rx="10" stroke="#e5e7eb" stroke-width="1"/>
  <text x="60" y="410" font-size="13" font-weight="700" fill="#374151">CUSTOMER</text>
  <text x="60" y="435" font-size="14" font-weight="500" fill="#1f2937">{escape_xml(name)}</text>
  <text x="60" y="460" font-size="13" fill="#6b7280">{escape_xml(customer.get("email") or "N/A")}</text>
  <text x="60" y="483" font-size="13" fill="#6b7280">{escape_xml(phone)}</text>

  <rect x="410" y="380" width="350" height="140" fill="#f9fafb" rx="10" stroke="#e5e7eb" stroke-width="1"/>
  <text x="430" y="410" font-size="13" font-weight="700" fill="#374151">SHIPPING ADDRESS</text>
  <text x="430" y="435" font-size="14" font-weight="500" fill="#1f2937">{escape_xml(line1)}</text>
  <text x="430" y="458" font-size="13" fill="#6b7280">{escape_xml(address.get("line2") or "")}</text>
  <text x="430" y="481" font-size="13" fill="#6b7280">{escape_xml(locality)}</text>
  <text x="430" y="503" font-size="13" font-weight="500" fill="#374151">{escape_xml(address.get("country") or "")}</text>"""


def _summary_block(base: int, subtotal, vat, total, vat_percentage: str, trn: str) -> str:
    return f"""
  <rect x="40" y="{base + 20}" width="720" height="220" fill="#ffffff" rx="12" stroke="#e5e7eb" stroke-width="1" filter="url(#shadow)"/>
  <text x="60" y="{base + 55}" font-size="15" fill="#6b7280">Subtotal (Before VAT)</text>
  <text x="740" y="{base + 55}" font-size="15" fill="#6b7280" text-anchor="end">AED {format_major(subtotal)}</text>
  <text x="60" y="{base + 85}" font-size="15" fill="#6b7280">Shipping</text>
  <text x="740" y="{base + 85}" font-size="15" font-weight="700" fill="#10b981" text-anchor="end">FREE</text>
  <text x="60" y="{base + 115}" font-size="15" font-weight="600" fill="#dc2626">VAT ({escape_xml(vat_percentage)})</text>
  <text x="740" y="{base + 115}" font-size="15" font-weight="600" fill="#dc2626" text-anchor="end">AED {format_major(vat)}</text>
  <text x="60" y="{base + 140}" font-size="11" fill="#9ca3af">Tax Registration No: {escape_xml(trn)}</text>
  <text x="740" y="{base + 140}" font-size="10" fill="#9ca3af" text-anchor="end">VAT Compliant - UAE FTA</text>
  <line x1="60" y1="{base + 155}" x2="740" y2="{base + 155}" stroke="#e5e7eb" stroke-width="2"/>
  <rect x="60" y="{base + 170}" width="680" height="50" fill="url(#totalGradient)" rx="8"/>
  <text x="80" y="{base + 198}" font-size="18" font-weight="700" fill="#92400e">TOTAL (Including VAT)</text>
  <text x="720" y="{base + 202}" font-size="26" font-weight="800" fill="#92400e" text-anchor="end">AED {format_major(total)}</text>"""


def _footer_block(base: int) -> str:
    return f"""
  <rect x="40" y="{base + 240}" width="720" height="120" fill="#f9fafb" rx="10"/>
  <text x="400" y="{base + 270}" font-size="16" font-weight="700" fill="#1f2937" text-anchor="middle">{BRAND}</text>
  <text x="400" y="{base + 293}" font-size="13" fill="#6b7280" text-anchor="middle">Thank you for your purchase!</text>
  <text x="400" y="{base + 316}" font-size="11" fill="#9ca3af" text-anchor="middle">Tax Invoice - Valid for VAT refund as per UAE Federal Tax Authority</text>
  <text x="400" y="{base + 338}" font-size="11" fill="#9ca3af" text-anchor="middle">For support, visit originbythesea.com or email support@originbythesea.com</text>"""


def render_receipt_svg(order: dict, order_id: str) -> str:
    """Render the tax invoice for a stored order document."""
    items = order.get("items") or []
    customer = order.get("customerInfo") or order.get("metadata") or {}
    shipping = order.get("shipping") or {}
    trn = order.get("taxRegistrationNumber") or TAX_REGISTRATION_NUMBER
    vat_percentage = order.get("vatPercentage") or "5%"
    status = (order.get("status") or "pending").upper()

    created = order_timestamp(order.get("createdAt"))
    height = receipt_height(len(items))
    summary_base = FIRST_ROW_Y + len(items) * ROW_HEIGHT
    subtotal, vat, total = receipt_totals(order)

    header_columns = "".join(
        f'<line x1="{x}" y1="565" x2="{x}" y2="605" stroke="#d1d5db" stroke-width="1"/>'
        for x in (280, 360, 480, 570, 660)
    )

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" width="{WIDTH}" height="{height}" viewBox="0 0 {WIDTH} {height}">
  <defs>
    <style>
      @import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700;800&amp;display=swap');
      text {{ font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; }}
    </style>
    <linearGradient id="headerGradient" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:#e6994b;stop-opacity:1" />
      <stop offset="50%" style="stop-color:#d78a3f;stop-opacity:1" />
      <stop offset="100%" style="stop-color:#c97a35;stop-opacity:1" />
    </linearGradient>
    <linearGradient id="totalGradient" x1="0%" y1="0%" x2="100%" y2="0%">
      <stop offset="0%" style="stop-color:#fef3c7;stop-opacity:1" />
      <stop offset="100%" style="stop-color:#fde68a;stop-opacity:1" />
    </linearGradient>
    <filter id="shadow">
      <feDropShadow dx="0" dy="2" stdDeviation="4" flood-opacity="0.1"/>
    </filter>
  </defs>

  <rect width="{WIDTH}" height="{height}" fill="#ffffff"/>

  <rect width="{WIDTH}" height="180" fill="url(#headerGradient)" filter="url(#shadow)"/>
  <text x="400" y="70" font-size="36" font-weight="800" fill="#ffffff" text-anchor="middle" letter-spacing="1">TAX INVOICE</text>
  <text x="400" y="105" font-size="16" fill="#ffffff" opacity="0.95" text-anchor="middle">{BRAND}</text>
  <text x="400" y="130" font-size="12" fill="#ffffff" opacity="0.85" text-anchor="middle">{TAGLINE}</text>
  <text x="400" y="155" font-size="11" fill="#ffffff" opacity="0.9" text-anchor="middle">TRN: {escape_xml(trn)} | VAT Registered</text>

  <rect x="40" y="200" width="720" height="160" fill="#ffffff" rx="12" stroke="#e5e7eb" stroke-width="1" filter="url(#shadow)"/>
  <text x="60" y="230" font-size="12" font-weight="600" fill="#9ca3af" letter-spacing="1">ORDER ID</text>
  <text x="60" y="255" font-size="16" font-weight="700" fill="#1f2937" font-family="monospace">{escape_xml(str(order_id).upper())}</text>
  <text x="60" y="290" font-size="12" font-weight="600" fill="#9ca3af" letter-spacing="1">DATE &amp; TIME</text>
  <text x="60" y="315" font-size="15" font-weight="500" fill="#1f2937">{escape_xml(format_date(created))}</text>
  <text x="60" y="338" font-size="13" fill="#6b7280">{escape_xml(format_time(created))}</text>
  <rect x="620" y="220" width="120" height="32" fill="#d1fae5" rx="16"/>
  <text x="680" y="242" font-size="13" font-weight="700" fill="#065f46" text-anchor="middle">{escape_xml(status)}</text>
{_customer_block(customer, shipping)}

  <text x="40" y="550" font-size="16" font-weight="700" fill="#1f2937">ORDER ITEMS</text>
  <rect x="40" y="560" width="720" height="1" fill="#d1d5db"/>
  <rect x="40" y="565" width="720" height="40" fill="#f3f4f6" stroke="#d1d5db" stroke-width="1"/>
  <text x="55" y="590" font-size="10" font-weight="700" fill="#6b7280" letter-spacing="0.5">PRODUCT</text>
  <text x="320" y="590" font-size="10" font-weight="700" fill="#6b7280" text-anchor="middle" letter-spacing="0.5">SIZE</text>
  <text x="420" y="590" font-size="10" font-weight="700" fill="#6b7280" text-anchor="middle" letter-spacing="0.5">COLOR</text>
  <text x="525" y="590" font-size="10" font-weight="700" fill="#6b7280" text-anchor="middle" letter-spacing="0.5">QTY</text>
  <text x="650" y="590" font-size="10" font-weight="700" fill="#6b7280" text-anchor="end" letter-spacing="0.5">UNIT PRICE</text>
  <text x="750" y="590" font-size="10" font-weight="700" fill="#6b7280" text-anchor="end" letter-spacing="0.5">TOTAL</text>
  {header_columns}
{_item_rows(items)}
{_summary_block(summary_base, subtotal, vat, total, vat_percentage, trn)}
{_footer_block(summary_base)}

  <rect x="0" y="0" width="{WIDTH}" height="{height}" fill="none" stroke="#e5e7eb" stroke-width="2" rx="4"/>
</svg>"""
