"""UAE VAT calculation.

VAT is always *additive*: callers pass the pre-tax subtotal in fils and the
tax is charged on top of it. ``vat_from_inclusive`` exists only for the
legacy breakdown endpoint that starts from a VAT-inclusive figure.

Rounding is half-up on the exact decimal product, so 0.5 fils always rounds
away from zero (``round(10 * 0.05)`` style banker's rounding is not used).
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError

VAT_RATE = Decimal("0.05")
VAT_PERCENTAGE = "5%"
TAX_REGISTRATION_NUMBER = "100123456789003"
TAX_COMPLIANCE_TAG = "UAE_VAT_5_PERCENT"

GUEST_USER_ID = "guest"


@dataclass(frozen=True)
class VatBreakdown:
    subtotal_amount: int
    vat_amount: int
    total_amount: int
    vat_rate: float
    vat_percentage: str

    def to_dict(self) -> dict:
        return asdict(self)


def _require_minor_units(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError({field: ["Must be an integer amount in fils"]})
    if value < 0:
        raise ValidationError({field: ["Must not be negative"]})
    return value


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_vat_breakdown(subtotal_amount: int) -> VatBreakdown:
    """Compute VAT on top of a pre-tax subtotal held in fils."""
    subtotal = _require_minor_units(subtotal_amount, "subtotal")
    vat = _round_half_up(Decimal(subtotal) * VAT_RATE)
    return VatBreakdown(
        subtotal_amount=subtotal,
        vat_amount=vat,
        total_amount=subtotal + vat,
        vat_rate=float(VAT_RATE),
        vat_percentage=VAT_PERCENTAGE,
    )


def vat_from_inclusive(total_amount: int) -> VatBreakdown:
    """Split a VAT-inclusive total back into subtotal and VAT."""
    total = _require_minor_units(total_amount, "amount")
    subtotal = _round_half_up(Decimal(total) / (1 + VAT_RATE))
    return VatBreakdown(
        subtotal_amount=subtotal,
        vat_amount=total - subtotal,
        total_amount=total,
        vat_rate=float(VAT_RATE),
        vat_percentage=VAT_PERCENTAGE,
    )
