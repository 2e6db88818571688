"""Helpers for amounts held in minor currency units (fils)."""

from decimal import ROUND_HALF_UP, Decimal

DISPLAY_CURRENCY = "AED"
DEFAULT_CURRENCY = "aed"


def to_major(minor: int | float | None) -> Decimal:
    return (Decimal(int(minor or 0)) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_major(amount: Decimal | float | int) -> str:
    """Two decimal places, half-up."""
    return str(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_minor(minor: int | float | None) -> str:
    """``10500`` -> ``"105.00"``"""
    return format_major(to_major(minor))


def display_currency(currency: str | None) -> str:
    return (currency or DISPLAY_CURRENCY).upper()
