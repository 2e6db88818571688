"""Tests for the additive UAE VAT calculation."""

import pytest
from ordering.order.vat import (
    TAX_REGISTRATION_NUMBER,
    VAT_PERCENTAGE,
    calculate_vat_breakdown,
    vat_from_inclusive,
)
from protean.exceptions import ValidationError


class TestCalculateVatBreakdown:
    def test_vat_is_five_percent_on_top_of_subtotal(self):
        breakdown = calculate_vat_breakdown(10000)
        assert breakdown.subtotal_amount == 10000
        assert breakdown.vat_amount == 500
        assert breakdown.total_amount == 10500

    def test_rate_fields(self):
        breakdown = calculate_vat_breakdown(10000)
        assert breakdown.vat_rate == 0.05
        assert breakdown.vat_percentage == VAT_PERCENTAGE == "5%"

    def test_half_fils_rounds_up(self):
        # 10 * 0.05 = 0.5 fils
        assert calculate_vat_breakdown(10).vat_amount == 1
        # 30 * 0.05 = 1.5 fils
        assert calculate_vat_breakdown(30).vat_amount == 2

    def test_below_half_rounds_down(self):
        # 9 * 0.05 = 0.45 fils
        assert calculate_vat_breakdown(9).vat_amount == 0

    def test_odd_subtotal(self):
        breakdown = calculate_vat_breakdown(12345)
        # 617.25 -> 617
        assert breakdown.vat_amount == 617
        assert breakdown.total_amount == 12962

    def test_zero_subtotal_is_allowed(self):
        breakdown = calculate_vat_breakdown(0)
        assert (breakdown.subtotal_amount, breakdown.vat_amount, breakdown.total_amount) == (0, 0, 0)

    @pytest.mark.parametrize("subtotal", [1, 19, 99, 12345, 999_999, 10_000_000])
    def test_total_is_always_subtotal_plus_vat(self, subtotal):
        breakdown = calculate_vat_breakdown(subtotal)
        assert breakdown.total_amount == breakdown.subtotal_amount + breakdown.vat_amount

    def test_negative_subtotal_rejected(self):
        with pytest.raises(ValidationError) as exc:
            calculate_vat_breakdown(-1)
        assert "subtotal" in exc.value.messages

    @pytest.mark.parametrize("subtotal", [100.5, "100", None, True])
    def test_non_integer_subtotal_rejected(self, subtotal):
        with pytest.raises(ValidationError):
            calculate_vat_breakdown(subtotal)

    def test_to_dict(self):
        assert calculate_vat_breakdown(200).to_dict() == {
            "subtotal_amount": 200,
            "vat_amount": 10,
            "total_amount": 210,
            "vat_rate": 0.05,
            "vat_percentage": "5%",
        }


class TestVatFromInclusive:
    def test_splits_inclusive_total(self):
        breakdown = vat_from_inclusive(10500)
        assert breakdown.subtotal_amount == 10000
        assert breakdown.vat_amount == 500
        assert breakdown.total_amount == 10500

    def test_parts_always_sum_to_total(self):
        breakdown = vat_from_inclusive(9999)
        assert breakdown.subtotal_amount + breakdown.vat_amount == 9999

    def test_negative_total_rejected(self):
        with pytest.raises(ValidationError):
            vat_from_inclusive(-5)


def test_tax_registration_number_is_fixed():
    assert TAX_REGISTRATION_NUMBER == "100123456789003"
