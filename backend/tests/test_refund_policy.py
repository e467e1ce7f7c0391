"""
Tests for the refund formula and the shared cancellation rule.
"""

from decimal import Decimal

import pytest

from flightledger.services.refund_policy import (
    ADMIN_CANCEL_LABEL,
    MAX_AMOUNT,
    USER_CANCEL_LABEL,
    apply_cancellation_policy,
    cancellation_label,
    class_multiplier,
    compute_refund,
    parse_amount,
)
from flightledger.utils.exceptions import MissingFields


class TestComputeRefund:
    """price x multiplier x 1.18 + 250, rounded to cents."""

    @pytest.mark.parametrize("class_type,expected", [
        ("Economy", Decimal("1430.00")),
        ("Business", Decimal("2020.00")),
        ("First", Decimal("2610.00")),
        ("Premium", Decimal("1430.00")),
        (None, Decimal("1430.00")),
    ])
    def test_class_multipliers(self, class_type, expected):
        assert compute_refund(Decimal("1000"), class_type) == expected

    def test_case_insensitive_class(self):
        assert class_multiplier("business") == Decimal("1.5")

    def test_zero_price_still_pays_flat_fee(self):
        assert compute_refund(Decimal("0"), "Economy") == Decimal("250.00")

    def test_rounds_half_up(self):
        # 0.01 * 1.18 = 0.0118 -> 250.0118 -> 250.01
        assert compute_refund(Decimal("0.01"), "Economy") == Decimal("250.01")
        # 0.05 * 1.5 * 1.18 = 0.0885 -> 250.0885 -> 250.09
        assert compute_refund(Decimal("0.05"), "Business") == Decimal("250.09")


class TestParseAmount:
    """Monetary input normalization."""

    @pytest.mark.parametrize("raw,expected", [
        (None, Decimal("0.00")),
        ("abc", Decimal("0.00")),
        ("NaN", Decimal("0.00")),
        ("Infinity", Decimal("0.00")),
        (True, Decimal("0.00")),
        ("  125.5 ", Decimal("125.50")),
        (99, Decimal("99.00")),
        (-50, Decimal("-50.00")),
        (10.005, Decimal("10.01")),
    ])
    def test_parse(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["1e30", "-1e30", "100000000", Decimal("99999999.995")])
    def test_out_of_range(self, raw):
        with pytest.raises(MissingFields, match="out of range"):
            parse_amount(raw)

    def test_upper_bound_accepted(self):
        assert parse_amount(MAX_AMOUNT) == Decimal("99999999.99")
        assert parse_amount("1e-30") == Decimal("0.00")

    def test_refund_of_largest_price(self):
        assert compute_refund(MAX_AMOUNT, "First") == Decimal("236000249.98")


class TestCancellationPolicy:
    """Role-dependent money effect."""

    def test_user_deduction_floors_at_zero(self, alice):
        adjustment = apply_cancellation_policy(alice, Decimal("1000"), Decimal("2020"))

        assert adjustment.deduction == Decimal("1000.00")
        assert adjustment.price == Decimal("0.00")
        assert adjustment.charge == Decimal("0.00")

    def test_user_partial_deduction(self, alice):
        adjustment = apply_cancellation_policy(alice, Decimal("1000"), Decimal("-300"))

        assert adjustment.deduction == Decimal("300.00")
        assert adjustment.price == Decimal("700.00")
        assert adjustment.charge == Decimal("700.00")

    def test_admin_positive_amount_is_extra_charge(self, admin):
        adjustment = apply_cancellation_policy(admin, Decimal("1000"), Decimal("200"))

        assert adjustment.price == Decimal("1000.00")
        assert adjustment.deduction == Decimal("0.00")
        assert adjustment.charge == Decimal("200.00")

    @pytest.mark.parametrize("amount", [Decimal("-50"), 0, None, "garbage"])
    def test_admin_never_deducts(self, admin, amount):
        adjustment = apply_cancellation_policy(admin, Decimal("1000"), amount)

        assert adjustment.price == Decimal("1000.00")
        assert adjustment.deduction == Decimal("0.00")
        assert adjustment.charge == Decimal("0.00")


class TestCancellationLabel:
    """Reason labels."""

    def test_defaults_by_role(self, admin, alice):
        assert cancellation_label(admin) == ADMIN_CANCEL_LABEL == "Cancelled by admin"
        assert cancellation_label(alice) == USER_CANCEL_LABEL == "cancelled by user"

    def test_supplied_reason_wins(self, alice):
        assert cancellation_label(alice, "  change of plans ") == "change of plans"

    def test_blank_reason_falls_back(self, admin):
        assert cancellation_label(admin, "   ") == "Cancelled by admin"
