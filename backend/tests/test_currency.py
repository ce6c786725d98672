# Overview: Pytest coverage for currency conversion and money rounding helpers.

from decimal import Decimal

import pytest

from routewise.errors import ValidationError
from routewise.services.currency import (
    convert,
    from_cents,
    quantize_money,
    round_to_unit,
    to_cents,
    to_decimal,
    to_local,
    to_usd,
)


class TestConversion:
    def test_local_per_usd(self):
        assert to_usd(Decimal("5340"), Decimal("25")) == Decimal("213.6")
        assert to_local(Decimal("100"), Decimal("26.31")) == Decimal("2631.00")

    def test_convert_identity_skips_rate(self):
        assert convert(Decimal("10"), "HNL", "hnl", None) == Decimal("10")

    def test_convert_both_directions(self):
        assert convert(2, "USD", "HNL", 25) == Decimal("50")
        assert convert(50, "HNL", "USD", 25) == Decimal("2")

    def test_convert_without_usd_leg_rejected(self):
        with pytest.raises(ValidationError):
            convert(10, "HNL", "GTQ", 25)

    @pytest.mark.parametrize("rate", [0, -1, None, "abc"])
    def test_non_positive_or_missing_rate_rejected(self, rate):
        with pytest.raises(ValidationError):
            to_usd(100, rate)

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_bool_is_not_a_number(self):
        with pytest.raises(ValidationError):
            to_decimal(True)


class TestRounding:
    def test_round_to_unit(self):
        assert round_to_unit(5347, 100) == Decimal("5300")
        assert round_to_unit(5350, 100) == Decimal("5400")
        assert round_to_unit(Decimal("203.1"), 5) == Decimal("205")

    def test_non_positive_unit_leaves_amount(self):
        assert round_to_unit(Decimal("12.34"), 0) == Decimal("12.34")

    def test_cents_half_up(self):
        assert to_cents(Decimal("0.005")) == 1
        assert to_cents(Decimal("213.6")) == 21360
        assert to_cents(Decimal("6141")) == 614100

    def test_from_cents(self):
        assert from_cents(614100) == Decimal("6141.00")
        assert from_cents(None) == Decimal("0.00")

    def test_quantize_money(self):
        assert quantize_money(Decimal("1.005")) == Decimal("1.01")
