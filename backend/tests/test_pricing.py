# Overview: Pytest coverage for markup options, client discounts and profit figures.

from decimal import Decimal

import pytest

from routewise.errors import ValidationError
from routewise.services.costing import combine_costs
from routewise.services.pricing import (
    DEFAULT_MARKUPS,
    apply_client_discount,
    calculate_markup_from_price,
    calculate_profit,
    generate_pricing_options,
    suggest_markup,
)


class TestPricingOptions:
    def test_quote_total_and_sale_price(self):
        total = combine_costs(
            fuel_cost=500,
            refueling_cost=50,
            driver_meals_cost=150,
            driver_lodging_cost=0,
            driver_incentive_cost=200,
            vehicle_distance_cost=1250,
            vehicle_daily_cost=2000,
            toll_cost=300,
        )
        assert total == Decimal("4450")

        [option] = generate_pricing_options(total, Decimal("25"), [20])
        assert option.sale_price == Decimal("5340")
        assert option.sale_price_usd == Decimal("213.6")
        assert option.profit == Decimal("890")
        assert option.recommended is True

    def test_one_option_per_markup_and_single_recommendation(self):
        options = generate_pricing_options(Decimal("1000"), Decimal("25"))
        assert [o.markup_percentage for o in options] == [Decimal(m) for m in DEFAULT_MARKUPS]
        assert [o.recommended for o in options].count(True) == 1
        assert options[2].sale_price == Decimal("1200")

    def test_no_recommendation_outside_candidates(self):
        options = generate_pricing_options(Decimal("1000"), Decimal("25"), [10, 30], recommended_markup=20)
        assert not any(o.recommended for o in options)

    def test_rounded_prices_only_with_units(self):
        [plain] = generate_pricing_options(Decimal("4450"), Decimal("25"), [20])
        assert plain.rounded_sale_price is None

        [rounded] = generate_pricing_options(
            Decimal("4450"), Decimal("25"), [20], rounding_local=100, rounding_usd=5
        )
        assert rounded.rounded_sale_price == Decimal("5300")
        assert rounded.rounded_sale_price_usd == Decimal("215")
        assert rounded.sale_price == Decimal("5340")

    def test_negative_cost_rejected(self):
        with pytest.raises(ValidationError):
            generate_pricing_options(Decimal("-1"), Decimal("25"))

    def test_zero_rate_rejected(self):
        with pytest.raises(ValidationError):
            generate_pricing_options(Decimal("100"), Decimal("0"))


class TestClientDiscount:
    def test_discount_scales_price_not_cost(self):
        options = generate_pricing_options(Decimal("1000"), Decimal("25"), [20])
        [discounted] = apply_client_discount(options, 10)
        assert discounted.sale_price == Decimal("1080")
        assert discounted.profit == Decimal("80")
        assert discounted.sale_price_usd == Decimal("43.2")

    def test_zero_discount_is_identity(self):
        options = generate_pricing_options(Decimal("1000"), Decimal("25"), [20])
        assert apply_client_discount(options, 0) == options

    @pytest.mark.parametrize("pct", [-1, 101])
    def test_out_of_range_rejected(self, pct):
        options = generate_pricing_options(Decimal("1000"), Decimal("25"), [20])
        with pytest.raises(ValidationError):
            apply_client_discount(options, pct)


class TestProfit:
    def test_markup_recovered_from_price(self):
        assert calculate_markup_from_price(Decimal("4450"), Decimal("5340")) == Decimal("20")

    def test_profit_margin_and_markup(self):
        result = calculate_profit(Decimal("1000"), Decimal("1250"))
        assert result["profit"] == Decimal("250")
        assert result["margin_percentage"] == Decimal("20")
        assert result["markup_percentage"] == Decimal("25")

    def test_zero_cost_rejected(self):
        with pytest.raises(ValidationError):
            calculate_profit(0, 100)


class TestSuggestMarkup:
    @pytest.mark.parametrize(
        "distance,days,group,expected",
        [
            (900, 1, 10, 15),
            (300, 3, 10, 15),
            (100, 1, 10, 25),
            (300, 1, 4, 22),
            (300, 1, 12, 20),
        ],
    )
    def test_suggestions(self, distance, days, group, expected):
        assert suggest_markup(distance, days, group) == expected
