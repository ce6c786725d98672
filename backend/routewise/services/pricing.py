# Overview: Markup/discount pricing engine; pure Decimal arithmetic.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import ValidationError
from .currency import round_to_unit, to_decimal, to_usd

DEFAULT_MARKUPS = (10, 15, 20, 25, 30)
DEFAULT_RECOMMENDED_MARKUP = 20

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PricingOption:
    markup_percentage: Decimal
    sale_price: Decimal
    sale_price_usd: Decimal
    profit: Decimal
    recommended: bool = False
    rounded_sale_price: Decimal | None = None
    rounded_sale_price_usd: Decimal | None = None

    def to_dict(self) -> dict:
        return {
            "markup_percentage": float(self.markup_percentage),
            "sale_price": float(self.sale_price),
            "sale_price_usd": float(self.sale_price_usd),
            "profit": float(self.profit),
            "recommended": self.recommended,
            "rounded_sale_price": float(self.rounded_sale_price) if self.rounded_sale_price is not None else None,
            "rounded_sale_price_usd": float(self.rounded_sale_price_usd) if self.rounded_sale_price_usd is not None else None,
        }


def sale_price_for(total_cost, markup) -> Decimal:
    return to_decimal(total_cost, "total_cost") * (1 + to_decimal(markup, "markup") / HUNDRED)


def generate_pricing_options(
    total_cost,
    rate,
    markups=DEFAULT_MARKUPS,
    recommended_markup=DEFAULT_RECOMMENDED_MARKUP,
    rounding_local=None,
    rounding_usd=None,
) -> list[PricingOption]:
    """
    One option per candidate markup: sale = cost x (1 + markup/100).

    Exactly one option is flagged recommended when `recommended_markup` is
    among the candidates. Rounded display prices are only attached when a
    rounding unit is supplied; the unrounded figures stay authoritative.
    """
    cost = to_decimal(total_cost, "total_cost")
    if cost < 0:
        raise ValidationError("total_cost cannot be negative")
    recommended = to_decimal(recommended_markup, "recommended_markup") if recommended_markup is not None else None

    options: list[PricingOption] = []
    for m in markups:
        markup = to_decimal(m, "markup")
        sale = sale_price_for(cost, markup)
        sale_usd = to_usd(sale, rate)
        options.append(
            PricingOption(
                markup_percentage=markup,
                sale_price=sale,
                sale_price_usd=sale_usd,
                profit=sale - cost,
                recommended=recommended is not None and markup == recommended,
                rounded_sale_price=round_to_unit(sale, rounding_local) if rounding_local else None,
                rounded_sale_price_usd=round_to_unit(sale_usd, rounding_usd) if rounding_usd else None,
            )
        )
    return options


def apply_client_discount(options: list[PricingOption], discount_pct) -> list[PricingOption]:
    """Scale already-marked-up prices by (1 - discount/100). Cost is untouched."""
    discount = to_decimal(discount_pct or 0, "discount_percentage")
    if discount < 0 or discount > 100:
        raise ValidationError("discount_percentage must be between 0 and 100")
    if discount == 0:
        return list(options)

    factor = 1 - discount / HUNDRED
    discounted = []
    for opt in options:
        cost = opt.sale_price - opt.profit
        sale = opt.sale_price * factor
        discounted.append(
            PricingOption(
                markup_percentage=opt.markup_percentage,
                sale_price=sale,
                sale_price_usd=opt.sale_price_usd * factor,
                profit=sale - cost,
                recommended=opt.recommended,
                rounded_sale_price=opt.rounded_sale_price * factor if opt.rounded_sale_price is not None else None,
                rounded_sale_price_usd=opt.rounded_sale_price_usd * factor if opt.rounded_sale_price_usd is not None else None,
            )
        )
    return discounted


def calculate_markup_from_price(cost, price) -> Decimal:
    c = to_decimal(cost, "cost")
    if c <= 0:
        raise ValidationError("cost must be positive")
    return (to_decimal(price, "price") - c) / c * HUNDRED


def calculate_profit(cost, price) -> dict:
    """Profit amount plus margin (on price) and markup (on cost) percentages."""
    c = to_decimal(cost, "cost")
    if c <= 0:
        raise ValidationError("cost must be positive")
    p = to_decimal(price, "price")
    profit = p - c
    margin = profit / p * HUNDRED if p != 0 else Decimal("0")
    return {
        "profit": profit,
        "margin_percentage": margin,
        "markup_percentage": profit / c * HUNDRED,
    }


def suggest_markup(distance_km, days: int, group_size: int) -> int:
    """
    Advisory default markup.

    Long or multi-day trips carry a lot of cost already, so they get the
    lowest markup; short hops and small groups get more.
    """
    distance = to_decimal(distance_km or 0, "distance_km")
    if distance >= 800 or (days or 0) >= 3:
        return 15
    if distance < 150:
        return 25
    if (group_size or 0) <= 4:
        return 22
    return 20
