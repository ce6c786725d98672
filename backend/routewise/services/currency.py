# Overview: Pure currency conversion helpers; no database access.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from ..errors import ValidationError

"""
Currency invariants

- Rates are always local units per 1 USD (HNL 26.31 means 1 USD = 26.31 HNL).
- Engine arithmetic is Decimal end to end; nothing is rounded until a value
  is persisted (to_cents) or displayed (round_to_unit).
- USD is the only foreign currency; conversion between two local
  currencies is not supported.
"""

USD = "USD"
CENT = Decimal("0.01")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Coerce int/float/str/Decimal into Decimal. Floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")


def _require_rate(rate) -> Decimal:
    r = to_decimal(rate, "exchange_rate")
    if r <= 0:
        raise ValidationError("exchange_rate must be positive")
    return r


def to_local(usd_amount, rate) -> Decimal:
    return to_decimal(usd_amount) * _require_rate(rate)


def to_usd(local_amount, rate) -> Decimal:
    return to_decimal(local_amount) / _require_rate(rate)


def convert(amount, from_currency: str, to_currency: str, rate) -> Decimal:
    """
    Convert between USD and a local currency.

    Identity when both codes match (rate is not even validated then).
    """
    src = (from_currency or "").upper()
    dst = (to_currency or "").upper()
    if src == dst:
        return to_decimal(amount)
    if src == USD:
        return to_local(amount, rate)
    if dst == USD:
        return to_usd(amount, rate)
    raise ValidationError(f"Cannot convert {src} to {dst} without a USD leg")


def round_to_unit(amount, unit) -> Decimal:
    """
    Round to the nearest multiple of `unit` (half-up).

    e.g. round_to_unit(5347, 100) -> 5300; round_to_unit(203.1, 5) -> 205.
    A non-positive unit leaves the amount untouched.
    """
    value = to_decimal(amount)
    u = to_decimal(unit, "unit")
    if u <= 0:
        return value
    steps = (value / u).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return steps * u


def to_cents(amount) -> int:
    """Decimal major units -> integer minor units, half-up."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents) -> Decimal:
    if cents is None:
        return Decimal("0.00")
    return (Decimal(int(cents)) / 100).quantize(CENT)


def quantize_money(amount) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
