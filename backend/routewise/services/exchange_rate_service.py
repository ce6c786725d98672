# Overview: Service-layer operations for exchange rates; read-side lookup plus manual snapshots.

from __future__ import annotations

from decimal import Decimal

from ..errors import ValidationError
from ..extensions import db
from ..models import ExchangeRate
from ..time_utils import utcnow
from .currency import to_decimal
from .tenant_service import get_active_parameters


def resolve_rate(tenant_id: int, currency: str, rate_provider) -> Decimal:
    """
    Rate to freeze into a new document.

    A tenant-configured custom rate wins over the provider. A missing or
    non-positive rate is a validation failure, never a silent default.
    """
    code = (currency or "").upper()
    if code == "USD":
        return Decimal("1")

    params = get_active_parameters(tenant_id)
    if params and params.use_custom_exchange_rate and params.custom_exchange_rate:
        custom = to_decimal(params.custom_exchange_rate, "custom_exchange_rate")
        if custom > 0 and (params.local_currency or code).upper() == code:
            return custom

    quote = rate_provider.get_rate(code)
    if quote.rate is None or quote.rate <= 0:
        raise ValidationError(f"No exchange rate available for {code}")
    return quote.rate


def store_rates(rates: dict, *, source: str = "manual", fetched_at=None) -> ExchangeRate:
    """Append a new snapshot; existing documents are unaffected."""
    if not rates:
        raise ValidationError("rates are required")
    cleaned = {}
    for code, value in rates.items():
        rate = to_decimal(value, f"rate {code}")
        if rate <= 0:
            raise ValidationError(f"Rate for {code} must be positive")
        cleaned[code.upper()] = str(rate)

    snapshot = ExchangeRate(
        base_currency="USD",
        rates=cleaned,
        source=source,
        fetched_at=fetched_at or utcnow(),
    )
    db.session.add(snapshot)
    db.session.flush()
    return snapshot


def latest_snapshot() -> ExchangeRate | None:
    return (
        db.session.query(ExchangeRate)
        .order_by(ExchangeRate.fetched_at.desc(), ExchangeRate.id.desc())
        .first()
    )
