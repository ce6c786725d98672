from __future__ import annotations

from datetime import datetime
from typing import Any

from .errors import ValidationError
from .services.currency import to_cents, to_decimal
from .time_utils import parse_timestamp

# Maximum document amount: 9,999,999.99 local units (999,999,999 cents)
# Keeps values inside a 32-bit column and rejects nonsensical input
MAX_AMOUNT_CENTS = 999_999_999


def json_body(request) -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def int_field(data: dict, key: str, default: int | None = None) -> int | None:
    """
    Strict integer parsing: floats, decimals and scientific notation are
    rejected rather than truncated.
    """
    value = data.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{key} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def cents_field(data: dict, key: str, legacy_key: str | None = None, *, required: bool = False) -> int | None:
    """
    Monetary input in integer cents.

    Older clients send the local amount in major units under a legacy
    `*_hnl` key; it is converted once here and never stored separately.
    """
    cents = int_field(data, key)
    if cents is None and legacy_key and data.get(legacy_key) not in (None, ""):
        cents = to_cents(to_decimal(data.get(legacy_key), legacy_key))
    if cents is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if cents < 0:
        raise ValidationError(f"{key} cannot be negative")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} exceeds the maximum allowed amount")
    return cents


def timestamp_field(data: dict, key: str, *, required: bool = False) -> datetime | None:
    value = data.get(key)
    try:
        parsed = parse_timestamp(value)
    except (TypeError, ValueError, OverflowError, OSError):
        raise ValidationError(f"{key} must be epoch milliseconds or an ISO-8601 timestamp")
    if parsed is None and required:
        raise ValidationError(f"{key} is required")
    return parsed


def bool_field(data: dict, key: str, default: bool) -> bool:
    value: Any = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def pick(data: dict, *keys: str) -> dict:
    """Subset of the payload with only the given keys that are present."""
    return {k: data[k] for k in keys if k in data}
