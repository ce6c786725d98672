# Overview: Service-layer operations for the tenant's vehicles, drivers and clients; the inputs the cost engine prices against.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Client, Driver, Vehicle
from .concurrency import run_unit
from .costing import capacity_gallons, efficiency_km_per_gallon
from .currency import to_decimal
from .numbering import client_code_from_name
from .tenant_service import get_owned, get_tenant, require_tenant_operational

"""
Fleet & Client Records

1. Every row is tenant-owned; a foreign id raises NotFoundError
2. Records are never hard-deleted: quotations and itineraries keep pointing
   at them, so retiring one means status=inactive
3. Vehicle units must be ones the cost engine can normalize
4. Client codes are uppercase, at most 4 characters, unique per tenant
"""

ACTIVE = "active"
VEHICLE_STATUSES = (ACTIVE, "maintenance", "inactive")
RECORD_STATUSES = (ACTIVE, "inactive")
OWNERSHIP_TYPES = ("owned", "rented")
CLIENT_TYPES = ("individual", "company")
PRICING_LEVELS = ("standard", "preferred", "vip")

VEHICLE_FIELDS = (
    "name",
    "license_plate",
    "passenger_capacity",
    "fuel_capacity",
    "fuel_capacity_unit",
    "fuel_efficiency",
    "fuel_efficiency_unit",
    "cost_per_distance",
    "cost_per_day",
    "base_location",
    "ownership",
    "status",
)
DRIVER_FIELDS = ("first_name", "last_name", "phone", "license_number", "status")
CLIENT_FIELDS = (
    "type",
    "company_name",
    "first_name",
    "last_name",
    "code",
    "email",
    "pricing_level",
    "discount_percentage",
    "payment_terms_days",
    "status",
)


def _reject_unknown(changes: dict, allowed) -> None:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")


def _text(value, field: str, *, required: bool = False, max_len: int = 255) -> str | None:
    if value is None or not str(value).strip():
        if required:
            raise ValidationError(f"{field} is required")
        return None
    return str(value).strip()[:max_len]


def _choice(value, field: str, choices) -> str:
    normalized = str(value or "").strip().lower()
    if normalized not in choices:
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {', '.join(choices)}")
    return normalized


def _non_negative(value, field: str) -> Decimal:
    number = to_decimal(value, field)
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def _whole(value, field: str, *, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if number != value and not isinstance(value, str):
        raise ValidationError(f"{field} must be a whole number")
    if number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return number


# =============================================================================
# Vehicles
# =============================================================================


def _apply_vehicle_fields(vehicle: Vehicle, fields: dict) -> None:
    for key, value in fields.items():
        if key == "name":
            vehicle.name = _text(value, "name", required=True, max_len=120)
        elif key in ("license_plate", "base_location"):
            setattr(vehicle, key, _text(value, key))
        elif key == "passenger_capacity":
            vehicle.passenger_capacity = _whole(value, key, minimum=1)
        elif key in ("fuel_capacity", "fuel_efficiency", "cost_per_distance", "cost_per_day"):
            setattr(vehicle, key, _non_negative(value, key))
        elif key == "fuel_capacity_unit":
            unit = str(value or "gal").strip().lower()
            capacity_gallons(1, unit)
            vehicle.fuel_capacity_unit = unit
        elif key == "fuel_efficiency_unit":
            unit = str(value or "km/gal").strip().lower()
            efficiency_km_per_gallon(1, unit)
            vehicle.fuel_efficiency_unit = unit
        elif key == "ownership":
            vehicle.ownership = _choice(value, key, OWNERSHIP_TYPES)
        elif key == "status":
            vehicle.status = _choice(value, key, VEHICLE_STATUSES)


def create_vehicle(tenant_id: int, *, plan_limits, **fields) -> Vehicle:
    """
    Register a vehicle for the tenant.

    name, passenger_capacity, fuel figures and both cost rates are required;
    the tenant must be operational.
    """
    _reject_unknown(fields, VEHICLE_FIELDS)
    missing = [
        k
        for k in ("name", "passenger_capacity", "fuel_capacity", "fuel_efficiency", "cost_per_distance", "cost_per_day")
        if fields.get(k) in (None, "")
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    def _op() -> Vehicle:
        require_tenant_operational(get_tenant(tenant_id), plan_limits)
        vehicle = Vehicle(tenant_id=tenant_id)
        _apply_vehicle_fields(vehicle, {"fuel_capacity_unit": "gal", "fuel_efficiency_unit": "km/gal", **fields})
        db.session.add(vehicle)
        db.session.flush()
        return vehicle

    vehicle = run_unit(_op)
    current_app.logger.info("Vehicle %s registered for tenant %s", vehicle.name, tenant_id)
    return vehicle


def update_vehicle(tenant_id: int, vehicle_id: int, **changes) -> Vehicle:
    """Existing quotations keep their frozen costs; only new pricing sees the change."""
    _reject_unknown(changes, VEHICLE_FIELDS)

    def _op() -> Vehicle:
        vehicle = get_owned(Vehicle, tenant_id, vehicle_id, lock=True, label="Vehicle")
        _apply_vehicle_fields(vehicle, changes)
        return vehicle

    return run_unit(_op)


def get_vehicle(tenant_id: int, vehicle_id: int) -> Vehicle:
    return get_owned(Vehicle, tenant_id, vehicle_id, label="Vehicle")


def list_vehicles(tenant_id: int, *, status: str | None = None, min_capacity: int | None = None) -> list[Vehicle]:
    query = db.session.query(Vehicle).filter(Vehicle.tenant_id == tenant_id)
    if status:
        query = query.filter(Vehicle.status == _choice(status, "status", VEHICLE_STATUSES))
    if min_capacity is not None:
        query = query.filter(Vehicle.passenger_capacity >= min_capacity)
    return query.order_by(Vehicle.name.asc(), Vehicle.id.asc()).all()


# =============================================================================
# Drivers
# =============================================================================


def _apply_driver_fields(driver: Driver, fields: dict) -> None:
    for key, value in fields.items():
        if key in ("first_name", "last_name"):
            setattr(driver, key, _text(value, key, required=True, max_len=120))
        elif key == "status":
            driver.status = _choice(value, key, RECORD_STATUSES)
        else:
            setattr(driver, key, _text(value, key, max_len=64))


def create_driver(tenant_id: int, **fields) -> Driver:
    _reject_unknown(fields, DRIVER_FIELDS)

    def _op() -> Driver:
        get_tenant(tenant_id)
        driver = Driver(tenant_id=tenant_id)
        _apply_driver_fields(driver, {"first_name": None, "last_name": None, **fields})
        db.session.add(driver)
        db.session.flush()
        return driver

    return run_unit(_op)


def update_driver(tenant_id: int, driver_id: int, **changes) -> Driver:
    _reject_unknown(changes, DRIVER_FIELDS)

    def _op() -> Driver:
        driver = get_owned(Driver, tenant_id, driver_id, lock=True, label="Driver")
        _apply_driver_fields(driver, changes)
        return driver

    return run_unit(_op)


def get_driver(tenant_id: int, driver_id: int) -> Driver:
    return get_owned(Driver, tenant_id, driver_id, label="Driver")


def list_drivers(tenant_id: int, *, active_only: bool = False) -> list[Driver]:
    query = db.session.query(Driver).filter(Driver.tenant_id == tenant_id)
    if active_only:
        query = query.filter(Driver.status == ACTIVE)
    return query.order_by(Driver.last_name.asc(), Driver.first_name.asc()).all()


# =============================================================================
# Clients
# =============================================================================


def _normalize_code(code) -> str | None:
    cleaned = "".join(ch for ch in str(code or "") if ch.isalnum()).upper()[:4]
    return cleaned or None


def _apply_client_fields(client: Client, fields: dict) -> None:
    for key, value in fields.items():
        if key == "type":
            client.type = _choice(value, key, CLIENT_TYPES)
        elif key == "pricing_level":
            client.pricing_level = _choice(value, key, PRICING_LEVELS)
        elif key == "status":
            client.status = _choice(value, key, RECORD_STATUSES)
        elif key == "discount_percentage":
            discount = _non_negative(value, key)
            if discount > 100:
                raise ValidationError("discount_percentage cannot exceed 100")
            client.discount_percentage = discount
        elif key == "payment_terms_days":
            client.payment_terms_days = None if value is None else _whole(value, key)
        elif key == "code":
            client.code = _normalize_code(value)
        else:
            setattr(client, key, _text(value, key))

    if client.type == "company" and not client.company_name:
        raise ValidationError("company_name is required for company clients")
    if client.type == "individual" and not (client.first_name or client.last_name):
        raise ValidationError("first_name or last_name is required for individual clients")


def _ensure_unique_code(client: Client) -> None:
    if not client.code:
        return
    clash = (
        db.session.query(Client.id)
        .filter(Client.tenant_id == client.tenant_id, Client.code == client.code, Client.id != client.id)
        .first()
    )
    if clash:
        raise ConflictError(f"Client code {client.code} is already in use", {"client_id": clash.id})


def create_client(tenant_id: int, **fields) -> Client:
    """
    Add a client; without an explicit code one is derived from the display
    name (e.g. "Hotel Real" -> HORE).
    """
    _reject_unknown(fields, CLIENT_FIELDS)

    def _op() -> Client:
        get_tenant(tenant_id)
        client = Client(tenant_id=tenant_id, type="company", pricing_level="standard", status=ACTIVE)
        _apply_client_fields(client, fields)
        if not client.code:
            client.code = _normalize_code(client_code_from_name(client.display_name))
        _ensure_unique_code(client)
        db.session.add(client)
        db.session.flush()
        return client

    return run_unit(_op)


def update_client(tenant_id: int, client_id: int, **changes) -> Client:
    _reject_unknown(changes, CLIENT_FIELDS)

    def _op() -> Client:
        client = get_owned(Client, tenant_id, client_id, lock=True, label="Client")
        _apply_client_fields(client, changes)
        _ensure_unique_code(client)
        return client

    return run_unit(_op)


def get_client(tenant_id: int, client_id: int) -> Client:
    return get_owned(Client, tenant_id, client_id, label="Client")


def list_clients(tenant_id: int, *, status: str | None = None) -> list[Client]:
    query = db.session.query(Client).filter(Client.tenant_id == tenant_id)
    if status:
        query = query.filter(Client.status == _choice(status, "status", RECORD_STATUSES))
    return query.order_by(Client.id.asc()).all()
