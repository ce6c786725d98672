# Overview: Service-layer operations for driver expense advances; lifecycle, settlement and suggestions.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import ConflictError, StateError, ValidationError
from ..extensions import db
from ..models import ExpenseAdvance, Itinerary, Quotation, Vehicle
from ..time_utils import utcnow
from . import numbering
from .audit_service import record_event, record_transition
from .concurrency import run_unit
from .costing import VehicleSpec, fuel_price_per_gallon
from .currency import from_cents, to_cents, to_decimal, to_usd
from .state_machines import ADVANCE_MACHINE, AdvanceStatus
from .tenant_service import get_active_parameters, get_owned

"""
Expense Advance Invariants

1. Every advance belongs to one itinerary; at most one non-cancelled advance
   per itinerary (a cancelled one does not block a replacement)
2. amount (local + USD) is frozen at creation using the itinerary's rate
3. Settlement: balance = amount - actual expenses
   (positive: driver owes the company, negative: company owes the driver)
4. balance_settled is a secondary flag, only set on settled advances
5. Only draft / pending / cancelled advances may be deleted
"""

ESTIMATE_FIELDS = ("fuel", "meals", "lodging", "tolls", "other")
DISBURSEMENT_METHODS = ("cash", "transfer", "check")
EDITABLE_STATUSES = (AdvanceStatus.DRAFT.value, AdvanceStatus.PENDING.value)
DELETABLE_STATUSES = (AdvanceStatus.DRAFT.value, AdvanceStatus.PENDING.value, AdvanceStatus.CANCELLED.value)

# Fraction of the tank a driver is expected to burn before refuelling
SAFE_TANK_FRACTION = Decimal("0.85")


def _cents(value, field: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer number of cents")
    try:
        cents = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer number of cents")
    if cents < 0:
        raise ValidationError(f"{field} cannot be negative")
    return cents


def get_expense_advance(tenant_id: int, advance_id: int) -> ExpenseAdvance:
    return get_owned(ExpenseAdvance, tenant_id, advance_id, label="Expense advance")


def list_expense_advances(
    tenant_id: int,
    *,
    status: str | None = None,
    itinerary_id: int | None = None,
    driver_id: int | None = None,
) -> list[ExpenseAdvance]:
    query = db.session.query(ExpenseAdvance).filter(ExpenseAdvance.tenant_id == tenant_id)
    if status:
        query = query.filter(ExpenseAdvance.status == ADVANCE_MACHINE.coerce(status).value)
    if itinerary_id:
        query = query.filter(ExpenseAdvance.itinerary_id == itinerary_id)
    if driver_id:
        query = query.filter(ExpenseAdvance.driver_id == driver_id)
    return query.order_by(ExpenseAdvance.created_at.desc(), ExpenseAdvance.id.desc()).all()


def create_expense_advance(
    tenant_id: int,
    itinerary_id: int,
    *,
    amount_cents: int | None = None,
    estimated_fuel_cents: int | None = None,
    estimated_meals_cents: int | None = None,
    estimated_lodging_cents: int | None = None,
    estimated_tolls_cents: int | None = None,
    estimated_other_cents: int | None = None,
    purpose: str | None = None,
    notes: str | None = None,
) -> ExpenseAdvance:
    """
    Create a draft advance for an itinerary's driver.

    The amount defaults to the sum of the estimated breakdown. The USD
    figure is frozen from the itinerary's exchange rate.
    """
    estimates = {
        "fuel": _cents(estimated_fuel_cents, "estimated_fuel_cents"),
        "meals": _cents(estimated_meals_cents, "estimated_meals_cents"),
        "lodging": _cents(estimated_lodging_cents, "estimated_lodging_cents"),
        "tolls": _cents(estimated_tolls_cents, "estimated_tolls_cents"),
        "other": _cents(estimated_other_cents, "estimated_other_cents"),
    }
    amount = _cents(amount_cents, "amount_cents") if amount_cents is not None else sum(estimates.values())
    if amount <= 0:
        raise ValidationError("Advance amount must be positive")

    def _op() -> ExpenseAdvance:
        itinerary = get_owned(Itinerary, tenant_id, itinerary_id, lock=True, label="Itinerary")
        active = (
            db.session.query(ExpenseAdvance.id)
            .filter(
                ExpenseAdvance.tenant_id == tenant_id,
                ExpenseAdvance.itinerary_id == itinerary.id,
                ExpenseAdvance.status != AdvanceStatus.CANCELLED.value,
            )
            .first()
        )
        if active:
            raise ConflictError("Expense advance already exists for this itinerary", {"advance_id": active[0]})

        number, _seq = numbering.allocate_document_number(
            tenant_id,
            numbering.EXPENSE_ADVANCE,
            client=itinerary.client,
            leader_name=itinerary.group_leader_name,
            group_size=itinerary.group_size,
        )
        advance = ExpenseAdvance(
            tenant_id=tenant_id,
            advance_number=number,
            itinerary_id=itinerary.id,
            driver_id=itinerary.driver_id,
            amount_cents=amount,
            amount_usd_cents=to_cents(to_usd(from_cents(amount), itinerary.exchange_rate)),
            local_currency=itinerary.local_currency,
            exchange_rate=itinerary.exchange_rate,
            purpose=(purpose or f"Gastos de viaje: {itinerary.origin} → {itinerary.destination}")[:255],
            status=AdvanceStatus.DRAFT.value,
            notes=notes,
            **{f"estimated_{k}_cents": v for k, v in estimates.items()},
        )
        db.session.add(advance)
        db.session.flush()
        record_event(
            tenant_id=tenant_id,
            entity_type="expense_advance",
            entity_id=advance.id,
            event_type="EXPENSE_ADVANCE_CREATED",
            to_status=advance.status,
            payload={"itinerary_id": itinerary.id, "amount_cents": amount},
        )
        return advance

    advance = run_unit(_op)
    current_app.logger.info("Expense advance %s created for itinerary %s", advance.advance_number, itinerary_id)
    return advance


def update_expense_advance(tenant_id: int, advance_id: int, *, reason: str | None = None, **changes) -> ExpenseAdvance:
    """
    Edit amount, estimates, purpose or notes while draft/pending.

    A new amount re-derives the USD figure from the frozen rate; the change
    is recorded with before/after figures.
    """
    allowed = {"amount_cents", "purpose", "notes"} | {f"estimated_{k}_cents" for k in ESTIMATE_FIELDS}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    def _op() -> ExpenseAdvance:
        advance = get_owned(ExpenseAdvance, tenant_id, advance_id, lock=True, label="Expense advance")
        if advance.status not in EDITABLE_STATUSES:
            raise StateError("Can only update draft or pending advances")

        before = {"amount_cents": advance.amount_cents, "amount_usd_cents": advance.amount_usd_cents}
        for key, value in changes.items():
            if key.endswith("_cents"):
                setattr(advance, key, _cents(value, key))
            elif key == "purpose":
                if not value or not str(value).strip():
                    raise ValidationError("purpose cannot be empty")
                advance.purpose = str(value).strip()[:255]
            else:
                advance.notes = value

        if "amount_cents" in changes:
            if advance.amount_cents <= 0:
                raise ValidationError("Advance amount must be positive")
            advance.amount_usd_cents = to_cents(to_usd(from_cents(advance.amount_cents), advance.exchange_rate))

        record_event(
            tenant_id=tenant_id,
            entity_type="expense_advance",
            entity_id=advance.id,
            event_type="EXPENSE_ADVANCE_UPDATED",
            note=reason,
            payload={
                "before": before,
                "after": {"amount_cents": advance.amount_cents, "amount_usd_cents": advance.amount_usd_cents},
                "fields": sorted(changes),
            },
        )
        return advance

    return run_unit(_op)


def _transition(tenant_id: int, advance_id: int, target: AdvanceStatus, mutate=None, note: str | None = None) -> ExpenseAdvance:
    def _op() -> ExpenseAdvance:
        advance = get_owned(ExpenseAdvance, tenant_id, advance_id, lock=True, label="Expense advance")
        from_status = advance.status
        ADVANCE_MACHINE.require(from_status, target)
        advance.status = target.value
        if mutate:
            mutate(advance)
        record_transition(advance, "expense_advance", from_status, target, note=note)
        return advance

    advance = run_unit(_op)
    current_app.logger.info("Expense advance %s -> %s", advance.advance_number, target.value)
    return advance


def submit_expense_advance(tenant_id: int, advance_id: int, *, now: datetime | None = None) -> ExpenseAdvance:
    now = now or utcnow()

    def _mutate(adv: ExpenseAdvance) -> None:
        adv.submitted_at = now

    return _transition(tenant_id, advance_id, AdvanceStatus.PENDING, _mutate)


def approve_expense_advance(
    tenant_id: int, advance_id: int, *, approved_by: str | None = None, now: datetime | None = None
) -> ExpenseAdvance:
    now = now or utcnow()

    def _mutate(adv: ExpenseAdvance) -> None:
        adv.approved_at = now
        adv.approved_by = approved_by

    return _transition(tenant_id, advance_id, AdvanceStatus.APPROVED, _mutate)


def disburse_expense_advance(
    tenant_id: int,
    advance_id: int,
    *,
    method: str,
    reference: str | None = None,
    now: datetime | None = None,
) -> ExpenseAdvance:
    if method not in DISBURSEMENT_METHODS:
        raise ValidationError(f"Invalid disbursement method '{method}'. Allowed: {', '.join(DISBURSEMENT_METHODS)}")
    now = now or utcnow()

    def _mutate(adv: ExpenseAdvance) -> None:
        adv.disbursed_at = now
        adv.disbursement_method = method
        adv.disbursement_reference = reference

    return _transition(tenant_id, advance_id, AdvanceStatus.DISBURSED, _mutate)


def settle_expense_advance(
    tenant_id: int,
    advance_id: int,
    *,
    actual_fuel_cents: int | None = None,
    actual_meals_cents: int | None = None,
    actual_lodging_cents: int | None = None,
    actual_tolls_cents: int | None = None,
    actual_other_cents: int | None = None,
    receipts_count: int | None = None,
    settlement_notes: str | None = None,
    settled_by: str | None = None,
    now: datetime | None = None,
) -> ExpenseAdvance:
    """Record actual expenses on a disbursed advance and compute the balance."""
    actuals = {
        "fuel": _cents(actual_fuel_cents, "actual_fuel_cents"),
        "meals": _cents(actual_meals_cents, "actual_meals_cents"),
        "lodging": _cents(actual_lodging_cents, "actual_lodging_cents"),
        "tolls": _cents(actual_tolls_cents, "actual_tolls_cents"),
        "other": _cents(actual_other_cents, "actual_other_cents"),
    }
    if receipts_count is not None and int(receipts_count) < 0:
        raise ValidationError("receipts_count cannot be negative")
    now = now or utcnow()

    def _mutate(adv: ExpenseAdvance) -> None:
        for key, value in actuals.items():
            setattr(adv, f"actual_{key}_cents", value)
        adv.actual_expenses_cents = sum(actuals.values())
        adv.balance_cents = adv.amount_cents - adv.actual_expenses_cents
        adv.balance_settled = False
        adv.receipts_count = int(receipts_count) if receipts_count is not None else None
        adv.settlement_notes = settlement_notes
        adv.settled_at = now
        adv.settled_by = settled_by

    return _transition(tenant_id, advance_id, AdvanceStatus.SETTLED, _mutate)


def settle_advance_balance(tenant_id: int, advance_id: int, *, notes: str | None = None) -> ExpenseAdvance:
    def _op() -> ExpenseAdvance:
        advance = get_owned(ExpenseAdvance, tenant_id, advance_id, lock=True, label="Expense advance")
        if advance.status != AdvanceStatus.SETTLED.value:
            raise StateError("Can only settle balance of settled advances")
        if advance.balance_settled:
            raise StateError("Balance already settled")
        advance.balance_settled = True
        if notes is not None:
            advance.settlement_notes = notes
        record_event(
            tenant_id=tenant_id,
            entity_type="expense_advance",
            entity_id=advance.id,
            event_type="EXPENSE_ADVANCE_BALANCE_SETTLED",
            payload={"balance_cents": advance.balance_cents},
        )
        return advance

    return run_unit(_op)


def cancel_expense_advance(
    tenant_id: int, advance_id: int, *, reason: str | None = None, now: datetime | None = None
) -> ExpenseAdvance:
    now = now or utcnow()

    def _mutate(adv: ExpenseAdvance) -> None:
        adv.cancelled_at = now
        adv.cancellation_reason = reason[:255] if reason else None

    return _transition(tenant_id, advance_id, AdvanceStatus.CANCELLED, _mutate, note=reason)


def delete_expense_advance(tenant_id: int, advance_id: int) -> None:
    def _op() -> None:
        advance = get_owned(ExpenseAdvance, tenant_id, advance_id, lock=True, label="Expense advance")
        if advance.status not in DELETABLE_STATUSES:
            raise StateError("Only draft, pending or cancelled advances can be deleted")
        record_event(
            tenant_id=tenant_id,
            entity_type="expense_advance",
            entity_id=advance.id,
            event_type="EXPENSE_ADVANCE_DELETED",
            from_status=advance.status,
            payload={"advance_number": advance.advance_number},
        )
        db.session.delete(advance)

    run_unit(_op)


def advance_stats(tenant_id: int) -> dict:
    advances = db.session.query(ExpenseAdvance).filter(ExpenseAdvance.tenant_id == tenant_id).all()
    by_status = {s.value: [a for a in advances if a.status == s.value] for s in AdvanceStatus}
    disbursed = by_status[AdvanceStatus.DISBURSED.value]
    settled = by_status[AdvanceStatus.SETTLED.value]
    unsettled = [a for a in settled if not a.balance_settled]
    return {
        "draft_count": len(by_status[AdvanceStatus.DRAFT.value]),
        "pending_count": len(by_status[AdvanceStatus.PENDING.value]),
        "approved_count": len(by_status[AdvanceStatus.APPROVED.value]),
        "disbursed_count": len(disbursed),
        "settled_count": len(settled),
        "unsettled_balances_count": len(unsettled),
        "total_disbursed_cents": sum(a.amount_cents for a in disbursed + settled),
        "total_outstanding_cents": sum(a.amount_cents for a in disbursed),
        "total_balance_owed_cents": sum(a.balance_cents or 0 for a in unsettled),
    }


# =============================================================================
# Suggestion
# =============================================================================


@dataclass(frozen=True)
class FuelAdvance:
    safe_range_km: Decimal
    extra_distance_km: Decimal
    extra_fuel_cost: Decimal

    @property
    def needed(self) -> bool:
        return self.extra_fuel_cost > 0


def extra_fuel_advance(distance_km, vehicle: VehicleSpec, price_per_gal) -> FuelAdvance | None:
    """
    Fuel cost beyond what one (85%) tank covers; the vehicle leaves full.

    Returns None when the vehicle has no usable efficiency or tank figure.
    """
    distance = to_decimal(distance_km, "distance_km")
    km_per_gal = vehicle.km_per_gallon if vehicle.fuel_efficiency > 0 else Decimal("0")
    tank = vehicle.tank_gallons
    if km_per_gal <= 0 or tank <= 0:
        return None

    safe_range = tank * SAFE_TANK_FRACTION * km_per_gal
    if distance <= safe_range:
        return FuelAdvance(safe_range, Decimal("0"), Decimal("0"))
    extra = distance - safe_range
    return FuelAdvance(safe_range, extra, extra / km_per_gal * to_decimal(price_per_gal))


def calculate_suggested_advance(tenant_id: int, itinerary_id: int) -> dict:
    """
    Advisory breakdown for a new advance; nothing is persisted.

    Meals, lodging and tolls come from the source quotation's frozen local
    figures. Fuel is the extra beyond a safe tank; when that cannot be
    computed it falls back to the quotation's fuel + refueling cost.
    """
    itinerary = get_owned(Itinerary, tenant_id, itinerary_id, label="Itinerary")
    quotation = (
        db.session.query(Quotation).filter_by(id=itinerary.quotation_id, tenant_id=tenant_id).first()
        if itinerary.quotation_id
        else None
    )
    vehicle = (
        db.session.query(Vehicle).filter_by(id=itinerary.vehicle_id, tenant_id=tenant_id).first()
        if itinerary.vehicle_id
        else None
    )
    params = get_active_parameters(tenant_id)

    fuel = Decimal("0")
    needs_fuel = False
    safe_range = None
    fuel_advance = None
    if vehicle is not None and params is not None and params.fuel_price is not None:
        price = fuel_price_per_gallon(params.fuel_price, params.fuel_price_unit or "gal")
        spec = VehicleSpec.from_vehicle(vehicle)
        fuel_advance = extra_fuel_advance(itinerary.total_distance_km, spec, price)

    if fuel_advance is not None:
        fuel = fuel_advance.extra_fuel_cost
        needs_fuel = fuel_advance.needed
        safe_range = fuel_advance.safe_range_km
    elif quotation is not None:
        fuel = from_cents(quotation.fuel_cost_cents + quotation.refueling_cost_cents)
        needs_fuel = fuel > 0

    meals = from_cents(quotation.driver_meals_cost_cents) if quotation else Decimal("0")
    lodging = from_cents(quotation.driver_lodging_cost_cents) if quotation else Decimal("0")
    tolls = from_cents(quotation.toll_cost_cents) if quotation else Decimal("0")
    days = itinerary.estimated_days or 1

    estimates = {
        "estimated_fuel_cents": to_cents(fuel),
        "estimated_meals_cents": to_cents(meals),
        "estimated_lodging_cents": to_cents(lodging),
        "estimated_tolls_cents": to_cents(tolls),
        "estimated_other_cents": 0,
    }
    return {
        **estimates,
        "total_suggested_cents": sum(estimates.values()),
        "needs_fuel_advance": needs_fuel,
        "safe_range_km": float(safe_range) if safe_range is not None else None,
        "days": days,
        "nights": max(0, days - 1),
        "local_currency": itinerary.local_currency,
        "exchange_rate": float(itinerary.exchange_rate),
    }
