# Overview: Service-layer operations for quotations; costing, pricing, freezing and lifecycle.

"""
Quotation Service

WHY: The quotation is where a trip estimate becomes money. At creation the
cost engine and pricing engine run once, the exchange rate is resolved
once, and every component is frozen in local cents and USD cents. Nothing
later (new parameters, new rates) changes those numbers except an explicit
reprice while the quotation is still a draft.

LIFECYCLE: see state_machines.QUOTATION_MACHINE
SIDE EFFECTS (after commit, never rolling back the transition):
- send: schedule follow-up reminders
- approve: skip pending follow-ups, notify quotation_approved
- reject / expire: skip pending follow-ups
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app

from ..collaborators import NotificationEvent
from ..errors import StateError, ValidationError
from ..extensions import db
from ..models import Client, Itinerary, Quotation, Vehicle
from ..time_utils import utcnow
from . import numbering, reminder_service
from .audit_service import record_event, record_transition
from .concurrency import fire_side_effect, run_unit
from .costing import (
    CostBreakdown,
    CostInputs,
    DriverPerDiem,
    HondurasTollEstimator,
    VehicleSpec,
    calculate_costs,
)
from .currency import to_cents, to_decimal, to_usd
from .exchange_rate_service import resolve_rate
from .pricing import (
    DEFAULT_MARKUPS,
    apply_client_discount,
    generate_pricing_options,
    sale_price_for,
    suggest_markup,
)
from .state_machines import QUOTATION_MACHINE, QuotationStatus
from .tenant_service import (
    get_owned,
    get_tenant,
    quotation_validity_days,
    require_active_parameters,
    require_quotation_allowance,
)

COST_FIELDS = (
    "fuel_cost",
    "refueling_cost",
    "driver_meals_cost",
    "driver_lodging_cost",
    "driver_incentive_cost",
    "vehicle_distance_cost",
    "vehicle_daily_cost",
    "toll_cost",
    "total_cost",
)


# =============================================================================
# Computation helpers (no persistence)
# =============================================================================


def _positive_int(value, field: str, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def _resolve_markup(markup_percentage, params) -> Decimal:
    if markup_percentage is not None:
        markup = to_decimal(markup_percentage, "markup_percentage")
    elif params.default_markup_percentage is not None:
        markup = to_decimal(params.default_markup_percentage)
    else:
        markup = to_decimal(current_app.config["ROUTEWISE_DEFAULT_MARKUP"])
    if markup < 0:
        raise ValidationError("markup_percentage cannot be negative")
    return markup


def _resolve_discount(discount_percentage, client: Client | None) -> Decimal:
    if discount_percentage is not None:
        discount = to_decimal(discount_percentage, "discount_percentage")
    elif client is not None and client.discount_percentage:
        discount = to_decimal(client.discount_percentage)
    else:
        discount = Decimal("0")
    if discount < 0 or discount > 100:
        raise ValidationError("discount_percentage must be between 0 and 100")
    return discount


def build_cost_inputs(vehicle: Vehicle, params, trip: dict) -> CostInputs:
    distance = to_decimal(trip.get("total_distance_km"), "total_distance_km")
    extra = to_decimal(trip.get("extra_mileage_km") or 0, "extra_mileage_km")
    if distance < 0 or extra < 0:
        raise ValidationError("Distances cannot be negative")

    return CostInputs(
        distance_km=distance + extra,
        vehicle=VehicleSpec.from_vehicle(vehicle),
        fuel_price=to_decimal(params.fuel_price, "fuel_price"),
        fuel_price_unit=params.fuel_price_unit or "gal",
        per_diem=DriverPerDiem.from_parameters(params),
        days=_positive_int(trip.get("estimated_days"), "estimated_days"),
        total_time_minutes=_positive_int(trip.get("total_time_minutes"), "total_time_minutes", 0),
        include_fuel=bool(trip.get("include_fuel", True)),
        include_meals=bool(trip.get("include_meals", True)),
        include_tolls=bool(trip.get("include_tolls", True)),
        include_incentive=bool(trip.get("include_driver_incentive", True)),
        origin=trip.get("origin") or "",
        destination=trip.get("destination") or "",
        base_location=trip.get("base_location") or "",
    )


def _estimate(tenant_id: int, vehicle: Vehicle, trip: dict, toll_estimator) -> tuple[CostBreakdown, object]:
    params = require_active_parameters(tenant_id)
    estimator = toll_estimator or HondurasTollEstimator.from_parameters(params)
    return calculate_costs(build_cost_inputs(vehicle, params, trip), estimator), params


def _freeze(quotation: Quotation, breakdown: CostBreakdown, rate: Decimal, markup: Decimal, discount: Decimal) -> None:
    """Write every monetary component (local + USD cents) onto the row."""
    for name in COST_FIELDS:
        local = getattr(breakdown, name)
        setattr(quotation, f"{name}_cents", to_cents(local))
        setattr(quotation, f"{name}_usd_cents", to_cents(to_usd(local, rate)))

    sale = sale_price_for(breakdown.total_cost, markup) * (1 - discount / 100)
    quotation.sale_price_cents = to_cents(sale)
    quotation.sale_price_usd_cents = to_cents(to_usd(sale, rate))
    quotation.exchange_rate = rate
    quotation.selected_markup_bps = to_cents(markup)
    quotation.client_discount_bps = to_cents(discount)
    quotation.estimated_days = breakdown.days


def _trip_from_kwargs(**kwargs) -> dict:
    origin = (kwargs.get("origin") or "").strip()
    destination = (kwargs.get("destination") or "").strip()
    if not origin or not destination:
        raise ValidationError("origin and destination are required")
    if kwargs.get("total_distance_km") is None:
        raise ValidationError("total_distance_km is required")
    trip = dict(kwargs)
    trip["origin"] = origin
    trip["destination"] = destination
    return trip


def preview_quotation(
    tenant_id: int,
    *,
    vehicle_id: int,
    rate_provider,
    toll_estimator=None,
    client_id: int | None = None,
    markups=DEFAULT_MARKUPS,
    discount_percentage=None,
    **trip_fields,
) -> dict:
    """
    Cost breakdown plus pricing options for a prospective trip.

    Nothing is persisted and no sequence is consumed.
    """
    tenant = get_tenant(tenant_id)
    vehicle = get_owned(Vehicle, tenant_id, vehicle_id, label="Vehicle")
    client = get_owned(Client, tenant_id, client_id, label="Client") if client_id else None
    trip = _trip_from_kwargs(**trip_fields)
    trip["base_location"] = trip.get("base_location") or vehicle.base_location or ""

    breakdown, params = _estimate(tenant_id, vehicle, trip, toll_estimator)
    currency = (params.local_currency or tenant.local_currency).upper()
    rate = resolve_rate(tenant_id, currency, rate_provider)

    distance = to_decimal(trip["total_distance_km"]) + to_decimal(trip.get("extra_mileage_km") or 0)
    recommended = suggest_markup(distance, breakdown.days, _positive_int(trip.get("group_size"), "group_size", 1))
    options = generate_pricing_options(
        breakdown.total_cost,
        rate,
        markups,
        recommended_markup=recommended,
        rounding_local=params.rounding_local,
        rounding_usd=params.rounding_usd,
    )
    options = apply_client_discount(options, _resolve_discount(discount_percentage, client))

    return {
        "local_currency": currency,
        "exchange_rate": float(rate),
        "cost_breakdown": breakdown.to_dict(),
        "suggested_markup": recommended,
        "pricing_options": [o.to_dict() for o in options],
    }


# =============================================================================
# Reads
# =============================================================================


def get_quotation(tenant_id: int, quotation_id: int) -> Quotation:
    return get_owned(Quotation, tenant_id, quotation_id, label="Quotation")


def list_quotations(tenant_id: int, *, status: str | None = None, limit: int = 100, offset: int = 0) -> list[Quotation]:
    query = db.session.query(Quotation).filter(Quotation.tenant_id == tenant_id)
    if status:
        query = query.filter(Quotation.status == QUOTATION_MACHINE.coerce(status).value)
    limit = max(1, min(int(limit), 500))
    return query.order_by(Quotation.created_at.desc(), Quotation.id.desc()).offset(max(0, int(offset))).limit(limit).all()


# =============================================================================
# Creation
# =============================================================================


def create_quotation(
    tenant_id: int,
    *,
    vehicle_id: int,
    plan_limits,
    rate_provider,
    toll_estimator=None,
    client_id: int | None = None,
    markup_percentage=None,
    discount_percentage=None,
    group_leader_name: str | None = None,
    departure_date: datetime | None = None,
    notes: str | None = None,
    internal_notes: str | None = None,
    **trip_fields,
) -> Quotation:
    """
    Price a trip and persist it as a draft quotation with a frozen snapshot.

    Raises LimitError when the tenant is inactive or over its monthly
    quotation allowance.
    """
    def _op() -> Quotation:
        tenant = get_tenant(tenant_id)
        require_quotation_allowance(tenant, plan_limits)

        vehicle = get_owned(Vehicle, tenant_id, vehicle_id, label="Vehicle")
        client = get_owned(Client, tenant_id, client_id, label="Client") if client_id else None
        trip = _trip_from_kwargs(**trip_fields)
        trip["base_location"] = (trip.get("base_location") or vehicle.base_location or "").strip()
        if not trip["base_location"]:
            raise ValidationError("base_location is required")
        group_size = _positive_int(trip.get("group_size"), "group_size", 1)

        breakdown, params = _estimate(tenant_id, vehicle, trip, toll_estimator)
        currency = (params.local_currency or tenant.local_currency).upper()
        rate = resolve_rate(tenant_id, currency, rate_provider)
        markup = _resolve_markup(markup_percentage, params)
        discount = _resolve_discount(discount_percentage, client)

        number, _seq = numbering.allocate_document_number(
            tenant_id,
            numbering.QUOTATION,
            client=client,
            leader_name=group_leader_name,
            group_size=group_size,
        )

        quotation = Quotation(
            tenant_id=tenant_id,
            quotation_number=number,
            client_id=client.id if client else None,
            vehicle_id=vehicle.id,
            origin=trip["origin"],
            destination=trip["destination"],
            base_location=trip["base_location"],
            group_size=group_size,
            group_leader_name=group_leader_name,
            extra_mileage_km=to_decimal(trip.get("extra_mileage_km") or 0),
            departure_date=departure_date,
            total_distance_km=to_decimal(trip["total_distance_km"]),
            total_time_minutes=_positive_int(trip.get("total_time_minutes"), "total_time_minutes", 0),
            local_currency=currency,
            include_fuel=bool(trip.get("include_fuel", True)),
            include_meals=bool(trip.get("include_meals", True)),
            include_tolls=bool(trip.get("include_tolls", True)),
            include_driver_incentive=bool(trip.get("include_driver_incentive", True)),
            status=QuotationStatus.DRAFT.value,
            notes=notes,
            internal_notes=internal_notes,
        )
        _freeze(quotation, breakdown, rate, markup, discount)
        db.session.add(quotation)
        db.session.flush()

        record_event(
            tenant_id=tenant_id,
            entity_type="quotation",
            entity_id=quotation.id,
            event_type="QUOTATION_CREATED",
            to_status=quotation.status,
            payload={
                "quotation_number": number,
                "exchange_rate": str(rate),
                "total_cost_cents": quotation.total_cost_cents,
                "sale_price_cents": quotation.sale_price_cents,
            },
        )
        return quotation

    quotation = run_unit(_op)
    current_app.logger.info("Quotation %s created for tenant %s", quotation.quotation_number, tenant_id)
    return quotation


def reprice_quotation(
    tenant_id: int,
    quotation_id: int,
    *,
    rate_provider,
    toll_estimator=None,
    markup_percentage=None,
    discount_percentage=None,
    refresh_rate: bool = False,
    reason: str | None = None,
) -> Quotation:
    """
    Explicit, audited re-computation of a draft quotation.

    Costs are recomputed from the stored trip parameters against the active
    tenant parameters. The frozen exchange rate is kept unless refresh_rate
    is requested. Before/after figures go to the audit trail.
    """
    def _op() -> Quotation:
        quotation = get_owned(Quotation, tenant_id, quotation_id, lock=True, label="Quotation")
        if quotation.status != QuotationStatus.DRAFT.value:
            raise StateError("Only draft quotations can be repriced")
        vehicle = get_owned(Vehicle, tenant_id, quotation.vehicle_id, label="Vehicle")

        trip = {
            "origin": quotation.origin,
            "destination": quotation.destination,
            "base_location": quotation.base_location,
            "total_distance_km": quotation.total_distance_km,
            "extra_mileage_km": quotation.extra_mileage_km,
            "total_time_minutes": quotation.total_time_minutes,
            "estimated_days": quotation.estimated_days,
            "include_fuel": quotation.include_fuel,
            "include_meals": quotation.include_meals,
            "include_tolls": quotation.include_tolls,
            "include_driver_incentive": quotation.include_driver_incentive,
        }
        breakdown, params = _estimate(tenant_id, vehicle, trip, toll_estimator)

        rate = to_decimal(quotation.exchange_rate)
        if refresh_rate:
            rate = resolve_rate(tenant_id, quotation.local_currency, rate_provider)
        markup = (
            to_decimal(markup_percentage, "markup_percentage")
            if markup_percentage is not None
            else Decimal(quotation.selected_markup_bps) / 100
        )
        if markup < 0:
            raise ValidationError("markup_percentage cannot be negative")
        discount = (
            _resolve_discount(discount_percentage, None)
            if discount_percentage is not None
            else Decimal(quotation.client_discount_bps) / 100
        )

        before = {
            "exchange_rate": str(quotation.exchange_rate),
            "total_cost_cents": quotation.total_cost_cents,
            "sale_price_cents": quotation.sale_price_cents,
            "selected_markup_bps": quotation.selected_markup_bps,
        }
        _freeze(quotation, breakdown, rate, markup, discount)

        record_event(
            tenant_id=tenant_id,
            entity_type="quotation",
            entity_id=quotation.id,
            event_type="QUOTATION_REPRICED",
            note=reason,
            payload={
                "before": before,
                "after": {
                    "exchange_rate": str(rate),
                    "total_cost_cents": quotation.total_cost_cents,
                    "sale_price_cents": quotation.sale_price_cents,
                    "selected_markup_bps": quotation.selected_markup_bps,
                },
            },
        )
        return quotation

    return run_unit(_op)


# =============================================================================
# Transitions
# =============================================================================


def _transition(tenant_id: int, quotation_id: int, target: QuotationStatus, mutate=None, note: str | None = None) -> Quotation:
    def _op() -> Quotation:
        quotation = get_owned(Quotation, tenant_id, quotation_id, lock=True, label="Quotation")
        from_status = quotation.status
        QUOTATION_MACHINE.require(from_status, target)
        quotation.status = target.value
        if mutate:
            mutate(quotation)
        record_transition(quotation, "quotation", from_status, target, note=note)
        return quotation

    quotation = run_unit(_op)
    current_app.logger.info("Quotation %s -> %s", quotation.quotation_number, target.value)
    return quotation


def send_quotation(tenant_id: int, quotation_id: int, *, now: datetime | None = None) -> Quotation:
    now = now or utcnow()
    validity = quotation_validity_days(tenant_id)

    def _mutate(q: Quotation) -> None:
        q.sent_at = now
        q.valid_until = now + timedelta(days=validity)

    quotation = _transition(tenant_id, quotation_id, QuotationStatus.SENT, _mutate)
    fire_side_effect(
        "schedule_quotation_followups",
        reminder_service.schedule_quotation_followups,
        tenant_id,
        quotation.id,
        now,
    )
    return quotation


def approve_quotation(tenant_id: int, quotation_id: int, *, notifier, now: datetime | None = None) -> Quotation:
    now = now or utcnow()

    def _mutate(q: Quotation) -> None:
        q.approved_at = now

    quotation = _transition(tenant_id, quotation_id, QuotationStatus.APPROVED, _mutate)
    fire_side_effect(
        "cancel_quotation_followups",
        reminder_service.cancel_reminders,
        tenant_id,
        "quotation",
        quotation.id,
        "Quotation approved",
    )
    fire_side_effect(
        "notify_quotation_approved",
        notifier.notify,
        NotificationEvent(
            event_type="quotation_approved",
            tenant_id=tenant_id,
            document_id=quotation.id,
            document_number=quotation.quotation_number,
            amount_cents=quotation.sale_price_cents,
            currency=quotation.local_currency,
            client_name=quotation.client.display_name if quotation.client else None,
        ),
    )
    return quotation


def reject_quotation(tenant_id: int, quotation_id: int, *, reason: str | None = None, now: datetime | None = None) -> Quotation:
    now = now or utcnow()

    def _mutate(q: Quotation) -> None:
        q.rejected_at = now

    quotation = _transition(tenant_id, quotation_id, QuotationStatus.REJECTED, _mutate, note=reason)
    fire_side_effect(
        "cancel_quotation_followups",
        reminder_service.cancel_reminders,
        tenant_id,
        "quotation",
        quotation.id,
        "Quotation rejected",
    )
    return quotation


def expire_quotation(tenant_id: int, quotation_id: int, *, now: datetime | None = None) -> Quotation:
    now = now or utcnow()

    def _mutate(q: Quotation) -> None:
        q.expired_at = now

    quotation = _transition(tenant_id, quotation_id, QuotationStatus.EXPIRED, _mutate)
    fire_side_effect(
        "cancel_quotation_followups",
        reminder_service.cancel_reminders,
        tenant_id,
        "quotation",
        quotation.id,
        "Quotation expired",
    )
    return quotation


def expire_stale_quotations(tenant_id: int, *, now: datetime | None = None) -> list[Quotation]:
    """Expire every sent quotation whose valid_until has passed."""
    now = now or utcnow()
    stale_ids = [
        qid
        for (qid,) in db.session.query(Quotation.id)
        .filter(
            Quotation.tenant_id == tenant_id,
            Quotation.status == QuotationStatus.SENT.value,
            Quotation.valid_until.isnot(None),
            Quotation.valid_until < now,
        )
        .all()
    ]
    return [expire_quotation(tenant_id, qid, now=now) for qid in stale_ids]


def delete_quotation(tenant_id: int, quotation_id: int) -> None:
    def _op() -> None:
        quotation = get_owned(Quotation, tenant_id, quotation_id, lock=True, label="Quotation")
        if quotation.status != QuotationStatus.DRAFT.value:
            raise StateError("Only draft quotations can be deleted")
        if db.session.query(Itinerary.id).filter_by(quotation_id=quotation.id).first():
            raise StateError("Quotation has an itinerary and cannot be deleted")
        record_event(
            tenant_id=tenant_id,
            entity_type="quotation",
            entity_id=quotation.id,
            event_type="QUOTATION_DELETED",
            from_status=quotation.status,
            payload={"quotation_number": quotation.quotation_number},
        )
        db.session.delete(quotation)

    run_unit(_op)
