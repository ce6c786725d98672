# Overview: Service-layer operations for itineraries; conversion from quotations, scheduling and lifecycle.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from ..collaborators import NotificationEvent
from ..errors import ConflictError, StateError, ValidationError
from ..extensions import db
from ..models import Client, Driver, ExpenseAdvance, Invoice, Itinerary, Quotation, Vehicle
from ..time_utils import utcnow
from . import numbering
from .audit_service import record_event, record_transition
from .concurrency import fire_side_effect, run_unit
from .currency import to_cents, to_decimal, to_usd
from .exchange_rate_service import resolve_rate
from .state_machines import ITINERARY_MACHINE, ItineraryStatus, QuotationStatus
from .tenant_service import get_owned, get_tenant

"""
Itinerary Invariants

- An itinerary created from a quotation copies the quotation's frozen sale
  price and exchange rate once; it never re-reads the quotation afterwards.
- At most one itinerary per quotation (ConflictError on a second attempt).
- completed / cancelled are terminal; only completed itineraries can be
  invoiced.
"""

SCHEDULE_FIELDS = (
    "pickup_location",
    "pickup_time",
    "pickup_notes",
    "dropoff_location",
    "dropoff_time",
    "dropoff_notes",
    "notes",
)


def get_itinerary(tenant_id: int, itinerary_id: int) -> Itinerary:
    return get_owned(Itinerary, tenant_id, itinerary_id, label="Itinerary")


def list_itineraries(
    tenant_id: int,
    *,
    status: str | None = None,
    driver_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Itinerary]:
    query = db.session.query(Itinerary).filter(Itinerary.tenant_id == tenant_id)
    if status:
        query = query.filter(Itinerary.status == ITINERARY_MACHINE.coerce(status).value)
    if driver_id:
        query = query.filter(Itinerary.driver_id == driver_id)
    limit = max(1, min(int(limit), 500))
    return query.order_by(Itinerary.start_date.asc(), Itinerary.id.asc()).offset(max(0, int(offset))).limit(limit).all()


def _end_date(start_date: datetime, end_date: datetime | None, days: int) -> datetime | None:
    if end_date is not None:
        if end_date < start_date:
            raise ValidationError("end_date cannot be before start_date")
        return end_date
    return start_date + timedelta(days=max(0, days - 1))


def _optional_owned(model, tenant_id: int, entity_id, label: str):
    if entity_id is None:
        return None
    return get_owned(model, tenant_id, entity_id, label=label)


def create_itinerary_from_quotation(
    tenant_id: int,
    quotation_id: int,
    *,
    start_date: datetime,
    notifier,
    end_date: datetime | None = None,
    driver_id: int | None = None,
    vehicle_id: int | None = None,
    **schedule,
) -> Itinerary:
    """
    Turn an approved quotation into a scheduled itinerary.

    Trip details, the agreed price (local + USD) and the exchange rate are
    copied from the quotation's frozen snapshot.
    """
    if start_date is None:
        raise ValidationError("start_date is required")

    def _op() -> Itinerary:
        quotation = get_owned(Quotation, tenant_id, quotation_id, lock=True, label="Quotation")
        if quotation.status != QuotationStatus.APPROVED.value:
            raise StateError("Only approved quotations can be converted to itineraries")
        existing = db.session.query(Itinerary.id).filter_by(tenant_id=tenant_id, quotation_id=quotation.id).first()
        if existing:
            raise ConflictError("An itinerary already exists for this quotation", {"itinerary_id": existing[0]})

        driver = _optional_owned(Driver, tenant_id, driver_id, "Driver")
        vehicle = _optional_owned(Vehicle, tenant_id, vehicle_id or quotation.vehicle_id, "Vehicle")

        number, _seq = numbering.allocate_document_number(
            tenant_id,
            numbering.ITINERARY,
            client=quotation.client,
            leader_name=quotation.group_leader_name,
            group_size=quotation.group_size,
        )

        itinerary = Itinerary(
            tenant_id=tenant_id,
            itinerary_number=number,
            quotation_id=quotation.id,
            client_id=quotation.client_id,
            vehicle_id=vehicle.id if vehicle else None,
            driver_id=driver.id if driver else None,
            origin=quotation.origin,
            destination=quotation.destination,
            base_location=quotation.base_location,
            group_size=quotation.group_size,
            group_leader_name=quotation.group_leader_name,
            total_distance_km=quotation.total_distance_km,
            total_time_minutes=quotation.total_time_minutes,
            start_date=start_date,
            end_date=_end_date(start_date, end_date, quotation.estimated_days),
            estimated_days=quotation.estimated_days,
            agreed_price_cents=quotation.sale_price_cents,
            agreed_price_usd_cents=quotation.sale_price_usd_cents,
            local_currency=quotation.local_currency,
            exchange_rate=quotation.exchange_rate,
            status=ItineraryStatus.SCHEDULED.value,
            **{k: schedule.get(k) for k in SCHEDULE_FIELDS},
        )
        db.session.add(itinerary)
        db.session.flush()

        record_event(
            tenant_id=tenant_id,
            entity_type="itinerary",
            entity_id=itinerary.id,
            event_type="ITINERARY_CREATED",
            to_status=itinerary.status,
            payload={"quotation_id": quotation.id, "agreed_price_cents": itinerary.agreed_price_cents},
        )
        return itinerary

    itinerary = run_unit(_op)
    current_app.logger.info("Itinerary %s created from quotation %s", itinerary.itinerary_number, quotation_id)
    fire_side_effect(
        "notify_itinerary_created",
        notifier.notify,
        NotificationEvent(
            event_type="itinerary_created",
            tenant_id=tenant_id,
            document_id=itinerary.id,
            document_number=itinerary.itinerary_number,
            amount_cents=itinerary.agreed_price_cents,
            currency=itinerary.local_currency,
            client_name=itinerary.client.display_name if itinerary.client else None,
        ),
    )
    return itinerary


def create_itinerary(
    tenant_id: int,
    *,
    origin: str,
    destination: str,
    start_date: datetime,
    total_distance_km,
    agreed_price_cents: int,
    exchange_rate=None,
    rate_provider=None,
    base_location: str | None = None,
    client_id: int | None = None,
    vehicle_id: int | None = None,
    driver_id: int | None = None,
    group_size: int = 1,
    group_leader_name: str | None = None,
    total_time_minutes: int = 0,
    estimated_days: int = 1,
    end_date: datetime | None = None,
    **schedule,
) -> Itinerary:
    """Manual itinerary with no source quotation."""
    if not (origin or "").strip() or not (destination or "").strip():
        raise ValidationError("origin and destination are required")
    if start_date is None:
        raise ValidationError("start_date is required")
    if agreed_price_cents is None or int(agreed_price_cents) <= 0:
        raise ValidationError("agreed_price_cents must be positive")
    days = int(estimated_days or 1)
    if days < 1:
        raise ValidationError("estimated_days must be at least 1")

    def _op() -> Itinerary:
        tenant = get_tenant(tenant_id)
        client = _optional_owned(Client, tenant_id, client_id, "Client")
        vehicle = _optional_owned(Vehicle, tenant_id, vehicle_id, "Vehicle")
        driver = _optional_owned(Driver, tenant_id, driver_id, "Driver")

        currency = tenant.local_currency
        if exchange_rate is not None:
            rate = to_decimal(exchange_rate, "exchange_rate")
        elif rate_provider is not None:
            rate = resolve_rate(tenant_id, currency, rate_provider)
        else:
            raise ValidationError("exchange_rate is required")
        if rate <= 0:
            raise ValidationError("exchange_rate must be positive")

        number, _seq = numbering.allocate_document_number(
            tenant_id,
            numbering.ITINERARY,
            client=client,
            leader_name=group_leader_name,
            group_size=group_size,
        )
        agreed = int(agreed_price_cents)
        itinerary = Itinerary(
            tenant_id=tenant_id,
            itinerary_number=number,
            client_id=client.id if client else None,
            vehicle_id=vehicle.id if vehicle else None,
            driver_id=driver.id if driver else None,
            origin=origin.strip(),
            destination=destination.strip(),
            base_location=(base_location or (vehicle.base_location if vehicle else None) or origin).strip(),
            group_size=int(group_size or 1),
            group_leader_name=group_leader_name,
            total_distance_km=to_decimal(total_distance_km, "total_distance_km"),
            total_time_minutes=int(total_time_minutes or 0),
            start_date=start_date,
            end_date=_end_date(start_date, end_date, days),
            estimated_days=days,
            agreed_price_cents=agreed,
            agreed_price_usd_cents=to_cents(to_usd(to_decimal(agreed) / 100, rate)),
            local_currency=currency,
            exchange_rate=rate,
            status=ItineraryStatus.SCHEDULED.value,
            **{k: schedule.get(k) for k in SCHEDULE_FIELDS},
        )
        db.session.add(itinerary)
        db.session.flush()
        record_event(
            tenant_id=tenant_id,
            entity_type="itinerary",
            entity_id=itinerary.id,
            event_type="ITINERARY_CREATED",
            to_status=itinerary.status,
            payload={"agreed_price_cents": agreed, "exchange_rate": str(rate)},
        )
        return itinerary

    return run_unit(_op)


def _transition(tenant_id: int, itinerary_id: int, target: ItineraryStatus, mutate=None, note: str | None = None) -> Itinerary:
    def _op() -> Itinerary:
        itinerary = get_owned(Itinerary, tenant_id, itinerary_id, lock=True, label="Itinerary")
        from_status = itinerary.status
        ITINERARY_MACHINE.require(from_status, target)
        itinerary.status = target.value
        if mutate:
            mutate(itinerary)
        record_transition(itinerary, "itinerary", from_status, target, note=note)
        return itinerary

    itinerary = run_unit(_op)
    current_app.logger.info("Itinerary %s -> %s", itinerary.itinerary_number, target.value)
    return itinerary


def start_itinerary(tenant_id: int, itinerary_id: int, *, now: datetime | None = None) -> Itinerary:
    now = now or utcnow()

    def _mutate(it: Itinerary) -> None:
        it.started_at = now

    return _transition(tenant_id, itinerary_id, ItineraryStatus.IN_PROGRESS, _mutate)


def complete_itinerary(tenant_id: int, itinerary_id: int, *, now: datetime | None = None) -> Itinerary:
    now = now or utcnow()

    def _mutate(it: Itinerary) -> None:
        it.completed_at = now

    return _transition(tenant_id, itinerary_id, ItineraryStatus.COMPLETED, _mutate)


def cancel_itinerary(tenant_id: int, itinerary_id: int, *, reason: str | None = None, now: datetime | None = None) -> Itinerary:
    now = now or utcnow()

    def _mutate(it: Itinerary) -> None:
        it.cancelled_at = now
        it.cancellation_reason = reason[:255] if reason else None

    return _transition(tenant_id, itinerary_id, ItineraryStatus.CANCELLED, _mutate, note=reason)


def _assign(tenant_id: int, itinerary_id: int, model, entity_id: int, attr: str, label: str) -> Itinerary:
    def _op() -> Itinerary:
        itinerary = get_owned(Itinerary, tenant_id, itinerary_id, lock=True, label="Itinerary")
        if ITINERARY_MACHINE.is_terminal(itinerary.status):
            raise StateError(f"Cannot change the {label.lower()} of a {itinerary.status} itinerary")
        target = get_owned(model, tenant_id, entity_id, label=label)
        previous = getattr(itinerary, attr)
        setattr(itinerary, attr, target.id)
        record_event(
            tenant_id=tenant_id,
            entity_type="itinerary",
            entity_id=itinerary.id,
            event_type=f"ITINERARY_{label.upper()}_ASSIGNED",
            payload={"from": previous, "to": target.id},
        )
        return itinerary

    return run_unit(_op)


def assign_driver(tenant_id: int, itinerary_id: int, driver_id: int) -> Itinerary:
    return _assign(tenant_id, itinerary_id, Driver, driver_id, "driver_id", "Driver")


def assign_vehicle(tenant_id: int, itinerary_id: int, vehicle_id: int) -> Itinerary:
    return _assign(tenant_id, itinerary_id, Vehicle, vehicle_id, "vehicle_id", "Vehicle")


def delete_itinerary(tenant_id: int, itinerary_id: int) -> None:
    def _op() -> None:
        itinerary = get_owned(Itinerary, tenant_id, itinerary_id, lock=True, label="Itinerary")
        if itinerary.status != ItineraryStatus.SCHEDULED.value:
            raise StateError("Only scheduled itineraries can be deleted. Cancel instead.")
        if db.session.query(Invoice.id).filter_by(tenant_id=tenant_id, itinerary_id=itinerary.id).first():
            raise StateError("Itinerary has invoices and cannot be deleted")
        if db.session.query(ExpenseAdvance.id).filter_by(tenant_id=tenant_id, itinerary_id=itinerary.id).first():
            raise StateError("Itinerary has expense advances and cannot be deleted")
        record_event(
            tenant_id=tenant_id,
            entity_type="itinerary",
            entity_id=itinerary.id,
            event_type="ITINERARY_DELETED",
            from_status=itinerary.status,
            payload={"itinerary_number": itinerary.itinerary_number},
        )
        db.session.delete(itinerary)

    run_unit(_op)
