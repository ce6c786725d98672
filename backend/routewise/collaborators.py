# Overview: Narrow interfaces to the services this engine consumes but does not own, plus their defaults.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app

from .extensions import db
from .models import Notification, Quotation, Tenant
from .services.costing import TollEstimator
from .services.currency import from_cents, to_decimal
from .services.exchange_rate_service import latest_snapshot
from .services.state_machines import TenantStatus
from .time_utils import utcnow

"""
Collaborators

- PlanLimits: tenant status and plan ceilings (billing owns the plans).
- ExchangeRateProvider: latest {currency -> rate}; refresh jobs live elsewhere.
- Notifier: in-app notifications at fixed transition points.
- TollEstimator: route -> toll fees (see services.costing).

The app factory builds one Collaborators bundle per app and stores it in
app.extensions["routewise"]. Routes hand the specific collaborator to each
service call; services never look one up themselves.
"""

# Local units per USD, used until a rate snapshot has been stored
DEFAULT_RATES = {
    "HNL": Decimal("26.31"),
    "GTQ": Decimal("7.66"),
    "CRC": Decimal("498.39"),
    "NIO": Decimal("36.78"),
    "PAB": Decimal("1.0"),
    "BZD": Decimal("2.0"),
    "MXN": Decimal("18.31"),
    "DOP": Decimal("62.59"),
    "COP": Decimal("3740.40"),
    "PEN": Decimal("3.36"),
}


# =============================================================================
# Plan limits
# =============================================================================


@dataclass(frozen=True)
class LimitCheckResult:
    allowed: bool
    current_count: int = 0
    limit: int = -1
    message: str | None = None


class PlanLimits:
    def is_tenant_active(self, tenant: Tenant) -> LimitCheckResult:
        raise NotImplementedError

    def can_create_quotation(self, tenant: Tenant) -> LimitCheckResult:
        raise NotImplementedError


class TenantPlanLimits(PlanLimits):
    """Reads the limits stored on the tenant row; -1 means unlimited."""

    def is_tenant_active(self, tenant: Tenant) -> LimitCheckResult:
        if tenant.status == TenantStatus.SUSPENDED.value:
            return LimitCheckResult(False, message="Your account has been suspended. Please contact support.")
        if tenant.status == TenantStatus.CANCELLED.value:
            return LimitCheckResult(False, message="Your subscription has been cancelled.")
        if tenant.status == TenantStatus.TRIAL_EXPIRED.value:
            return LimitCheckResult(False, message="Your trial has expired. Please upgrade to continue using RouteWise.")
        if tenant.plan == "trial" and tenant.trial_ends_at and utcnow() > tenant.trial_ends_at:
            return LimitCheckResult(False, message="Your trial has expired. Please upgrade to continue using RouteWise.")
        if tenant.status != TenantStatus.ACTIVE.value:
            return LimitCheckResult(False, message="Account not active")
        return LimitCheckResult(True)

    def can_create_quotation(self, tenant: Tenant) -> LimitCheckResult:
        limit = tenant.max_quotations_per_month
        if limit is None or limit == -1:
            return LimitCheckResult(True, limit=-1)

        now = utcnow()
        period_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        current = (
            db.session.query(db.func.count(Quotation.id))
            .filter(Quotation.tenant_id == tenant.id, Quotation.created_at >= period_start)
            .scalar()
        ) or 0

        allowed = current < limit
        return LimitCheckResult(
            allowed,
            current_count=current,
            limit=limit,
            message=None if allowed else (
                f"Quotation limit reached ({current}/{limit} this month). "
                "Upgrade your plan for unlimited quotations."
            ),
        )


# =============================================================================
# Exchange rates
# =============================================================================


@dataclass(frozen=True)
class RateQuote:
    currency: str
    rate: Decimal
    as_of: datetime | None = None
    source: str = "default"


class ExchangeRateProvider:
    def get_rate(self, currency: str) -> RateQuote:
        raise NotImplementedError


class StoredRateProvider(ExchangeRateProvider):
    """Latest ExchangeRate snapshot, falling back to built-in defaults."""

    def get_rate(self, currency: str) -> RateQuote:
        code = (currency or "").upper()
        if code == "USD":
            return RateQuote("USD", Decimal("1"), utcnow(), "identity")

        snapshot = latest_snapshot()
        if snapshot and snapshot.rates and snapshot.rates.get(code):
            return RateQuote(code, to_decimal(snapshot.rates[code], "exchange_rate"), snapshot.fetched_at, snapshot.source)

        if code in DEFAULT_RATES:
            return RateQuote(code, DEFAULT_RATES[code], None, "default")
        return RateQuote(code, Decimal("0"), None, "missing")


class StaticRateProvider(ExchangeRateProvider):
    """Fixed rates; handy for scripts and tests."""

    def __init__(self, rates: dict):
        self.rates = {k.upper(): to_decimal(v, "exchange_rate") for k, v in rates.items()}

    def get_rate(self, currency: str) -> RateQuote:
        code = (currency or "").upper()
        if code == "USD":
            return RateQuote("USD", Decimal("1"), None, "identity")
        return RateQuote(code, self.rates.get(code, Decimal("0")), None, "static")


# =============================================================================
# Notifications
# =============================================================================


@dataclass(frozen=True)
class NotificationEvent:
    event_type: str  # payment_received, invoice_paid, quotation_approved, itinerary_created
    tenant_id: int
    document_id: int
    document_number: str
    amount_cents: int | None = None
    currency: str | None = None
    flag: bool = False
    client_name: str | None = None


class Notifier:
    def notify(self, event: NotificationEvent) -> None:
        raise NotImplementedError


def _money(cents, currency) -> str:
    return f"{currency or ''} {from_cents(cents):,.2f}".strip()


class InAppNotifier(Notifier):
    """Writes Notification rows; the caller commits."""

    ENTITY_TYPES = {
        "payment_received": "invoice",
        "invoice_paid": "invoice",
        "quotation_approved": "quotation",
        "itinerary_created": "itinerary",
        "quotation_followup": "quotation",
        "invoice_overdue": "invoice",
    }

    def render(self, event: NotificationEvent) -> tuple[str, str]:
        client = event.client_name or "El cliente"
        if event.event_type == "payment_received":
            title = f"Pago Completo: {event.document_number}" if event.flag else f"Pago Parcial: {event.document_number}"
            message = f"{client} ha realizado un pago de {_money(event.amount_cents, event.currency)}"
            message += ". Factura saldada." if event.flag else "."
            return title, message
        if event.event_type == "invoice_paid":
            return (
                f"Factura Pagada: {event.document_number}",
                f"La factura {event.document_number} ha sido pagada en su totalidad.",
            )
        if event.event_type == "quotation_approved":
            return (
                f"Cotización Aprobada: {event.document_number}",
                f"{client} ha aprobado la cotización {event.document_number}.",
            )
        if event.event_type == "itinerary_created":
            return (
                f"Nuevo Itinerario: {event.document_number}",
                f"Itinerario creado para {client}.",
            )
        if event.event_type == "quotation_followup":
            return (
                f"Seguimiento: Cotización {event.document_number}",
                f"La cotización para {client} sigue sin respuesta. Considera dar seguimiento.",
            )
        if event.event_type == "invoice_overdue":
            return (
                f"Factura Vencida: {event.document_number}",
                f"La factura de {client} está vencida. Monto pendiente: {_money(event.amount_cents, event.currency)}.",
            )
        return event.event_type, event.document_number

    def notify(self, event: NotificationEvent) -> None:
        title, message = self.render(event)
        db.session.add(
            Notification(
                tenant_id=event.tenant_id,
                type=event.event_type,
                entity_type=self.ENTITY_TYPES.get(event.event_type),
                entity_id=event.document_id,
                title=title,
                message=message,
                payload={
                    "document_number": event.document_number,
                    "amount_cents": event.amount_cents,
                    "currency": event.currency,
                    "flag": event.flag,
                },
            )
        )


# =============================================================================
# Bundle
# =============================================================================


@dataclass
class Collaborators:
    plan_limits: PlanLimits
    rate_provider: ExchangeRateProvider
    notifier: Notifier
    # None -> per-tenant HondurasTollEstimator built from the active parameters
    toll_estimator: TollEstimator | None = None


def init_collaborators(app, **overrides) -> Collaborators:
    collaborators = Collaborators(
        plan_limits=overrides.get("plan_limits") or TenantPlanLimits(),
        rate_provider=overrides.get("rate_provider") or StoredRateProvider(),
        notifier=overrides.get("notifier") or InAppNotifier(),
        toll_estimator=overrides.get("toll_estimator"),
    )
    app.extensions["routewise"] = collaborators
    return collaborators


def get_collaborators() -> Collaborators:
    return current_app.extensions["routewise"]
