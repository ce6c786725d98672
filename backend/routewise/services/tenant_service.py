"""
Multi-Tenant Service: Tenant Scoping, Parameters and Plan Checks

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to a tenant, and a cross-tenant id must look exactly
like a missing one.

INVARIANTS:
1. Every request handled by a tenant route has g.tenant_id set
2. Every lookup filters by tenant_id; other tenants' ids raise NotFoundError
3. Exactly one TenantParameters row per tenant is active

USAGE:
    from routewise.services.tenant_service import get_owned

    quotation = get_owned(Quotation, tenant_id, quotation_id, label="Quotation")
"""

from __future__ import annotations

from flask import current_app

from ..errors import LimitError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Tenant, TenantParameters
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_unit
from .currency import to_decimal
from .state_machines import TenantStatus

DEFAULT_QUOTATION_REMINDER_DAYS = [3, 7, 14]
DEFAULT_INVOICE_REMINDER_DAYS = [3, 7]

DECIMAL_PARAMETERS = (
    "custom_exchange_rate",
    "fuel_price",
    "meal_cost_per_day",
    "hotel_cost_per_night",
    "driver_incentive_per_day",
    "toll_sap_yojoa",
    "toll_sap_siguatepeque",
    "toll_sap_zambrano",
    "toll_salida_sap",
    "toll_salida_ptz",
    "toll_san_manuel",
    "default_markup_percentage",
    "rounding_local",
    "rounding_usd",
    "tax_percentage",
)
INTEGER_PARAMETERS = ("quotation_validity_days", "payment_terms_days")
REMINDER_PARAMETERS = ("quotation_reminder_days", "invoice_reminder_days")
PARAMETER_FIELDS = (
    DECIMAL_PARAMETERS
    + INTEGER_PARAMETERS
    + REMINDER_PARAMETERS
    + ("local_currency", "use_custom_exchange_rate", "fuel_price_unit")
)


def get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id) if tenant_id else None
    if not tenant:
        raise NotFoundError("Tenant not found")
    return tenant


def get_owned(model, tenant_id: int, entity_id: int, *, lock: bool = False, label: str | None = None):
    """
    Load one tenant-owned row by id.

    A row owned by another tenant raises the same NotFoundError as a
    missing row.
    """
    name = label or model.__name__
    if entity_id is None:
        raise ValidationError(f"{name} id is required")
    query = db.session.query(model).filter(model.id == entity_id, model.tenant_id == tenant_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if not row:
        raise NotFoundError(f"{name} not found")
    return row


def require_tenant_operational(tenant: Tenant, plan_limits) -> None:
    result = plan_limits.is_tenant_active(tenant)
    if not result.allowed:
        raise LimitError(result.message or "Account not active")


def require_quotation_allowance(tenant: Tenant, plan_limits) -> None:
    require_tenant_operational(tenant, plan_limits)
    result = plan_limits.can_create_quotation(tenant)
    if not result.allowed:
        raise LimitError(
            result.message or "Quotation limit reached",
            {"current_count": result.current_count, "limit": result.limit},
        )


# =============================================================================
# Tenants
# =============================================================================


def create_tenant(
    *,
    company_name: str,
    slug: str,
    plan: str = "starter",
    local_currency: str | None = None,
    max_quotations_per_month: int = -1,
    country: str = "Honduras",
) -> Tenant:
    if not company_name or not company_name.strip():
        raise ValidationError("company_name is required")
    if not slug or not slug.strip():
        raise ValidationError("slug is required")
    if db.session.query(Tenant).filter_by(slug=slug.strip()).first():
        raise ValidationError(f"Tenant slug '{slug}' already exists")

    tenant = Tenant(
        company_name=company_name.strip(),
        slug=slug.strip(),
        plan=plan,
        status=TenantStatus.ACTIVE.value,
        local_currency=(local_currency or current_app.config["ROUTEWISE_DEFAULT_CURRENCY"]).upper(),
        max_quotations_per_month=max_quotations_per_month,
        country=country,
    )
    db.session.add(tenant)
    db.session.flush()
    return tenant


def list_tenants() -> list[Tenant]:
    return db.session.query(Tenant).order_by(Tenant.id.asc()).all()


# =============================================================================
# Parameters
# =============================================================================


def get_active_parameters(tenant_id: int) -> TenantParameters | None:
    return (
        db.session.query(TenantParameters)
        .filter_by(tenant_id=tenant_id, is_active=True)
        .order_by(TenantParameters.year.desc())
        .first()
    )


def require_active_parameters(tenant_id: int) -> TenantParameters:
    params = get_active_parameters(tenant_id)
    if not params:
        raise ValidationError("No active operating parameters configured for this tenant")
    return params


def _coerce_parameter(key: str, value):
    if key in DECIMAL_PARAMETERS:
        if value is None and key == "custom_exchange_rate":
            return None
        number = to_decimal(value, key)
        if number < 0:
            raise ValidationError(f"{key} cannot be negative")
        return number
    if key in INTEGER_PARAMETERS:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValidationError(f"{key} must be an integer")
        try:
            days = int(value)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
        if days < 0:
            raise ValidationError(f"{key} cannot be negative")
        return days
    if key in REMINDER_PARAMETERS:
        if value is None:
            return None
        if not isinstance(value, list) or any(isinstance(d, bool) or not isinstance(d, int) or d <= 0 for d in value):
            raise ValidationError(f"{key} must be a list of positive day counts")
        return sorted(set(value))
    if key == "use_custom_exchange_rate":
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be true or false")
        return value
    if key == "local_currency":
        code = str(value or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValidationError("local_currency must be a 3-letter currency code")
        return code
    unit = str(value or "").strip().lower()
    if unit not in ("gal", "l"):
        raise ValidationError("fuel_price_unit must be gal or l")
    return unit


def list_parameters(tenant_id: int) -> list[TenantParameters]:
    """Every yearly parameters row, newest year first."""
    get_tenant(tenant_id)
    return (
        db.session.query(TenantParameters)
        .filter_by(tenant_id=tenant_id)
        .order_by(TenantParameters.year.desc())
        .all()
    )


def set_parameters(tenant_id: int, *, year: int | None = None, **fields) -> TenantParameters:
    """
    Create or update the parameters row for `year` and make it the active one.
    """
    get_tenant(tenant_id)
    year = year or utcnow().year

    params = db.session.query(TenantParameters).filter_by(tenant_id=tenant_id, year=year).first()
    if not params:
        params = TenantParameters(
            tenant_id=tenant_id,
            year=year,
            quotation_reminder_days=list(DEFAULT_QUOTATION_REMINDER_DAYS),
            invoice_reminder_days=list(DEFAULT_INVOICE_REMINDER_DAYS),
        )
        db.session.add(params)

    for key, value in fields.items():
        if key not in PARAMETER_FIELDS:
            raise ValidationError(f"Unknown parameter: {key}")
        setattr(params, key, _coerce_parameter(key, value))

    if params.fuel_price is None:
        raise ValidationError("fuel_price is required")

    (
        db.session.query(TenantParameters)
        .filter(TenantParameters.tenant_id == tenant_id, TenantParameters.year != year)
        .update({TenantParameters.is_active: False}, synchronize_session=False)
    )
    params.is_active = True
    db.session.flush()
    return params


def default_tax_percentage(tenant_id: int):
    params = get_active_parameters(tenant_id)
    if params and params.tax_percentage is not None:
        return params.tax_percentage
    return current_app.config["ROUTEWISE_DEFAULT_TAX_PERCENTAGE"]


def default_payment_terms_days(tenant_id: int) -> int:
    params = get_active_parameters(tenant_id)
    if params and params.payment_terms_days is not None:
        return int(params.payment_terms_days)
    return int(current_app.config["ROUTEWISE_DEFAULT_PAYMENT_TERMS_DAYS"])


def quotation_validity_days(tenant_id: int) -> int:
    params = get_active_parameters(tenant_id)
    if params and params.quotation_validity_days:
        return int(params.quotation_validity_days)
    return int(current_app.config["ROUTEWISE_QUOTATION_VALIDITY_DAYS"])


def save_parameters(tenant_id: int, *, year: int | None = None, **fields) -> TenantParameters:
    """set_parameters as its own committed unit, for API callers."""
    params = run_unit(lambda: set_parameters(tenant_id, year=year, **fields))
    current_app.logger.info("Parameters for %s saved for tenant %s (%s)", params.year, tenant_id, ", ".join(sorted(fields)))
    return params
