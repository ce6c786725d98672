from __future__ import annotations

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow


class Tenant(db.Model):
    """
    Multi-tenant root: every operator company is a Tenant.

    WHY: Shared-database multi-tenancy with strict isolation.
    Vehicles, drivers, clients, parameters and every financial document
    belong to exactly one tenant. No document may cross tenant boundaries.

    Plan enforcement lives in the billing collaborator; the columns here are
    only what that collaborator needs to answer `can_create_quotation`.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    plan = db.Column(db.String(32), nullable=False, default="starter")  # trial, starter, professional, business, enterprise
    status = db.Column(db.String(32), nullable=False, default="active", index=True)  # active, suspended, cancelled, trial_expired
    trial_ends_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # -1 = unlimited
    max_quotations_per_month = db.Column(db.Integer, nullable=False, default=-1)

    country = db.Column(db.String(64), nullable=False, default="Honduras")
    local_currency = db.Column(db.String(3), nullable=False, default="HNL")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "slug": self.slug,
            "plan": self.plan,
            "status": self.status,
            "trial_ends_at": to_epoch_ms(self.trial_ends_at),
            "max_quotations_per_month": self.max_quotations_per_month,
            "country": self.country,
            "local_currency": self.local_currency,
            "created_at": to_epoch_ms(self.created_at),
            "updated_at": to_epoch_ms(self.updated_at),
        }


class TenantParameters(db.Model):
    """
    Operating parameters per tenant and year.

    Fuel price, per-diems, toll fees and rounding units feed the cost engine;
    tax and payment terms feed invoicing. Exactly one row per tenant is
    active at a time.
    """
    __tablename__ = "tenant_parameters"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "year", name="uq_tenant_parameters_tenant_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)

    # Currency configuration
    local_currency = db.Column(db.String(3), nullable=False, default="HNL")
    use_custom_exchange_rate = db.Column(db.Boolean, nullable=False, default=False)
    custom_exchange_rate = db.Column(db.Numeric(14, 6), nullable=True)

    # Operating costs (local currency, major units)
    fuel_price = db.Column(db.Numeric(12, 4), nullable=False)
    fuel_price_unit = db.Column(db.String(8), nullable=False, default="gal")  # gal, l
    meal_cost_per_day = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    hotel_cost_per_night = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    driver_incentive_per_day = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Toll fees (Honduras road network)
    toll_sap_yojoa = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    toll_sap_siguatepeque = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    toll_sap_zambrano = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    toll_salida_sap = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    toll_salida_ptz = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    toll_san_manuel = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Pricing and rounding
    default_markup_percentage = db.Column(db.Numeric(6, 2), nullable=False, default=20)
    rounding_local = db.Column(db.Numeric(12, 2), nullable=False, default=100)  # nearest 100 Lps
    rounding_usd = db.Column(db.Numeric(12, 2), nullable=False, default=5)  # nearest $5

    # Terms
    quotation_validity_days = db.Column(db.Integer, nullable=False, default=30)
    tax_percentage = db.Column(db.Numeric(6, 2), nullable=False, default=15)  # ISV
    payment_terms_days = db.Column(db.Integer, nullable=False, default=30)

    # Reminder schedules (days)
    quotation_reminder_days = db.Column(db.JSON, nullable=True)  # e.g. [3, 7, 14]
    invoice_reminder_days = db.Column(db.JSON, nullable=True)  # e.g. [3, 7]

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    tenant = db.relationship("Tenant", backref=db.backref("parameters", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "year": self.year,
            "local_currency": self.local_currency,
            "use_custom_exchange_rate": self.use_custom_exchange_rate,
            "custom_exchange_rate": float(self.custom_exchange_rate) if self.custom_exchange_rate is not None else None,
            "fuel_price": float(self.fuel_price),
            "fuel_price_unit": self.fuel_price_unit,
            "meal_cost_per_day": float(self.meal_cost_per_day),
            "hotel_cost_per_night": float(self.hotel_cost_per_night),
            "driver_incentive_per_day": float(self.driver_incentive_per_day),
            "toll_sap_yojoa": float(self.toll_sap_yojoa),
            "toll_sap_siguatepeque": float(self.toll_sap_siguatepeque),
            "toll_sap_zambrano": float(self.toll_sap_zambrano),
            "toll_salida_sap": float(self.toll_salida_sap),
            "toll_salida_ptz": float(self.toll_salida_ptz),
            "toll_san_manuel": float(self.toll_san_manuel),
            "default_markup_percentage": float(self.default_markup_percentage),
            "rounding_local": float(self.rounding_local),
            "rounding_usd": float(self.rounding_usd),
            "quotation_validity_days": self.quotation_validity_days,
            "tax_percentage": float(self.tax_percentage),
            "payment_terms_days": self.payment_terms_days,
            "quotation_reminder_days": self.quotation_reminder_days,
            "invoice_reminder_days": self.invoice_reminder_days,
            "is_active": self.is_active,
        }


class ExchangeRate(db.Model):
    """
    Exchange-rate snapshot as delivered by the rate-refresh job.

    Rates are local units per USD. The newest row by fetched_at is the
    "current" rate; documents copy it at creation and never look back.
    """
    __tablename__ = "exchange_rates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    base_currency = db.Column(db.String(3), nullable=False, default="USD")
    rates = db.Column(db.JSON, nullable=False)  # {"HNL": "26.31", "GTQ": "7.66", ...} as decimal strings
    source = db.Column(db.String(64), nullable=False, default="manual")
    fetched_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "base_currency": self.base_currency,
            "rates": self.rates,
            "source": self.source,
            "fetched_at": to_epoch_ms(self.fetched_at),
        }
