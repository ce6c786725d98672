from __future__ import annotations

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow
from ..services.currency import from_cents


class Quotation(db.Model):
    """
    Priced trip quotation.

    WHY: The quotation is where cost and price are frozen. Every money field
    is computed once at creation (cost engine -> pricing -> currency) and
    stored in both local currency and USD together with the exchange rate
    that produced the USD figures. Later rate changes never touch it.

    LIFECYCLE: draft -> sent -> {approved, rejected, expired}; draft -> approved.
    Only approved quotations can become itineraries.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "quotation_number", name="uq_quotations_tenant_number"),
        db.Index("ix_quotations_tenant_status_created", "tenant_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Human-readable number (e.g., "2512-C00005" or long form)
    quotation_number = db.Column(db.String(96), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=True, index=True)

    # Trip details
    origin = db.Column(db.String(255), nullable=False)
    destination = db.Column(db.String(255), nullable=False)
    base_location = db.Column(db.String(255), nullable=False)
    group_size = db.Column(db.Integer, nullable=False, default=1)
    group_leader_name = db.Column(db.String(120), nullable=True)
    extra_mileage_km = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    estimated_days = db.Column(db.Integer, nullable=False, default=1)
    departure_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Route result (from maps collaborator)
    total_distance_km = db.Column(db.Numeric(12, 3), nullable=False)
    total_time_minutes = db.Column(db.Integer, nullable=False, default=0)

    # Cost breakdown (frozen; local cents + USD cents)
    fuel_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    fuel_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    refueling_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    refueling_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    driver_meals_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    driver_meals_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    driver_lodging_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    driver_lodging_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    driver_incentive_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    driver_incentive_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    vehicle_distance_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    vehicle_distance_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    vehicle_daily_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    vehicle_daily_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    toll_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    toll_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_usd_cents = db.Column(db.Integer, nullable=False, default=0)

    # Frozen currency snapshot
    local_currency = db.Column(db.String(3), nullable=False, default="HNL")
    exchange_rate = db.Column(db.Numeric(14, 6), nullable=False)

    # Pricing
    selected_markup_bps = db.Column(db.Integer, nullable=False, default=2000)
    client_discount_bps = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_usd_cents = db.Column(db.Integer, nullable=False, default=0)

    # Inclusion flags
    include_fuel = db.Column(db.Boolean, nullable=False, default=True)
    include_meals = db.Column(db.Boolean, nullable=False, default=True)
    include_tolls = db.Column(db.Boolean, nullable=False, default=True)
    include_driver_incentive = db.Column(db.Boolean, nullable=False, default=True)

    # Lifecycle
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    internal_notes = db.Column(db.Text, nullable=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expired_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client")
    vehicle = db.relationship("Vehicle")
    __mapper_args__ = {"version_id_col": version_id}

    def cost_breakdown_dict(self) -> dict:
        return {
            "fuel_cost_cents": self.fuel_cost_cents,
            "fuel_cost_usd_cents": self.fuel_cost_usd_cents,
            "refueling_cost_cents": self.refueling_cost_cents,
            "refueling_cost_usd_cents": self.refueling_cost_usd_cents,
            "driver_meals_cost_cents": self.driver_meals_cost_cents,
            "driver_meals_cost_usd_cents": self.driver_meals_cost_usd_cents,
            "driver_lodging_cost_cents": self.driver_lodging_cost_cents,
            "driver_lodging_cost_usd_cents": self.driver_lodging_cost_usd_cents,
            "driver_incentive_cost_cents": self.driver_incentive_cost_cents,
            "driver_incentive_cost_usd_cents": self.driver_incentive_cost_usd_cents,
            "vehicle_distance_cost_cents": self.vehicle_distance_cost_cents,
            "vehicle_distance_cost_usd_cents": self.vehicle_distance_cost_usd_cents,
            "vehicle_daily_cost_cents": self.vehicle_daily_cost_cents,
            "vehicle_daily_cost_usd_cents": self.vehicle_daily_cost_usd_cents,
            "toll_cost_cents": self.toll_cost_cents,
            "toll_cost_usd_cents": self.toll_cost_usd_cents,
            "total_cost_cents": self.total_cost_cents,
            "total_cost_usd_cents": self.total_cost_usd_cents,
        }

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "quotation_number": self.quotation_number,
            "client_id": self.client_id,
            "vehicle_id": self.vehicle_id,
            "origin": self.origin,
            "destination": self.destination,
            "base_location": self.base_location,
            "group_size": self.group_size,
            "group_leader_name": self.group_leader_name,
            "extra_mileage_km": float(self.extra_mileage_km),
            "estimated_days": self.estimated_days,
            "departure_date": to_epoch_ms(self.departure_date),
            "total_distance_km": float(self.total_distance_km),
            "total_time_minutes": self.total_time_minutes,
            "local_currency": self.local_currency,
            "exchange_rate": float(self.exchange_rate),
            "selected_markup_percentage": self.selected_markup_bps / 100,
            "client_discount_percentage": self.client_discount_bps / 100,
            "sale_price_cents": self.sale_price_cents,
            "sale_price_usd_cents": self.sale_price_usd_cents,
            "include_fuel": self.include_fuel,
            "include_meals": self.include_meals,
            "include_tolls": self.include_tolls,
            "include_driver_incentive": self.include_driver_incentive,
            "status": self.status,
            "valid_until": to_epoch_ms(self.valid_until),
            "notes": self.notes,
            "internal_notes": self.internal_notes,
            "sent_at": to_epoch_ms(self.sent_at),
            "approved_at": to_epoch_ms(self.approved_at),
            "rejected_at": to_epoch_ms(self.rejected_at),
            "expired_at": to_epoch_ms(self.expired_at),
            "created_at": to_epoch_ms(self.created_at),
            "updated_at": to_epoch_ms(self.updated_at),
            "version_id": self.version_id,
            # Legacy alias: older clients read the local sale price as HNL
            "sale_price_hnl": float(from_cents(self.sale_price_cents)),
        }
        data.update(self.cost_breakdown_dict())
        return data
