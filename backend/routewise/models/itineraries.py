from __future__ import annotations

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow
from ..services.currency import from_cents


class Itinerary(db.Model):
    """
    Scheduled trip, usually created from an approved quotation.

    The agreed price and exchange rate are copied from the quotation when the
    itinerary is created; the itinerary never re-reads the quotation after
    that. Only `completed` itineraries can be invoiced.
    """
    __tablename__ = "itineraries"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "itinerary_number", name="uq_itineraries_tenant_number"),
        # At most one itinerary per quotation (NULLs allowed for manual trips)
        db.UniqueConstraint("quotation_id", name="uq_itineraries_quotation"),
        db.Index("ix_itineraries_tenant_status_start", "tenant_id", "status", "start_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    itinerary_number = db.Column(db.String(96), nullable=False)

    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=True, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("drivers.id"), nullable=True, index=True)

    # Trip details (copied from quotation or entered manually)
    origin = db.Column(db.String(255), nullable=False)
    destination = db.Column(db.String(255), nullable=False)
    base_location = db.Column(db.String(255), nullable=False)
    group_size = db.Column(db.Integer, nullable=False, default=1)
    group_leader_name = db.Column(db.String(120), nullable=True)
    total_distance_km = db.Column(db.Numeric(12, 3), nullable=False)
    total_time_minutes = db.Column(db.Integer, nullable=False, default=0)

    # Schedule
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    estimated_days = db.Column(db.Integer, nullable=False, default=1)

    # Pickup / drop-off
    pickup_location = db.Column(db.String(255), nullable=True)
    pickup_time = db.Column(db.String(16), nullable=True)
    pickup_notes = db.Column(db.Text, nullable=True)
    dropoff_location = db.Column(db.String(255), nullable=True)
    dropoff_time = db.Column(db.String(16), nullable=True)
    dropoff_notes = db.Column(db.Text, nullable=True)

    # Frozen agreed price
    agreed_price_cents = db.Column(db.Integer, nullable=False)
    agreed_price_usd_cents = db.Column(db.Integer, nullable=False)
    local_currency = db.Column(db.String(3), nullable=False, default="HNL")
    exchange_rate = db.Column(db.Numeric(14, 6), nullable=False)

    # Lifecycle
    status = db.Column(db.String(16), nullable=False, default="scheduled", index=True)
    notes = db.Column(db.Text, nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    quotation = db.relationship("Quotation")
    client = db.relationship("Client")
    vehicle = db.relationship("Vehicle")
    driver = db.relationship("Driver")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "itinerary_number": self.itinerary_number,
            "quotation_id": self.quotation_id,
            "client_id": self.client_id,
            "vehicle_id": self.vehicle_id,
            "driver_id": self.driver_id,
            "origin": self.origin,
            "destination": self.destination,
            "base_location": self.base_location,
            "group_size": self.group_size,
            "group_leader_name": self.group_leader_name,
            "total_distance_km": float(self.total_distance_km),
            "total_time_minutes": self.total_time_minutes,
            "start_date": to_epoch_ms(self.start_date),
            "end_date": to_epoch_ms(self.end_date),
            "estimated_days": self.estimated_days,
            "pickup_location": self.pickup_location,
            "pickup_time": self.pickup_time,
            "pickup_notes": self.pickup_notes,
            "dropoff_location": self.dropoff_location,
            "dropoff_time": self.dropoff_time,
            "dropoff_notes": self.dropoff_notes,
            "agreed_price_cents": self.agreed_price_cents,
            "agreed_price_usd_cents": self.agreed_price_usd_cents,
            "local_currency": self.local_currency,
            "exchange_rate": float(self.exchange_rate),
            "status": self.status,
            "notes": self.notes,
            "started_at": to_epoch_ms(self.started_at),
            "completed_at": to_epoch_ms(self.completed_at),
            "cancelled_at": to_epoch_ms(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "created_at": to_epoch_ms(self.created_at),
            "updated_at": to_epoch_ms(self.updated_at),
            "version_id": self.version_id,
            "agreed_price_hnl": float(from_cents(self.agreed_price_cents)),
        }
