from __future__ import annotations

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow


class Vehicle(db.Model):
    """
    Fleet vehicle with the figures the cost engine needs.

    Units are stored as entered; the cost engine normalizes efficiency to
    km per gallon and tank capacity to gallons.
    """
    __tablename__ = "vehicles"
    __table_args__ = (
        db.Index("ix_vehicles_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    license_plate = db.Column(db.String(32), nullable=True)
    passenger_capacity = db.Column(db.Integer, nullable=False, default=0)

    fuel_capacity = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    fuel_capacity_unit = db.Column(db.String(8), nullable=False, default="gal")  # gal, l
    fuel_efficiency = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    fuel_efficiency_unit = db.Column(db.String(8), nullable=False, default="km/gal")  # km/gal, km/l, mpg

    cost_per_distance = db.Column(db.Numeric(12, 4), nullable=False, default=0)  # local currency per km
    cost_per_day = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    base_location = db.Column(db.String(255), nullable=True)
    ownership = db.Column(db.String(16), nullable=False, default="owned")  # owned, rented
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Vehicle id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "license_plate": self.license_plate,
            "passenger_capacity": self.passenger_capacity,
            "fuel_capacity": float(self.fuel_capacity),
            "fuel_capacity_unit": self.fuel_capacity_unit,
            "fuel_efficiency": float(self.fuel_efficiency),
            "fuel_efficiency_unit": self.fuel_efficiency_unit,
            "cost_per_distance": float(self.cost_per_distance),
            "cost_per_day": float(self.cost_per_day),
            "base_location": self.base_location,
            "ownership": self.ownership,
            "status": self.status,
            "created_at": to_epoch_ms(self.created_at),
        }


class Driver(db.Model):
    __tablename__ = "drivers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    license_number = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "license_number": self.license_number,
            "status": self.status,
        }


class Client(db.Model):
    """
    Customer of the operator.

    `code` is the short uppercase token used in long-form document numbers
    (e.g. HOTR for a hotel client).
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "code", name="uq_clients_tenant_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, default="company")  # individual, company
    company_name = db.Column(db.String(255), nullable=True)
    first_name = db.Column(db.String(120), nullable=True)
    last_name = db.Column(db.String(120), nullable=True)
    code = db.Column(db.String(16), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    pricing_level = db.Column(db.String(16), nullable=False, default="standard")  # standard, preferred, vip
    discount_percentage = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    payment_terms_days = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    @property
    def display_name(self) -> str:
        if self.type == "company":
            return self.company_name or "Empresa"
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or "Cliente"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "type": self.type,
            "company_name": self.company_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "code": self.code,
            "email": self.email,
            "pricing_level": self.pricing_level,
            "discount_percentage": float(self.discount_percentage),
            "payment_terms_days": self.payment_terms_days,
            "status": self.status,
        }
