from __future__ import annotations

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow
from ..services.currency import from_cents


class ExpenseAdvance(db.Model):
    """
    Money handed to a driver ahead of a trip.

    LIFECYCLE: draft -> pending -> approved -> disbursed -> settled
               draft/pending/approved/disbursed -> cancelled

    After settlement balance_cents = amount - actual expenses:
    positive means the driver owes the company, negative means the company
    owes the driver. balance_settled flips once that difference is paid.
    """
    __tablename__ = "expense_advances"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "advance_number", name="uq_expense_advances_tenant_number"),
        db.Index("ix_expense_advances_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    advance_number = db.Column(db.String(96), nullable=False)

    itinerary_id = db.Column(db.Integer, db.ForeignKey("itineraries.id"), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("drivers.id"), nullable=True, index=True)

    # Frozen amount
    amount_cents = db.Column(db.Integer, nullable=False)
    amount_usd_cents = db.Column(db.Integer, nullable=False)
    local_currency = db.Column(db.String(3), nullable=False, default="HNL")
    exchange_rate = db.Column(db.Numeric(14, 6), nullable=False)
    purpose = db.Column(db.String(255), nullable=False)

    # Estimated breakdown (local cents)
    estimated_fuel_cents = db.Column(db.Integer, nullable=False, default=0)
    estimated_meals_cents = db.Column(db.Integer, nullable=False, default=0)
    estimated_lodging_cents = db.Column(db.Integer, nullable=False, default=0)
    estimated_tolls_cents = db.Column(db.Integer, nullable=False, default=0)
    estimated_other_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.String(120), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disbursed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disbursement_method = db.Column(db.String(16), nullable=True)  # cash, transfer
    disbursement_reference = db.Column(db.String(128), nullable=True)

    # Settlement (local cents)
    actual_fuel_cents = db.Column(db.Integer, nullable=True)
    actual_meals_cents = db.Column(db.Integer, nullable=True)
    actual_lodging_cents = db.Column(db.Integer, nullable=True)
    actual_tolls_cents = db.Column(db.Integer, nullable=True)
    actual_other_cents = db.Column(db.Integer, nullable=True)
    actual_expenses_cents = db.Column(db.Integer, nullable=True)
    receipts_count = db.Column(db.Integer, nullable=True)
    balance_cents = db.Column(db.Integer, nullable=True)
    balance_settled = db.Column(db.Boolean, nullable=False, default=False)
    settlement_notes = db.Column(db.Text, nullable=True)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    settled_by = db.Column(db.String(120), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    itinerary = db.relationship("Itinerary")
    driver = db.relationship("Driver")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "advance_number": self.advance_number,
            "itinerary_id": self.itinerary_id,
            "driver_id": self.driver_id,
            "amount_cents": self.amount_cents,
            "amount_usd_cents": self.amount_usd_cents,
            "local_currency": self.local_currency,
            "exchange_rate": float(self.exchange_rate),
            "purpose": self.purpose,
            "estimated_fuel_cents": self.estimated_fuel_cents,
            "estimated_meals_cents": self.estimated_meals_cents,
            "estimated_lodging_cents": self.estimated_lodging_cents,
            "estimated_tolls_cents": self.estimated_tolls_cents,
            "estimated_other_cents": self.estimated_other_cents,
            "status": self.status,
            "submitted_at": to_epoch_ms(self.submitted_at),
            "approved_by": self.approved_by,
            "approved_at": to_epoch_ms(self.approved_at),
            "disbursed_at": to_epoch_ms(self.disbursed_at),
            "disbursement_method": self.disbursement_method,
            "disbursement_reference": self.disbursement_reference,
            "actual_fuel_cents": self.actual_fuel_cents,
            "actual_meals_cents": self.actual_meals_cents,
            "actual_lodging_cents": self.actual_lodging_cents,
            "actual_tolls_cents": self.actual_tolls_cents,
            "actual_other_cents": self.actual_other_cents,
            "actual_expenses_cents": self.actual_expenses_cents,
            "receipts_count": self.receipts_count,
            "balance_cents": self.balance_cents,
            "balance_settled": self.balance_settled,
            "settlement_notes": self.settlement_notes,
            "settled_at": to_epoch_ms(self.settled_at),
            "settled_by": self.settled_by,
            "notes": self.notes,
            "cancelled_at": to_epoch_ms(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "created_at": to_epoch_ms(self.created_at),
            "updated_at": to_epoch_ms(self.updated_at),
            "version_id": self.version_id,
            "amount_hnl": float(from_cents(self.amount_cents)),
        }
