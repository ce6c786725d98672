from __future__ import annotations

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow
from ..services.currency import from_cents


class Invoice(db.Model):
    """
    Invoice for a completed trip.

    WHY: Carries its own frozen currency snapshot (copied from the itinerary)
    and a running balance. amount_paid_cents / amount_due_cents /
    payment_status are maintained exclusively by the payment ledger.

    PAYMENT STATUS: unpaid, partial, paid, overdue
    LIFECYCLE: draft -> {sent, cancelled}; sent -> {paid, cancelled, void}; paid -> void
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
        db.Index("ix_invoices_tenant_status", "tenant_id", "status"),
        db.Index("ix_invoices_tenant_payment_status", "tenant_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(96), nullable=False)

    itinerary_id = db.Column(db.Integer, db.ForeignKey("itineraries.id"), nullable=True, index=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    description = db.Column(db.String(512), nullable=False)

    # Frozen currency snapshot
    local_currency = db.Column(db.String(3), nullable=False, default="HNL")
    exchange_rate = db.Column(db.Numeric(14, 6), nullable=False)

    # Amounts (local cents + USD cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    subtotal_usd_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=1500)  # ISV 15%
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_usd_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    total_usd_cents = db.Column(db.Integer, nullable=False)

    # [{"description": str, "amount_cents": int}, ...]
    additional_charges = db.Column(db.JSON, nullable=True)
    discounts = db.Column(db.JSON, nullable=True)

    # Payment tracking (local cents)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_due_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)
    # Set by the overdue scan; keeps an open balance overdue across payment edits
    overdue_flagged_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Lifecycle
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    notes = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    itinerary = db.relationship("Itinerary")
    quotation = db.relationship("Quotation")
    client = db.relationship("Client")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "invoice_number": self.invoice_number,
            "itinerary_id": self.itinerary_id,
            "quotation_id": self.quotation_id,
            "client_id": self.client_id,
            "invoice_date": to_epoch_ms(self.invoice_date),
            "due_date": to_epoch_ms(self.due_date),
            "description": self.description,
            "local_currency": self.local_currency,
            "exchange_rate": float(self.exchange_rate),
            "subtotal_cents": self.subtotal_cents,
            "subtotal_usd_cents": self.subtotal_usd_cents,
            "tax_percentage": self.tax_rate_bps / 100,
            "tax_amount_cents": self.tax_amount_cents,
            "tax_amount_usd_cents": self.tax_amount_usd_cents,
            "total_cents": self.total_cents,
            "total_usd_cents": self.total_usd_cents,
            "additional_charges": self.additional_charges or [],
            "discounts": self.discounts or [],
            "amount_paid_cents": self.amount_paid_cents,
            "amount_due_cents": self.amount_due_cents,
            "payment_status": self.payment_status,
            "overdue_flagged_at": to_epoch_ms(self.overdue_flagged_at),
            "status": self.status,
            "notes": self.notes,
            "sent_at": to_epoch_ms(self.sent_at),
            "paid_at": to_epoch_ms(self.paid_at),
            "cancelled_at": to_epoch_ms(self.cancelled_at),
            "voided_at": to_epoch_ms(self.voided_at),
            "void_reason": self.void_reason,
            "created_at": to_epoch_ms(self.created_at),
            "updated_at": to_epoch_ms(self.updated_at),
            "version_id": self.version_id,
            # Legacy aliases of the local-currency amounts
            "subtotal_hnl": float(from_cents(self.subtotal_cents)),
            "tax_amount_hnl": float(from_cents(self.tax_amount_cents)),
            "total_hnl": float(from_cents(self.total_cents)),
        }


class InvoicePayment(db.Model):
    """
    Payment received against an invoice (local currency).

    Append-only from the ledger's point of view: a correction deletes the
    record and the ledger recomputes the parent invoice's aggregates.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=True)  # cash, transfer, card, check
    reference_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "invoice_id": self.invoice_id,
            "payment_date": to_epoch_ms(self.payment_date),
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_at": to_epoch_ms(self.created_at),
        }
