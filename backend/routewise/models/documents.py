from __future__ import annotations

import json

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow


class DocumentSequence(db.Model):
    """
    Per-tenant document sequence high-water mark.

    WHY: Number allocation scans existing documents (current and legacy
    formats) and takes max + 1. That scan is only safe if concurrent
    allocations for the same tenant and type serialize, so this row is the
    lock target; last_number also remembers numbers whose documents were
    later deleted, so a number is never handed out twice.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "document_type", name="uq_doc_sequences_tenant_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)  # quotation, itinerary, invoice, expense_advance
    last_number = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "document_type": self.document_type,
            "last_number": self.last_number,
            "updated_at": to_epoch_ms(self.updated_at),
        }


class DocumentEvent(db.Model):
    """
    Append-only audit trail of document lifecycle events.

    Written in the same transaction as the change it records: creation,
    every status transition, and the explicit updates that are allowed to
    touch frozen amounts (reprice, adjustment, advance edit).
    """
    __tablename__ = "document_events"
    __table_args__ = (
        db.Index("ix_document_events_entity", "tenant_id", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    entity_type = db.Column(db.String(32), nullable=False)  # quotation, itinerary, invoice, expense_advance, invoice_payment
    entity_id = db.Column(db.Integer, nullable=False)
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., QUOTATION_CREATED, INVOICE_SENT

    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=True)

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)  # JSON text

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "event_type": self.event_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "note": self.note,
            "payload": json.loads(self.payload) if self.payload else None,
            "occurred_at": to_epoch_ms(self.occurred_at),
        }
