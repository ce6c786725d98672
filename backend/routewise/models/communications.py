from __future__ import annotations

from ..extensions import db
from ..time_utils import to_epoch_ms, utcnow


class ScheduledReminder(db.Model):
    """
    Follow-up scheduled against a document.

    quotation_followup reminders are created when a quotation is sent and
    skipped once it is approved, rejected or expired. invoice_overdue
    reminders are created by the overdue scan and skipped once the invoice
    is paid. Delivery itself is outside this service.
    """
    __tablename__ = "scheduled_reminders"
    __table_args__ = (
        db.Index("ix_scheduled_reminders_entity", "tenant_id", "entity_type", "entity_id"),
        db.Index("ix_scheduled_reminders_due", "processed", "scheduled_for"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    entity_type = db.Column(db.String(32), nullable=False)  # quotation, invoice
    entity_id = db.Column(db.Integer, nullable=False)
    reminder_type = db.Column(db.String(32), nullable=False)  # quotation_followup, invoice_overdue
    reminder_day = db.Column(db.Integer, nullable=False)

    scheduled_for = db.Column(db.DateTime(timezone=True), nullable=False)
    processed = db.Column(db.Boolean, nullable=False, default=False)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    skipped = db.Column(db.Boolean, nullable=False, default=False)
    skip_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "reminder_type": self.reminder_type,
            "reminder_day": self.reminder_day,
            "scheduled_for": to_epoch_ms(self.scheduled_for),
            "processed": self.processed,
            "processed_at": to_epoch_ms(self.processed_at),
            "skipped": self.skipped,
            "skip_reason": self.skip_reason,
        }


class Notification(db.Model):
    """In-app notification record."""
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)  # payment_received, invoice_paid, quotation_approved, itinerary_created
    entity_type = db.Column(db.String(32), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    payload = db.Column(db.JSON, nullable=True)
    read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "type": self.type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "title": self.title,
            "message": self.message,
            "payload": self.payload,
            "read": self.read,
            "created_at": to_epoch_ms(self.created_at),
        }
