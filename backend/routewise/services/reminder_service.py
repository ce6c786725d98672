# Overview: Service-layer operations for scheduled reminders; follow-ups, overdue scans and due processing.

from __future__ import annotations

from datetime import datetime, timedelta

from ..collaborators import NotificationEvent
from ..extensions import db
from ..models import Invoice, Quotation, ScheduledReminder
from ..time_utils import utcnow
from .concurrency import fire_side_effect
from .state_machines import InvoiceStatus, PaymentStatus, QuotationStatus
from .tenant_service import (
    DEFAULT_INVOICE_REMINDER_DAYS,
    DEFAULT_QUOTATION_REMINDER_DAYS,
    get_active_parameters,
)

QUOTATION_FOLLOWUP = "quotation_followup"
INVOICE_OVERDUE = "invoice_overdue"


def _reminder_days(tenant_id: int, kind: str) -> list[int]:
    params = get_active_parameters(tenant_id)
    if kind == QUOTATION_FOLLOWUP:
        days = params.quotation_reminder_days if params else None
        return list(days if days is not None else DEFAULT_QUOTATION_REMINDER_DAYS)
    days = params.invoice_reminder_days if params else None
    return list(days if days is not None else DEFAULT_INVOICE_REMINDER_DAYS)


def _exists(tenant_id: int, entity_type: str, entity_id: int, reminder_type: str, day: int) -> bool:
    return (
        db.session.query(ScheduledReminder.id)
        .filter_by(
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            reminder_type=reminder_type,
            reminder_day=day,
        )
        .first()
        is not None
    )


def schedule_quotation_followups(tenant_id: int, quotation_id: int, sent_at: datetime) -> list[ScheduledReminder]:
    created = []
    for day in _reminder_days(tenant_id, QUOTATION_FOLLOWUP):
        if _exists(tenant_id, "quotation", quotation_id, QUOTATION_FOLLOWUP, day):
            continue
        reminder = ScheduledReminder(
            tenant_id=tenant_id,
            entity_type="quotation",
            entity_id=quotation_id,
            reminder_type=QUOTATION_FOLLOWUP,
            reminder_day=day,
            scheduled_for=sent_at + timedelta(days=day),
        )
        db.session.add(reminder)
        created.append(reminder)
    return created


def cancel_reminders(
    tenant_id: int,
    entity_type: str,
    entity_id: int,
    reason: str,
    *,
    reminder_type: str | None = None,
    now: datetime | None = None,
) -> int:
    """Mark every pending reminder for the entity as processed and skipped."""
    now = now or utcnow()
    query = db.session.query(ScheduledReminder).filter_by(
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        processed=False,
    )
    if reminder_type:
        query = query.filter(ScheduledReminder.reminder_type == reminder_type)

    count = 0
    for reminder in query.all():
        reminder.processed = True
        reminder.processed_at = now
        reminder.skipped = True
        reminder.skip_reason = reason
        count += 1
    return count


def scan_overdue_invoices(tenant_id: int, now: datetime | None = None) -> dict:
    """
    Flag sent invoices past their due date as overdue and schedule the
    configured overdue reminders (days after the due date).
    """
    now = now or utcnow()
    days = _reminder_days(tenant_id, INVOICE_OVERDUE)

    invoices = (
        db.session.query(Invoice)
        .filter(
            Invoice.tenant_id == tenant_id,
            Invoice.status == InvoiceStatus.SENT.value,
            Invoice.payment_status != PaymentStatus.PAID.value,
            Invoice.due_date < now,
        )
        .all()
    )

    flagged = 0
    scheduled = 0
    for invoice in invoices:
        if invoice.overdue_flagged_at is None:
            invoice.overdue_flagged_at = now
            invoice.payment_status = PaymentStatus.OVERDUE.value
            flagged += 1
        for day in days:
            if _exists(tenant_id, "invoice", invoice.id, INVOICE_OVERDUE, day):
                continue
            db.session.add(
                ScheduledReminder(
                    tenant_id=tenant_id,
                    entity_type="invoice",
                    entity_id=invoice.id,
                    reminder_type=INVOICE_OVERDUE,
                    reminder_day=day,
                    scheduled_for=invoice.due_date + timedelta(days=day),
                )
            )
            scheduled += 1

    return {"processed": len(invoices), "flagged": flagged, "scheduled": scheduled}


def _deliver(notifier, event) -> bool:
    notifier.notify(event)
    return True


def process_due_reminders(tenant_id: int, notifier, now: datetime | None = None) -> int:
    """
    Turn pending reminders whose time has come into notifications.

    Reminders for documents that have moved on (quotation no longer sent,
    invoice no longer open) are skipped instead.
    Each delivery commits on its own; a notifier failure is logged and the
    remaining reminders are still processed.
    """
    now = now or utcnow()
    due = (
        db.session.query(ScheduledReminder)
        .filter(
            ScheduledReminder.tenant_id == tenant_id,
            ScheduledReminder.processed.is_(False),
            ScheduledReminder.scheduled_for <= now,
        )
        .order_by(ScheduledReminder.scheduled_for.asc())
        .all()
    )

    delivered = 0
    for reminder in due:
        reminder.processed = True
        reminder.processed_at = now

        if reminder.reminder_type == QUOTATION_FOLLOWUP:
            doc = db.session.query(Quotation).filter_by(id=reminder.entity_id, tenant_id=tenant_id).first()
            if not doc or doc.status != QuotationStatus.SENT.value:
                reminder.skipped = True
                reminder.skip_reason = "Quotation no longer awaiting response"
                continue
            event = NotificationEvent(
                event_type=QUOTATION_FOLLOWUP,
                tenant_id=tenant_id,
                document_id=doc.id,
                document_number=doc.quotation_number,
                amount_cents=doc.sale_price_cents,
                currency=doc.local_currency,
                client_name=doc.client.display_name if doc.client else None,
            )
        else:
            doc = db.session.query(Invoice).filter_by(id=reminder.entity_id, tenant_id=tenant_id).first()
            if not doc or doc.status != InvoiceStatus.SENT.value or doc.payment_status == PaymentStatus.PAID.value:
                reminder.skipped = True
                reminder.skip_reason = "Invoice no longer outstanding"
                continue
            event = NotificationEvent(
                event_type=INVOICE_OVERDUE,
                tenant_id=tenant_id,
                document_id=doc.id,
                document_number=doc.invoice_number,
                amount_cents=doc.amount_due_cents,
                currency=doc.local_currency,
                client_name=doc.client.display_name if doc.client else None,
            )

        # A failed delivery rolls back its reminder, which stays pending for the next run
        if fire_side_effect(f"deliver_reminder_{reminder.id}", _deliver, notifier, event):
            delivered += 1

    return delivered


def list_reminders(tenant_id: int, entity_type: str, entity_id: int) -> list[ScheduledReminder]:
    return (
        db.session.query(ScheduledReminder)
        .filter_by(tenant_id=tenant_id, entity_type=entity_type, entity_id=entity_id)
        .order_by(ScheduledReminder.reminder_day.asc())
        .all()
    )
