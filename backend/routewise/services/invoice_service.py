# Overview: Service-layer operations for invoices; creation from itineraries, adjustments, lifecycle and stats.

"""
Invoice Service

WHY: An invoice freezes its own currency snapshot. When it comes from an
itinerary, the subtotal (local + USD) and exchange rate are copied from the
itinerary's agreed price; tax is applied on top. Adjustments (additional
charges and discounts) are only editable while the invoice is a draft.

TOTALS:
    adjusted_subtotal = subtotal + sum(charges) - sum(discounts)
    tax = adjusted_subtotal * tax_percentage / 100
    total = adjusted_subtotal + tax
    USD figures = local figures / exchange_rate (subtotal USD is copied
    from the itinerary when there are no adjustments)

Balances (amount_paid / amount_due / payment_status) belong to the payment
ledger; see payment_service.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app

from ..errors import ConflictError, StateError, ValidationError
from ..extensions import db
from ..models import Client, Invoice, InvoicePayment, Itinerary, Quotation
from ..time_utils import utcnow
from . import numbering, reminder_service
from .audit_service import record_event, record_transition
from .concurrency import fire_side_effect, run_unit
from .currency import from_cents, to_cents, to_decimal, to_usd
from .payment_service import apply_balance
from .state_machines import INVOICE_MACHINE, InvoiceStatus, ItineraryStatus, PaymentStatus
from .tenant_service import (
    default_payment_terms_days,
    default_tax_percentage,
    get_owned,
    get_tenant,
)

# Only a voided invoice frees its itinerary for a new invoice
RELEASED_STATUSES = (InvoiceStatus.VOID.value,)


def _normalize_adjustments(items, field: str) -> list[dict]:
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        raise ValidationError(f"{field} must be a list")
    cleaned = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError(f"Each entry in {field} must be an object")
        description = (item.get("description") or "").strip()
        if not description:
            raise ValidationError(f"Each entry in {field} needs a description")
        amount = item.get("amount_cents")
        if amount is None or isinstance(amount, bool):
            raise ValidationError(f"Each entry in {field} needs amount_cents")
        try:
            amount = int(amount)
        except (TypeError, ValueError):
            raise ValidationError(f"amount_cents in {field} must be an integer")
        if amount < 0:
            raise ValidationError(f"amount_cents in {field} cannot be negative")
        cleaned.append({"description": description[:255], "amount_cents": amount})
    return cleaned


def _tax_bps(tax_percentage) -> int:
    pct = to_decimal(tax_percentage, "tax_percentage")
    if pct < 0 or pct > 100:
        raise ValidationError("tax_percentage must be between 0 and 100")
    return to_cents(pct)


def apply_totals(invoice: Invoice, *, subtotal_usd_cents: int | None = None) -> None:
    """Recompute tax and totals (local + USD) from subtotal and adjustments."""
    rate = to_decimal(invoice.exchange_rate, "exchange_rate")
    charges = sum(c["amount_cents"] for c in invoice.additional_charges or [])
    discounts = sum(d["amount_cents"] for d in invoice.discounts or [])

    adjusted = from_cents(invoice.subtotal_cents + charges - discounts)
    if adjusted < 0:
        raise ValidationError("Discounts cannot exceed the subtotal")
    tax = adjusted * Decimal(invoice.tax_rate_bps) / Decimal(10000)
    total = adjusted + tax

    if subtotal_usd_cents is not None and not charges and not discounts:
        adjusted_usd = from_cents(subtotal_usd_cents)
        invoice.subtotal_usd_cents = subtotal_usd_cents
    else:
        adjusted_usd = to_usd(adjusted, rate)
        invoice.subtotal_usd_cents = to_cents(to_usd(from_cents(invoice.subtotal_cents), rate))
    tax_usd = adjusted_usd * Decimal(invoice.tax_rate_bps) / Decimal(10000)

    invoice.tax_amount_cents = to_cents(tax)
    invoice.tax_amount_usd_cents = to_cents(tax_usd)
    invoice.total_cents = to_cents(total)
    invoice.total_usd_cents = to_cents(adjusted_usd + tax_usd)
    apply_balance(invoice, invoice.amount_paid_cents or 0)


def _due_date(tenant_id: int, client: Client | None, invoice_date: datetime, due_date: datetime | None) -> datetime:
    if due_date is not None:
        if due_date < invoice_date:
            raise ValidationError("due_date cannot be before invoice_date")
        return due_date
    terms = client.payment_terms_days if client and client.payment_terms_days is not None else None
    if terms is None:
        terms = default_payment_terms_days(tenant_id)
    return invoice_date + timedelta(days=int(terms))


# =============================================================================
# Reads
# =============================================================================


def get_invoice(tenant_id: int, invoice_id: int) -> Invoice:
    return get_owned(Invoice, tenant_id, invoice_id, label="Invoice")


def list_invoices(
    tenant_id: int,
    *,
    status: str | None = None,
    payment_status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Invoice]:
    query = db.session.query(Invoice).filter(Invoice.tenant_id == tenant_id)
    if status:
        query = query.filter(Invoice.status == INVOICE_MACHINE.coerce(status).value)
    if payment_status:
        try:
            query = query.filter(Invoice.payment_status == PaymentStatus(payment_status).value)
        except ValueError:
            raise ValidationError(f"Invalid payment_status '{payment_status}'")
    limit = max(1, min(int(limit), 500))
    return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).offset(max(0, int(offset))).limit(limit).all()


def invoice_stats(tenant_id: int, *, now: datetime | None = None) -> dict:
    """Dashboard figures in local cents."""
    now = now or utcnow()
    recent_cutoff = now - timedelta(days=30)
    invoices = db.session.query(Invoice).filter(Invoice.tenant_id == tenant_id).all()

    open_invoices = [
        i for i in invoices
        if i.status == InvoiceStatus.SENT.value
        and i.payment_status in (PaymentStatus.UNPAID.value, PaymentStatus.PARTIAL.value, PaymentStatus.OVERDUE.value)
    ]
    return {
        "total_invoices": len(invoices),
        "unpaid_count": len(open_invoices),
        "overdue_count": len([i for i in open_invoices if i.due_date and i.due_date < now]),
        "recent_count": len([i for i in invoices if i.created_at and i.created_at > recent_cutoff]),
        "total_receivables_cents": sum(i.amount_due_cents for i in open_invoices),
        "total_revenue_cents": sum(
            i.total_cents for i in invoices if i.payment_status == PaymentStatus.PAID.value and i.status != InvoiceStatus.VOID.value
        ),
    }


# =============================================================================
# Creation
# =============================================================================


def create_invoice_from_itinerary(
    tenant_id: int,
    itinerary_id: int,
    *,
    tax_percentage=None,
    invoice_date: datetime | None = None,
    due_date: datetime | None = None,
    notes: str | None = None,
    additional_charges=None,
    discounts=None,
) -> Invoice:
    """
    Invoice a completed itinerary at its frozen agreed price.

    Only one live invoice per itinerary; void or cancelled invoices do not
    block a replacement.
    """
    charges = _normalize_adjustments(additional_charges, "additional_charges")
    discount_items = _normalize_adjustments(discounts, "discounts")

    def _op() -> Invoice:
        itinerary = get_owned(Itinerary, tenant_id, itinerary_id, lock=True, label="Itinerary")
        if itinerary.status != ItineraryStatus.COMPLETED.value:
            raise StateError("Only completed itineraries can be invoiced")
        existing = (
            db.session.query(Invoice.id, Invoice.invoice_number)
            .filter(
                Invoice.tenant_id == tenant_id,
                Invoice.itinerary_id == itinerary.id,
                Invoice.status.notin_(RELEASED_STATUSES),
            )
            .first()
        )
        if existing:
            raise ConflictError(
                f"Invoice {existing.invoice_number} already exists for this itinerary",
                {"invoice_id": existing.id},
            )

        issued = invoice_date or utcnow()
        client = itinerary.client
        number, _seq = numbering.allocate_document_number(
            tenant_id,
            numbering.INVOICE,
            client=client,
            leader_name=itinerary.group_leader_name,
            group_size=itinerary.group_size,
        )
        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_number=number,
            itinerary_id=itinerary.id,
            quotation_id=itinerary.quotation_id,
            client_id=itinerary.client_id,
            invoice_date=issued,
            due_date=_due_date(tenant_id, client, issued, due_date),
            description=f"Servicio de transporte: {itinerary.origin} → {itinerary.destination}"[:512],
            local_currency=itinerary.local_currency,
            exchange_rate=itinerary.exchange_rate,
            subtotal_cents=itinerary.agreed_price_cents,
            tax_rate_bps=_tax_bps(tax_percentage if tax_percentage is not None else default_tax_percentage(tenant_id)),
            additional_charges=charges or None,
            discounts=discount_items or None,
            amount_paid_cents=0,
            status=InvoiceStatus.DRAFT.value,
            notes=notes,
        )
        apply_totals(invoice, subtotal_usd_cents=itinerary.agreed_price_usd_cents)
        db.session.add(invoice)
        db.session.flush()

        record_event(
            tenant_id=tenant_id,
            entity_type="invoice",
            entity_id=invoice.id,
            event_type="INVOICE_CREATED",
            to_status=invoice.status,
            payload={"itinerary_id": itinerary.id, "total_cents": invoice.total_cents},
        )
        return invoice

    invoice = run_unit(_op)
    current_app.logger.info("Invoice %s created for itinerary %s", invoice.invoice_number, itinerary_id)
    return invoice


def create_invoice(
    tenant_id: int,
    *,
    subtotal_cents: int,
    exchange_rate,
    description: str | None = None,
    client_id: int | None = None,
    quotation_id: int | None = None,
    tax_percentage=None,
    invoice_date: datetime | None = None,
    due_date: datetime | None = None,
    notes: str | None = None,
    additional_charges=None,
    discounts=None,
) -> Invoice:
    """Manual invoice from an explicit subtotal and exchange rate."""
    if subtotal_cents is None or isinstance(subtotal_cents, bool) or int(subtotal_cents) <= 0:
        raise ValidationError("subtotal_cents must be positive")
    rate = to_decimal(exchange_rate, "exchange_rate")
    if rate <= 0:
        raise ValidationError("exchange_rate must be positive")
    charges = _normalize_adjustments(additional_charges, "additional_charges")
    discount_items = _normalize_adjustments(discounts, "discounts")

    def _op() -> Invoice:
        tenant = get_tenant(tenant_id)
        quotation = get_owned(Quotation, tenant_id, quotation_id, label="Quotation") if quotation_id else None
        if client_id:
            client = get_owned(Client, tenant_id, client_id, label="Client")
        else:
            client = quotation.client if quotation else None

        issued = invoice_date or utcnow()
        number, _seq = numbering.allocate_document_number(
            tenant_id,
            numbering.INVOICE,
            client=client,
            leader_name=quotation.group_leader_name if quotation else None,
            group_size=quotation.group_size if quotation else None,
        )
        if description:
            text = description.strip()
        elif quotation:
            text = f"Servicio de transporte: {quotation.origin} → {quotation.destination}"
        else:
            text = "Servicio de transporte"

        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_number=number,
            quotation_id=quotation.id if quotation else None,
            client_id=client.id if client else None,
            invoice_date=issued,
            due_date=_due_date(tenant_id, client, issued, due_date),
            description=text[:512],
            local_currency=quotation.local_currency if quotation else tenant.local_currency,
            exchange_rate=rate,
            subtotal_cents=int(subtotal_cents),
            tax_rate_bps=_tax_bps(tax_percentage if tax_percentage is not None else default_tax_percentage(tenant_id)),
            additional_charges=charges or None,
            discounts=discount_items or None,
            amount_paid_cents=0,
            status=InvoiceStatus.DRAFT.value,
            notes=notes,
        )
        apply_totals(invoice)
        db.session.add(invoice)
        db.session.flush()
        record_event(
            tenant_id=tenant_id,
            entity_type="invoice",
            entity_id=invoice.id,
            event_type="INVOICE_CREATED",
            to_status=invoice.status,
            payload={"total_cents": invoice.total_cents, "exchange_rate": str(rate)},
        )
        return invoice

    return run_unit(_op)


def update_invoice_adjustments(
    tenant_id: int,
    invoice_id: int,
    *,
    additional_charges=None,
    discounts=None,
    notes: str | None = None,
    due_date: datetime | None = None,
) -> Invoice:
    """Replace charges/discounts on a draft invoice and recompute its totals."""
    def _op() -> Invoice:
        invoice = get_owned(Invoice, tenant_id, invoice_id, lock=True, label="Invoice")
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise StateError("Only draft invoices can be edited")

        before = {"total_cents": invoice.total_cents, "tax_amount_cents": invoice.tax_amount_cents}
        if additional_charges is not None:
            invoice.additional_charges = _normalize_adjustments(additional_charges, "additional_charges") or None
        if discounts is not None:
            invoice.discounts = _normalize_adjustments(discounts, "discounts") or None
        if notes is not None:
            invoice.notes = notes
        if due_date is not None:
            if due_date < invoice.invoice_date:
                raise ValidationError("due_date cannot be before invoice_date")
            invoice.due_date = due_date

        if additional_charges is not None or discounts is not None:
            subtotal_usd = invoice.itinerary.agreed_price_usd_cents if invoice.itinerary else None
            apply_totals(invoice, subtotal_usd_cents=subtotal_usd)

        record_event(
            tenant_id=tenant_id,
            entity_type="invoice",
            entity_id=invoice.id,
            event_type="INVOICE_UPDATED",
            payload={
                "before": before,
                "after": {"total_cents": invoice.total_cents, "tax_amount_cents": invoice.tax_amount_cents},
            },
        )
        return invoice

    return run_unit(_op)


# =============================================================================
# Transitions
# =============================================================================


def _transition(tenant_id: int, invoice_id: int, target: InvoiceStatus, mutate=None, note: str | None = None) -> Invoice:
    def _op() -> Invoice:
        invoice = get_owned(Invoice, tenant_id, invoice_id, lock=True, label="Invoice")
        from_status = invoice.status
        INVOICE_MACHINE.require(from_status, target)
        invoice.status = target.value
        if mutate:
            mutate(invoice)
        record_transition(invoice, "invoice", from_status, target, note=note)
        return invoice

    invoice = run_unit(_op)
    current_app.logger.info("Invoice %s -> %s", invoice.invoice_number, target.value)
    return invoice


def send_invoice(tenant_id: int, invoice_id: int, *, now: datetime | None = None) -> Invoice:
    now = now or utcnow()

    def _mutate(inv: Invoice) -> None:
        inv.sent_at = now

    return _transition(tenant_id, invoice_id, InvoiceStatus.SENT, _mutate)


def mark_invoice_paid(tenant_id: int, invoice_id: int, *, now: datetime | None = None) -> Invoice:
    """
    Close a sent invoice as paid without a ledger entry (settled outside
    the system). amount_paid keeps the recorded payments; amount_due is
    cleared.
    """
    now = now or utcnow()

    def _mutate(inv: Invoice) -> None:
        inv.paid_at = now
        inv.payment_status = PaymentStatus.PAID.value
        inv.amount_due_cents = 0

    invoice = _transition(tenant_id, invoice_id, InvoiceStatus.PAID, _mutate)
    fire_side_effect(
        "cancel_overdue_reminders",
        reminder_service.cancel_reminders,
        tenant_id,
        "invoice",
        invoice.id,
        "Invoice paid",
        reminder_type=reminder_service.INVOICE_OVERDUE,
    )
    return invoice


def cancel_invoice(tenant_id: int, invoice_id: int, *, reason: str | None = None, now: datetime | None = None) -> Invoice:
    now = now or utcnow()

    def _mutate(inv: Invoice) -> None:
        inv.cancelled_at = now

    invoice = _transition(tenant_id, invoice_id, InvoiceStatus.CANCELLED, _mutate, note=reason)
    fire_side_effect(
        "cancel_overdue_reminders",
        reminder_service.cancel_reminders,
        tenant_id,
        "invoice",
        invoice.id,
        "Invoice cancelled",
    )
    return invoice


def void_invoice(tenant_id: int, invoice_id: int, *, reason: str, now: datetime | None = None) -> Invoice:
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to void an invoice")
    now = now or utcnow()

    def _mutate(inv: Invoice) -> None:
        inv.voided_at = now
        inv.void_reason = reason.strip()[:255]

    invoice = _transition(tenant_id, invoice_id, InvoiceStatus.VOID, _mutate, note=reason)
    fire_side_effect(
        "cancel_overdue_reminders",
        reminder_service.cancel_reminders,
        tenant_id,
        "invoice",
        invoice.id,
        "Invoice voided",
    )
    return invoice


def delete_invoice(tenant_id: int, invoice_id: int) -> None:
    def _op() -> None:
        invoice = get_owned(Invoice, tenant_id, invoice_id, lock=True, label="Invoice")
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise StateError("Only draft invoices can be deleted")
        (
            db.session.query(InvoicePayment)
            .filter_by(tenant_id=tenant_id, invoice_id=invoice.id)
            .delete(synchronize_session=False)
        )
        record_event(
            tenant_id=tenant_id,
            entity_type="invoice",
            entity_id=invoice.id,
            event_type="INVOICE_DELETED",
            from_status=invoice.status,
            payload={"invoice_number": invoice.invoice_number},
        )
        db.session.delete(invoice)

    run_unit(_op)
