# Overview: Service-layer operations for the invoice payment ledger; append/remove payments and recompute balances.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..collaborators import NotificationEvent
from ..errors import StateError, ValidationError
from ..extensions import db
from ..models import Invoice, InvoicePayment
from ..time_utils import utcnow
from . import reminder_service
from .audit_service import record_event
from .concurrency import fire_side_effect, run_unit
from .state_machines import InvoiceStatus, PaymentStatus
from .tenant_service import get_owned

"""
Payment Ledger Invariants

1. amount_paid_cents == sum of the invoice's payment records
2. amount_due_cents == max(0, total_cents - amount_paid_cents)
3. payment_status: paid if amount_due == 0, else overdue once the overdue
   scan has flagged the invoice, else partial if amount_paid > 0, else unpaid
4. A fully paid invoice moves to status paid; removing a payment from a paid
   invoice that leaves it short moves it back to sent, never to draft
5. Overpayment is tolerated: amount_due floors at 0, amount_paid keeps the
   true total

All arithmetic is on integer cents, so recording then deleting a payment
restores the previous balances exactly.
"""

PAYMENT_METHODS = ("cash", "transfer", "check", "card", "other")


def derive_payment_status(amount_paid_cents: int, amount_due_cents: int, flagged_overdue: bool = False) -> PaymentStatus:
    if amount_due_cents <= 0:
        return PaymentStatus.PAID
    if flagged_overdue:
        return PaymentStatus.OVERDUE
    if amount_paid_cents > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def apply_balance(invoice: Invoice, amount_paid_cents: int) -> PaymentStatus:
    """Write paid/due/payment_status onto the invoice from a new paid total."""
    invoice.amount_paid_cents = amount_paid_cents
    invoice.amount_due_cents = max(0, invoice.total_cents - amount_paid_cents)
    status = derive_payment_status(
        invoice.amount_paid_cents,
        invoice.amount_due_cents,
        flagged_overdue=invoice.overdue_flagged_at is not None,
    )
    invoice.payment_status = status.value
    return status


def _validate_amount(amount_cents) -> int:
    if amount_cents is None or isinstance(amount_cents, bool):
        raise ValidationError("amount_cents is required")
    try:
        amount = int(amount_cents)
    except (TypeError, ValueError):
        raise ValidationError("amount_cents must be an integer")
    if amount != amount_cents and not isinstance(amount_cents, str):
        raise ValidationError("amount_cents must be a whole number of cents")
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    return amount


def record_payment(
    tenant_id: int,
    invoice_id: int,
    *,
    amount_cents: int,
    notifier,
    payment_method: str | None = None,
    reference_number: str | None = None,
    payment_date: datetime | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> InvoicePayment:
    """
    Append a payment to a sent invoice and recompute its balance.

    WHY: Payments are only accepted while the invoice is sent. A draft has
    not been issued yet; paid, cancelled and void invoices are closed.
    """
    amount = _validate_amount(amount_cents)
    if payment_method and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment_method '{payment_method}'. Allowed: {', '.join(PAYMENT_METHODS)}")
    now = now or utcnow()

    def _op():
        invoice = get_owned(Invoice, tenant_id, invoice_id, lock=True, label="Invoice")
        if invoice.status != InvoiceStatus.SENT.value:
            raise StateError(f"Payments can only be recorded on sent invoices (invoice is {invoice.status})")

        payment = InvoicePayment(
            tenant_id=tenant_id,
            invoice_id=invoice.id,
            payment_date=payment_date or now,
            amount_cents=amount,
            payment_method=payment_method,
            reference_number=reference_number,
            notes=notes,
        )
        db.session.add(payment)

        status = apply_balance(invoice, invoice.amount_paid_cents + amount)
        if status == PaymentStatus.PAID:
            invoice.status = InvoiceStatus.PAID.value
            invoice.paid_at = now
        db.session.flush()

        record_event(
            tenant_id=tenant_id,
            entity_type="invoice",
            entity_id=invoice.id,
            event_type="PAYMENT_RECORDED",
            from_status=InvoiceStatus.SENT.value,
            to_status=invoice.status,
            payload={
                "payment_id": payment.id,
                "amount_cents": amount,
                "amount_paid_cents": invoice.amount_paid_cents,
                "amount_due_cents": invoice.amount_due_cents,
            },
        )
        return payment, invoice

    payment, invoice = run_unit(_op)
    fully_paid = invoice.status == InvoiceStatus.PAID.value
    current_app.logger.info(
        "Payment of %s cents recorded on invoice %s (%s)",
        payment.amount_cents,
        invoice.invoice_number,
        invoice.payment_status,
    )

    client_name = invoice.client.display_name if invoice.client else None
    fire_side_effect(
        "notify_payment_received",
        notifier.notify,
        NotificationEvent(
            event_type="payment_received",
            tenant_id=tenant_id,
            document_id=invoice.id,
            document_number=invoice.invoice_number,
            amount_cents=payment.amount_cents,
            currency=invoice.local_currency,
            flag=fully_paid,
            client_name=client_name,
        ),
    )
    if fully_paid:
        fire_side_effect(
            "notify_invoice_paid",
            notifier.notify,
            NotificationEvent(
                event_type="invoice_paid",
                tenant_id=tenant_id,
                document_id=invoice.id,
                document_number=invoice.invoice_number,
                amount_cents=invoice.total_cents,
                currency=invoice.local_currency,
                flag=True,
                client_name=client_name,
            ),
        )
        fire_side_effect(
            "cancel_overdue_reminders",
            reminder_service.cancel_reminders,
            tenant_id,
            "invoice",
            invoice.id,
            "Invoice paid",
            reminder_type=reminder_service.INVOICE_OVERDUE,
        )
    return payment


def delete_payment(tenant_id: int, payment_id: int) -> Invoice:
    """
    Remove a payment record and reverse its effect on the invoice.

    A paid invoice that is no longer fully covered reverts to sent and its
    paid_at is cleared.
    """
    def _op() -> Invoice:
        payment = get_owned(InvoicePayment, tenant_id, payment_id, label="Payment")
        invoice = get_owned(Invoice, tenant_id, payment.invoice_id, lock=True, label="Invoice")
        if invoice.status not in (InvoiceStatus.SENT.value, InvoiceStatus.PAID.value):
            raise StateError(f"Payments cannot be removed from a {invoice.status} invoice")

        from_status = invoice.status
        amount = payment.amount_cents
        db.session.delete(payment)

        status = apply_balance(invoice, max(0, invoice.amount_paid_cents - amount))
        if status == PaymentStatus.PAID:
            invoice.status = InvoiceStatus.PAID.value
        elif invoice.status == InvoiceStatus.PAID.value:
            invoice.status = InvoiceStatus.SENT.value
            invoice.paid_at = None

        record_event(
            tenant_id=tenant_id,
            entity_type="invoice",
            entity_id=invoice.id,
            event_type="PAYMENT_DELETED",
            from_status=from_status,
            to_status=invoice.status,
            payload={
                "payment_id": payment_id,
                "amount_cents": amount,
                "amount_paid_cents": invoice.amount_paid_cents,
                "amount_due_cents": invoice.amount_due_cents,
            },
        )
        return invoice

    invoice = run_unit(_op)
    current_app.logger.info("Payment %s removed from invoice %s", payment_id, invoice.invoice_number)
    return invoice


def list_payments(tenant_id: int, invoice_id: int) -> list[InvoicePayment]:
    invoice = get_owned(Invoice, tenant_id, invoice_id, label="Invoice")
    return (
        db.session.query(InvoicePayment)
        .filter_by(tenant_id=tenant_id, invoice_id=invoice.id)
        .order_by(InvoicePayment.payment_date.asc(), InvoicePayment.id.asc())
        .all()
    )


def get_payment_summary(tenant_id: int, invoice_id: int) -> dict:
    invoice = get_owned(Invoice, tenant_id, invoice_id, label="Invoice")
    payments = list_payments(tenant_id, invoice_id)
    return {
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "local_currency": invoice.local_currency,
        "total_cents": invoice.total_cents,
        "amount_paid_cents": invoice.amount_paid_cents,
        "amount_due_cents": invoice.amount_due_cents,
        "payment_status": invoice.payment_status,
        "payment_count": len(payments),
        "payments": [p.to_dict() for p in payments],
    }
