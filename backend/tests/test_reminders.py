# Overview: Pytest coverage for overdue scans, follow-up scheduling and reminder delivery.

import logging
from datetime import timedelta

from routewise.collaborators import Notifier
from routewise.services import invoice_service, payment_service, quotation_service, reminder_service
from routewise.time_utils import utcnow


def _overdue_invoice(tenant_id, now):
    invoice = invoice_service.create_invoice(
        tenant_id,
        subtotal_cents=200000,
        exchange_rate=25,
        invoice_date=now - timedelta(days=60),
        due_date=now - timedelta(days=30),
    )
    return invoice_service.send_invoice(tenant_id, invoice.id)


class FlakyNotifier(Notifier):
    """Fails the first delivery, then records events."""

    def __init__(self):
        self.calls = 0
        self.events = []

    def notify(self, event):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("smtp down")
        self.events.append(event)

class TestOverdueScan:
    def test_flags_and_schedules(self, db_session, tenant_a, params):
        now = utcnow()
        invoice = _overdue_invoice(tenant_a.id, now)

        result = reminder_service.scan_overdue_invoices(tenant_a.id, now=now)
        db_session.commit()
        assert result == {"processed": 1, "flagged": 1, "scheduled": 2}

        refreshed = invoice_service.get_invoice(tenant_a.id, invoice.id)
        assert refreshed.payment_status == "overdue"
        reminders = reminder_service.list_reminders(tenant_a.id, "invoice", invoice.id)
        assert [r.reminder_day for r in reminders] == [3, 7]
        assert reminders[0].scheduled_for == refreshed.due_date + timedelta(days=3)

    def test_rescan_is_idempotent(self, db_session, tenant_a, params):
        now = utcnow()
        _overdue_invoice(tenant_a.id, now)
        reminder_service.scan_overdue_invoices(tenant_a.id, now=now)
        db_session.commit()

        result = reminder_service.scan_overdue_invoices(tenant_a.id, now=now)
        assert result == {"processed": 1, "flagged": 0, "scheduled": 0}

    def test_invoices_not_yet_due_are_ignored(self, sent_invoice, tenant_a):
        result = reminder_service.scan_overdue_invoices(tenant_a.id)
        assert result["processed"] == 0
        assert sent_invoice.payment_status == "unpaid"


class TestDelivery:
    def test_overdue_reminders_delivered(self, db_session, tenant_a, params, notifier):
        now = utcnow()
        invoice = _overdue_invoice(tenant_a.id, now)
        reminder_service.scan_overdue_invoices(tenant_a.id, now=now)
        db_session.commit()

        delivered = reminder_service.process_due_reminders(tenant_a.id, notifier, now=now)
        db_session.commit()
        assert delivered == 2
        assert notifier.types() == ["invoice_overdue", "invoice_overdue"]
        assert notifier.events[0].amount_cents == invoice.total_cents
        assert all(r.processed for r in reminder_service.list_reminders(tenant_a.id, "invoice", invoice.id))

    def test_failed_delivery_does_not_stop_the_run(self, caplog, db_session, tenant_a, params, notifier):
        now = utcnow()
        invoice = _overdue_invoice(tenant_a.id, now)
        reminder_service.scan_overdue_invoices(tenant_a.id, now=now)
        db_session.commit()

        flaky = FlakyNotifier()
        with caplog.at_level(logging.ERROR):
            delivered = reminder_service.process_due_reminders(tenant_a.id, flaky, now=now)
        db_session.commit()

        assert delivered == 1
        assert len(flaky.events) == 1
        assert "Side effect deliver_reminder_" in caplog.text
        pending = [r for r in reminder_service.list_reminders(tenant_a.id, "invoice", invoice.id) if not r.processed]
        assert len(pending) == 1

        assert reminder_service.process_due_reminders(tenant_a.id, notifier, now=now) == 1
        assert notifier.types() == ["invoice_overdue"]

    def test_paid_invoice_reminders_skipped(self, db_session, tenant_a, params, notifier):
        now = utcnow()
        invoice = _overdue_invoice(tenant_a.id, now)
        reminder_service.scan_overdue_invoices(tenant_a.id, now=now)
        db_session.commit()

        payment_service.record_payment(tenant_a.id, invoice.id, amount_cents=invoice.total_cents, notifier=notifier)
        notifier.events.clear()

        assert reminder_service.process_due_reminders(tenant_a.id, notifier, now=now) == 0
        assert notifier.events == []
        assert all(r.skipped for r in reminder_service.list_reminders(tenant_a.id, "invoice", invoice.id))

    def test_quotation_followups(self, db_session, tenant_a, make_quotation, notifier):
        now = utcnow()
        quotation = make_quotation()
        quotation_service.send_quotation(tenant_a.id, quotation.id, now=now - timedelta(days=10))

        delivered = reminder_service.process_due_reminders(tenant_a.id, notifier, now=now)
        db_session.commit()
        assert delivered == 2
        assert notifier.types() == ["quotation_followup", "quotation_followup"]
        pending = [r for r in reminder_service.list_reminders(tenant_a.id, "quotation", quotation.id) if not r.processed]
        assert [r.reminder_day for r in pending] == [14]

    def test_followup_skipped_when_quotation_moved_on(self, db_session, tenant_a, make_quotation, notifier):
        now = utcnow()
        quotation = make_quotation()
        quotation_service.send_quotation(tenant_a.id, quotation.id, now=now - timedelta(days=10))
        quotation.status = "expired"
        db_session.commit()

        assert reminder_service.process_due_reminders(tenant_a.id, notifier, now=now) == 0
        due = [r for r in reminder_service.list_reminders(tenant_a.id, "quotation", quotation.id) if r.processed]
        assert len(due) == 2
        assert all(r.skip_reason == "Quotation no longer awaiting response" for r in due)
