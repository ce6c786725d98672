# Overview: Pytest coverage for invoice creation, totals, adjustments and lifecycle.

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from routewise.errors import ConflictError, StateError, ValidationError
from routewise.models import Invoice
from routewise.services import invoice_service

PARKING = [{"description": "Parqueo aeropuerto", "amount_cents": 10000}]
PROMO = [{"description": "Descuento cliente frecuente", "amount_cents": 42000}]


class TestFromItinerary:
    def test_copies_agreed_price_and_applies_tax(self, completed_itinerary, tenant_a):
        invoice = invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id)

        assert invoice.status == "draft"
        assert invoice.payment_status == "unpaid"
        assert invoice.exchange_rate == Decimal("25")
        assert invoice.subtotal_cents == 732000
        assert invoice.subtotal_usd_cents == 29280
        assert invoice.tax_rate_bps == 1500
        assert invoice.tax_amount_cents == 109800
        assert invoice.total_cents == 841800
        assert invoice.total_usd_cents == 33672
        assert invoice.amount_due_cents == 841800
        assert invoice.invoice_number.endswith("-F00001")
        assert invoice.due_date == invoice.invoice_date + timedelta(days=30)
        assert "San Pedro Sula" in invoice.description

    def test_adjustments_enter_totals(self, completed_itinerary, tenant_a):
        invoice = invoice_service.create_invoice_from_itinerary(
            tenant_a.id, completed_itinerary.id, additional_charges=PARKING, discounts=PROMO
        )
        assert invoice.tax_amount_cents == 105000
        assert invoice.total_cents == 805000
        assert invoice.total_usd_cents == 32200
        assert invoice.subtotal_usd_cents == 29280

    def test_requires_completed_itinerary(self, itinerary, tenant_a):
        with pytest.raises(StateError):
            invoice_service.create_invoice_from_itinerary(tenant_a.id, itinerary.id)

    def test_one_live_invoice_per_itinerary(self, completed_itinerary, tenant_a):
        first = invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id)
        with pytest.raises(ConflictError) as exc:
            invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id)
        assert exc.value.details == {"invoice_id": first.id}

        invoice_service.cancel_invoice(tenant_a.id, first.id, reason="Wrong tax")
        with pytest.raises(ConflictError):
            invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id)

    def test_void_frees_itinerary(self, completed_itinerary, tenant_a):
        first = invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id)
        invoice_service.send_invoice(tenant_a.id, first.id)
        invoice_service.void_invoice(tenant_a.id, first.id, reason="Wrong tax")

        replacement = invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id, tax_percentage=0)
        assert replacement.total_cents == 732000
        assert replacement.id != first.id

    def test_discounts_cannot_exceed_subtotal(self, completed_itinerary, tenant_a):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice_from_itinerary(
                tenant_a.id,
                completed_itinerary.id,
                discounts=[{"description": "Todo", "amount_cents": 900000}],
            )

    @pytest.mark.parametrize(
        "items",
        [
            "not-a-list",
            [{"amount_cents": 100}],
            [{"description": "x"}],
            [{"description": "x", "amount_cents": -1}],
        ],
    )
    def test_malformed_adjustments_rejected(self, completed_itinerary, tenant_a, items):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id, additional_charges=items)


class TestManualInvoice:
    def test_scenario_totals(self, sent_invoice):
        assert sent_invoice.subtotal_cents == 534000
        assert sent_invoice.tax_amount_cents == 80100
        assert sent_invoice.total_cents == 614100
        assert sent_invoice.subtotal_usd_cents == 21360
        assert sent_invoice.total_usd_cents == 24564

    def test_client_terms_drive_due_date(self, tenant_a, params, hotel_client):
        issued = datetime(2026, 10, 1)
        invoice = invoice_service.create_invoice(
            tenant_a.id,
            subtotal_cents=100000,
            exchange_rate=25,
            client_id=hotel_client.id,
            invoice_date=issued,
        )
        assert invoice.due_date == datetime(2026, 10, 16)
        assert "-HOTR-" in invoice.invoice_number

    def test_due_date_before_invoice_date_rejected(self, tenant_a, params):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(
                tenant_a.id,
                subtotal_cents=100000,
                exchange_rate=25,
                invoice_date=datetime(2026, 10, 10),
                due_date=datetime(2026, 10, 1),
            )

    @pytest.mark.parametrize("rate", [0, -3])
    def test_rate_must_be_positive(self, tenant_a, rate):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(tenant_a.id, subtotal_cents=100000, exchange_rate=rate)


class TestAdjustmentEdits:
    def test_draft_edit_recomputes(self, completed_itinerary, tenant_a):
        invoice = invoice_service.create_invoice_from_itinerary(tenant_a.id, completed_itinerary.id)
        updated = invoice_service.update_invoice_adjustments(
            tenant_a.id, invoice.id, additional_charges=PARKING, discounts=PROMO
        )
        assert updated.total_cents == 805000
        assert updated.amount_due_cents == 805000

    def test_sent_invoice_is_locked(self, sent_invoice, tenant_a):
        with pytest.raises(StateError):
            invoice_service.update_invoice_adjustments(tenant_a.id, sent_invoice.id, discounts=PROMO)


class TestLifecycle:
    def test_send(self, sent_invoice):
        assert sent_invoice.status == "sent"
        assert sent_invoice.sent_at is not None

    def test_mark_paid_clears_due(self, sent_invoice, tenant_a):
        paid = invoice_service.mark_invoice_paid(tenant_a.id, sent_invoice.id)
        assert paid.status == "paid"
        assert paid.payment_status == "paid"
        assert paid.amount_due_cents == 0
        assert paid.amount_paid_cents == 0

    def test_mark_paid_requires_sent(self, tenant_a, params):
        draft = invoice_service.create_invoice(tenant_a.id, subtotal_cents=100000, exchange_rate=25)
        with pytest.raises(StateError):
            invoice_service.mark_invoice_paid(tenant_a.id, draft.id)

    def test_void_requires_reason(self, sent_invoice, tenant_a):
        with pytest.raises(ValidationError):
            invoice_service.void_invoice(tenant_a.id, sent_invoice.id, reason=" ")

        voided = invoice_service.void_invoice(tenant_a.id, sent_invoice.id, reason="Duplicated")
        assert voided.status == "void"
        assert voided.void_reason == "Duplicated"

    def test_void_is_terminal(self, sent_invoice, tenant_a):
        invoice_service.void_invoice(tenant_a.id, sent_invoice.id, reason="Duplicated")
        with pytest.raises(StateError):
            invoice_service.send_invoice(tenant_a.id, sent_invoice.id)

    def test_draft_cannot_be_voided(self, tenant_a, params):
        draft = invoice_service.create_invoice(tenant_a.id, subtotal_cents=100000, exchange_rate=25)
        with pytest.raises(StateError):
            invoice_service.void_invoice(tenant_a.id, draft.id, reason="x")

    def test_delete_only_drafts(self, db_session, sent_invoice, tenant_a, params):
        draft = invoice_service.create_invoice(tenant_a.id, subtotal_cents=100000, exchange_rate=25)
        invoice_service.delete_invoice(tenant_a.id, draft.id)
        with pytest.raises(StateError):
            invoice_service.delete_invoice(tenant_a.id, sent_invoice.id)
        assert db_session.query(Invoice).count() == 1


class TestStats:
    def test_receivables(self, sent_invoice, tenant_a, params):
        invoice_service.create_invoice(tenant_a.id, subtotal_cents=100000, exchange_rate=25)
        stats = invoice_service.invoice_stats(tenant_a.id)
        assert stats["total_invoices"] == 2
        assert stats["unpaid_count"] == 1
        assert stats["total_receivables_cents"] == 614100
        assert stats["total_revenue_cents"] == 0

    def test_list_by_payment_status(self, sent_invoice, tenant_a):
        assert [i.id for i in invoice_service.list_invoices(tenant_a.id, payment_status="unpaid")] == [sent_invoice.id]
        with pytest.raises(ValidationError):
            invoice_service.list_invoices(tenant_a.id, payment_status="settled")
