# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

Prove that one operator can never read or mutate another operator's
documents. A foreign row is indistinguishable from a missing one: both
raise NotFoundError (404 over HTTP), so existence is not revealed.

Test Coverage:
- Quotations, itineraries, invoices, payments and advances
- Lookups through foreign references (vehicle, client, driver)
- HTTP routes answer 404 for the other tenant's ids
"""

from datetime import datetime

import pytest

from routewise.errors import NotFoundError
from routewise.models import Client, Invoice, Quotation
from routewise.services import (
    advance_service,
    invoice_service,
    itinerary_service,
    payment_service,
    quotation_service,
)
from routewise.services.tenant_service import get_owned


class TestServiceIsolation:
    def test_get_owned_hides_foreign_rows(self, make_quotation, tenant_a, tenant_b):
        quotation = make_quotation()
        assert get_owned(Quotation, tenant_a.id, quotation.id).id == quotation.id
        with pytest.raises(NotFoundError):
            get_owned(Quotation, tenant_b.id, quotation.id)

    def test_missing_and_foreign_look_the_same(self, make_quotation, tenant_b):
        quotation = make_quotation()
        with pytest.raises(NotFoundError) as foreign:
            quotation_service.get_quotation(tenant_b.id, quotation.id)
        with pytest.raises(NotFoundError) as missing:
            quotation_service.get_quotation(tenant_b.id, 99999)
        assert str(foreign.value) == str(missing.value)

    def test_lists_are_scoped(self, make_quotation, tenant_a, tenant_b):
        make_quotation()
        assert len(quotation_service.list_quotations(tenant_a.id)) == 1
        assert quotation_service.list_quotations(tenant_b.id) == []

    def test_foreign_quotation_cannot_be_converted(self, approved_quotation, tenant_b, notifier):
        with pytest.raises(NotFoundError):
            itinerary_service.create_itinerary_from_quotation(
                tenant_b.id, approved_quotation.id, start_date=datetime(2026, 11, 2), notifier=notifier
            )

    def test_foreign_itinerary_cannot_be_invoiced(self, completed_itinerary, tenant_b):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice_from_itinerary(tenant_b.id, completed_itinerary.id)

    def test_foreign_invoice_rejects_payment(self, db_session, sent_invoice, tenant_b, notifier):
        with pytest.raises(NotFoundError):
            payment_service.record_payment(tenant_b.id, sent_invoice.id, amount_cents=1000, notifier=notifier)
        invoice = db_session.get(Invoice, sent_invoice.id)
        assert invoice.amount_paid_cents == 0

    def test_foreign_itinerary_rejects_advance(self, itinerary, tenant_b):
        with pytest.raises(NotFoundError):
            advance_service.create_expense_advance(tenant_b.id, itinerary.id, amount_cents=1000)

    def test_foreign_client_rejected_on_quotation(self, db_session, make_quotation, tenant_b):
        foreign = Client(tenant_id=tenant_b.id, type="individual", first_name="Ana", last_name="Beta")
        db_session.add(foreign)
        db_session.commit()
        with pytest.raises(NotFoundError):
            make_quotation(client_id=foreign.id)


class TestRouteIsolation:
    def test_invoice_routes(self, client, sent_invoice, headers_a, headers_b):
        assert client.get(f"/api/invoices/{sent_invoice.id}", headers=headers_a).status_code == 200
        assert client.get(f"/api/invoices/{sent_invoice.id}", headers=headers_b).status_code == 404
        assert client.get(f"/api/payments/invoices/{sent_invoice.id}", headers=headers_b).status_code == 404
        response = client.post(f"/api/invoices/{sent_invoice.id}/void", json={"reason": "x"}, headers=headers_b)
        assert response.status_code == 404

    def test_itinerary_routes(self, client, itinerary, headers_b):
        assert client.get(f"/api/itineraries/{itinerary.id}", headers=headers_b).status_code == 404
        assert client.post(f"/api/itineraries/{itinerary.id}/start", json={}, headers=headers_b).status_code == 404

    def test_advance_routes(self, client, itinerary, tenant_a, headers_b):
        advance = advance_service.create_expense_advance(tenant_a.id, itinerary.id, amount_cents=1000)
        assert client.get(f"/api/advances/{advance.id}", headers=headers_b).status_code == 404
        assert client.delete(f"/api/advances/{advance.id}", headers=headers_b).status_code == 404

    def test_list_routes_are_scoped(self, client, make_quotation, headers_b):
        make_quotation()
        response = client.get("/api/quotations", headers=headers_b)
        assert response.status_code == 200
        assert response.get_json()["quotations"] == []
