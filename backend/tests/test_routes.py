# Overview: Pytest coverage for the HTTP layer; tenant header handling, status codes and the full document chain.

"""
API Route Tests

Walks a trip from quotation to paid invoice over HTTP and checks how
workflow errors map onto status codes.
"""

import pytest

from conftest import TRIP


def _create_quotation(client, headers, vehicle_id, **extra):
    body = dict(TRIP, vehicle_id=vehicle_id, **extra)
    return client.post("/api/quotations", json=body, headers=headers)


class TestTenantHeader:
    def test_missing_header(self, client, db_session):
        response = client.get("/api/quotations")
        assert response.status_code == 400
        assert "X-Tenant-ID" in response.get_json()["error"]

    def test_non_integer_header(self, client, db_session):
        response = client.get("/api/quotations", headers={"X-Tenant-ID": "lopez"})
        assert response.status_code == 400

    def test_unknown_tenant(self, client, db_session):
        response = client.get("/api/quotations", headers={"X-Tenant-ID": "99999"})
        assert response.status_code == 404

    def test_foreign_document_is_not_found(self, client, make_quotation, headers_a, headers_b):
        quotation = make_quotation()
        assert client.get(f"/api/quotations/{quotation.id}", headers=headers_a).status_code == 200
        assert client.get(f"/api/quotations/{quotation.id}", headers=headers_b).status_code == 404


class TestQuotationRoutes:
    def test_create_returns_frozen_snapshot(self, client, headers_a, params, vehicle):
        response = _create_quotation(client, headers_a, vehicle.id)
        assert response.status_code == 201
        data = response.get_json()["quotation"]
        assert data["status"] == "draft"
        assert data["sale_price_cents"] == 732000
        assert data["total_cost_cents"] == 610000
        assert data["exchange_rate"] == 25.0

    def test_missing_fields(self, client, headers_a, params, vehicle):
        response = client.post("/api/quotations", json={"vehicle_id": vehicle.id}, headers=headers_a)
        assert response.status_code == 400
        assert "origin" in response.get_json()["error"]

    def test_plan_limit_is_forbidden(self, client, db_session, tenant_a, headers_a, params, vehicle):
        tenant_a.max_quotations_per_month = 0
        db_session.commit()
        response = _create_quotation(client, headers_a, vehicle.id)
        assert response.status_code == 403

    def test_illegal_transition_is_conflict(self, client, make_quotation, headers_a):
        quotation = make_quotation()
        response = client.post(f"/api/quotations/{quotation.id}/reject", json={}, headers=headers_a)
        assert response.status_code == 409

    def test_preview(self, client, headers_a, params, vehicle):
        response = client.post("/api/quotations/preview", json=dict(TRIP, vehicle_id=vehicle.id), headers=headers_a)
        assert response.status_code == 200
        assert response.get_json()["suggested_markup"] == 22


class TestFullChain:
    def test_quotation_to_paid_invoice(self, client, headers_a, params, vehicle, notifier):
        quotation = _create_quotation(client, headers_a, vehicle.id).get_json()["quotation"]
        qid = quotation["id"]
        assert client.post(f"/api/quotations/{qid}/send", json={}, headers=headers_a).status_code == 200
        approved = client.post(f"/api/quotations/{qid}/approve", json={}, headers=headers_a)
        assert approved.get_json()["quotation"]["status"] == "approved"

        response = client.post(
            f"/api/itineraries/from-quotation/{qid}",
            json={"start_date": "2026-11-02T07:00:00Z"},
            headers=headers_a,
        )
        assert response.status_code == 201
        itinerary = response.get_json()["itinerary"]
        assert itinerary["agreed_price_cents"] == 732000
        iid = itinerary["id"]

        # Converting twice is a conflict
        again = client.post(
            f"/api/itineraries/from-quotation/{qid}",
            json={"start_date": "2026-11-02T07:00:00Z"},
            headers=headers_a,
        )
        assert again.status_code == 409

        client.post(f"/api/itineraries/{iid}/start", json={}, headers=headers_a)
        completed = client.post(f"/api/itineraries/{iid}/complete", json={}, headers=headers_a)
        assert completed.get_json()["itinerary"]["status"] == "completed"

        response = client.post(f"/api/invoices/from-itinerary/{iid}", json={}, headers=headers_a)
        assert response.status_code == 201
        invoice = response.get_json()["invoice"]
        assert invoice["total_cents"] == 841800
        inv_id = invoice["id"]
        assert client.post(f"/api/invoices/{inv_id}/send", json={}, headers=headers_a).status_code == 200

        # Legacy clients send major units under amount_hnl
        response = client.post(
            "/api/payments",
            json={"invoice_id": inv_id, "amount_hnl": 4000, "payment_method": "cash"},
            headers=headers_a,
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["payment"]["amount_cents"] == 400000
        assert body["summary"]["amount_due_cents"] == 441800
        assert body["summary"]["payment_status"] == "partial"

        response = client.post(
            "/api/payments",
            json={"invoice_id": inv_id, "amount_cents": 441800},
            headers=headers_a,
        )
        assert response.get_json()["summary"]["payment_status"] == "paid"

        invoice = client.get(f"/api/invoices/{inv_id}", headers=headers_a).get_json()["invoice"]
        assert invoice["status"] == "paid"
        assert invoice["amount_due_cents"] == 0
        assert notifier.types() == [
            "quotation_approved",
            "itinerary_created",
            "payment_received",
            "payment_received",
            "invoice_paid",
        ]

    def test_payment_on_draft_is_conflict(self, client, headers_a, params):
        response = client.post(
            "/api/invoices",
            json={"subtotal_cents": 100000, "exchange_rate": 25},
            headers=headers_a,
        )
        assert response.status_code == 201
        inv_id = response.get_json()["invoice"]["id"]

        response = client.post("/api/payments", json={"invoice_id": inv_id, "amount_cents": 1000}, headers=headers_a)
        assert response.status_code == 409

    @pytest.mark.parametrize("amount", [-100, 1.5, "abc"])
    def test_bad_payment_amount(self, client, headers_a, sent_invoice, amount):
        response = client.post(
            "/api/payments",
            json={"invoice_id": sent_invoice.id, "amount_cents": amount},
            headers=headers_a,
        )
        assert response.status_code == 400

    def test_delete_payment_returns_invoice(self, client, headers_a, sent_invoice):
        created = client.post(
            "/api/payments",
            json={"invoice_id": sent_invoice.id, "amount_cents": 614100},
            headers=headers_a,
        ).get_json()
        response = client.delete(f"/api/payments/{created['payment']['id']}", headers=headers_a)
        assert response.status_code == 200
        assert response.get_json()["invoice"]["status"] == "sent"


class TestSystemRoutes:
    def test_health_degraded_without_rates(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "degraded"
        assert data["checks"]["database"]["status"] == "healthy"

    def test_version(self, client, db_session):
        data = client.get("/api/version").get_json()
        assert data["environment"] == "testing"
        assert data["default_currency"] == "HNL"

    def test_pricing_options(self, client, headers_a):
        response = client.post(
            "/api/pricing/options",
            json={"total_cost": 4450, "exchange_rate": 25},
            headers=headers_a,
        )
        assert response.status_code == 200
        options = response.get_json()["options"]
        assert [o["markup_percentage"] for o in options] == [10, 15, 20, 25, 30]
        recommended = [o for o in options if o["recommended"]]
        assert recommended[0]["sale_price"] == 5340.0

    def test_pricing_options_use_provider_rate(self, client, headers_a):
        response = client.post("/api/pricing/options", json={"total_cost": 4450}, headers=headers_a)
        assert response.get_json()["exchange_rate"] == 25.0
