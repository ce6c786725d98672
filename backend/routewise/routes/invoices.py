# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

# backend/routewise/routes/invoices.py
"""
Invoice API Routes

DESIGN:
- Invoices are generated from completed itineraries (or entered manually)
- Charges/discounts editable on drafts only; totals are recomputed server-side
- Balances are owned by the payment ledger (see routes/payments.py)
- Amounts in requests are integer cents; legacy subtotal_hnl is accepted
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..errors import WorkflowError
from ..services import invoice_service
from ..validation import cents_field, int_field, json_body, require_fields, timestamp_field

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("/from-itinerary/<int:itinerary_id>")
@require_tenant
def create_from_itinerary_route(itinerary_id: int):
    """
    Invoice a completed itinerary.

    Request body (optional):
    {
        "tax_percentage": 15,
        "due_date": 1767225600000,
        "additional_charges": [{"description": "Parqueo", "amount_cents": 20000}],
        "discounts": []
    }

    Returns:
        201: Invoice created
        409: Itinerary not completed, or already invoiced
    """
    try:
        data = json_body(request)
        invoice = invoice_service.create_invoice_from_itinerary(
            g.tenant_id,
            itinerary_id,
            tax_percentage=data.get("tax_percentage"),
            invoice_date=timestamp_field(data, "invoice_date"),
            due_date=timestamp_field(data, "due_date"),
            notes=data.get("notes"),
            additional_charges=data.get("additional_charges"),
            discounts=data.get("discounts"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e), **e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice from itinerary")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("")
@require_tenant
def create_invoice_route():
    try:
        data = json_body(request)
        require_fields(data, "exchange_rate")
        invoice = invoice_service.create_invoice(
            g.tenant_id,
            subtotal_cents=cents_field(data, "subtotal_cents", "subtotal_hnl", required=True),
            exchange_rate=data.get("exchange_rate"),
            description=data.get("description"),
            client_id=int_field(data, "client_id"),
            quotation_id=int_field(data, "quotation_id"),
            tax_percentage=data.get("tax_percentage"),
            invoice_date=timestamp_field(data, "invoice_date"),
            due_date=timestamp_field(data, "due_date"),
            notes=data.get("notes"),
            additional_charges=data.get("additional_charges"),
            discounts=data.get("discounts"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("")
@require_tenant
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(
            g.tenant_id,
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            limit=int_field(request.args, "limit", 100),
            offset=int_field(request.args, "offset", 0),
        )
        return jsonify({"invoices": [i.to_dict() for i in invoices]}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@invoices_bp.get("/stats")
@require_tenant
def invoice_stats_route():
    return jsonify(invoice_service.invoice_stats(g.tenant_id)), 200


@invoices_bp.get("/<int:invoice_id>")
@require_tenant
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(g.tenant_id, invoice_id)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@invoices_bp.patch("/<int:invoice_id>")
@require_tenant
def update_invoice_route(invoice_id: int):
    """Replace charges / discounts / notes / due date on a draft invoice."""
    try:
        data = json_body(request)
        invoice = invoice_service.update_invoice_adjustments(
            g.tenant_id,
            invoice_id,
            additional_charges=data.get("additional_charges"),
            discounts=data.get("discounts"),
            notes=data.get("notes"),
            due_date=timestamp_field(data, "due_date"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LIFECYCLE
# =============================================================================


@invoices_bp.post("/<int:invoice_id>/send")
@require_tenant
def send_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.send_invoice(g.tenant_id, invoice_id)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to send invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/mark-paid")
@require_tenant
def mark_invoice_paid_route(invoice_id: int):
    try:
        invoice = invoice_service.mark_invoice_paid(g.tenant_id, invoice_id)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark invoice paid")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/cancel")
@require_tenant
def cancel_invoice_route(invoice_id: int):
    try:
        data = json_body(request)
        invoice = invoice_service.cancel_invoice(g.tenant_id, invoice_id, reason=data.get("reason"))
        return jsonify({"invoice": invoice.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/void")
@require_tenant
def void_invoice_route(invoice_id: int):
    try:
        data = json_body(request)
        require_fields(data, "reason")
        invoice = invoice_service.void_invoice(g.tenant_id, invoice_id, reason=data.get("reason"))
        return jsonify({"invoice": invoice.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to void invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
@require_tenant
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(g.tenant_id, invoice_id)
        return jsonify({"deleted": True}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500
