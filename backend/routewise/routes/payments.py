# Overview: Flask API routes for invoice payments; parses input and returns JSON responses.

# backend/routewise/routes/payments.py
"""
Payment Ledger API Routes

WHY: Record customer payments against sent invoices and correct mistakes.

DESIGN:
- Partial payments accumulate; the invoice flips to paid when fully covered
- Deleting a payment reverses its effect exactly (paid -> sent if short)
- Amounts are integer cents; legacy amount_hnl (major units) is accepted
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..collaborators import get_collaborators
from ..decorators import require_tenant
from ..errors import WorkflowError
from ..services import payment_service
from ..validation import cents_field, int_field, json_body, require_fields, timestamp_field

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_tenant
def record_payment_route():
    """
    Record a payment on a sent invoice.

    Request body:
    {
        "invoice_id": 12,
        "amount_cents": 300000,
        "payment_method": "transfer",   (optional)
        "reference_number": "TRX-881",  (optional)
        "payment_date": 1767225600000   (optional)
    }

    Returns:
        201: Payment recorded, with the updated balance summary
        400: Invalid amount or method
        409: Invoice not in sent status
    """
    try:
        data = json_body(request)
        require_fields(data, "invoice_id")
        invoice_id = int_field(data, "invoice_id")

        payment = payment_service.record_payment(
            g.tenant_id,
            invoice_id,
            amount_cents=cents_field(data, "amount_cents", "amount_hnl", required=True),
            notifier=get_collaborators().notifier,
            payment_method=data.get("payment_method"),
            reference_number=data.get("reference_number"),
            payment_date=timestamp_field(data, "payment_date"),
            notes=data.get("notes"),
        )
        summary = payment_service.get_payment_summary(g.tenant_id, invoice_id)
        return jsonify({"payment": payment.to_dict(), "summary": summary}), 201

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/invoices/<int:invoice_id>")
@require_tenant
def get_invoice_payments_route(invoice_id: int):
    try:
        return jsonify(payment_service.get_payment_summary(g.tenant_id, invoice_id)), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@payments_bp.delete("/<int:payment_id>")
@require_tenant
def delete_payment_route(payment_id: int):
    try:
        invoice = payment_service.delete_payment(g.tenant_id, payment_id)
        return jsonify({"deleted": True, "invoice": invoice.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500
