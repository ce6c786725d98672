# Overview: Flask API routes for driver expense advances; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..errors import WorkflowError
from ..services import advance_service
from ..validation import cents_field, int_field, json_body, require_fields

advances_bp = Blueprint("advances", __name__, url_prefix="/api/advances")

ESTIMATE_KEYS = tuple(f"estimated_{k}_cents" for k in advance_service.ESTIMATE_FIELDS)
ACTUAL_KEYS = tuple(f"actual_{k}_cents" for k in advance_service.ESTIMATE_FIELDS)


def _cents_map(data: dict, keys) -> dict:
    return {k: cents_field(data, k) for k in keys if k in data}


@advances_bp.post("")
@require_tenant
def create_advance_route():
    """
    Create a draft expense advance for an itinerary.

    Request body:
    {
        "itinerary_id": 7,
        "amount_cents": 500000,            (optional; defaults to sum of estimates)
        "estimated_fuel_cents": 300000,    (optional breakdown)
        "purpose": "Gastos de viaje"       (optional)
    }

    Returns:
        201: Advance created (draft)
        409: An active advance already exists for the itinerary
    """
    try:
        data = json_body(request)
        require_fields(data, "itinerary_id")
        advance = advance_service.create_expense_advance(
            g.tenant_id,
            int_field(data, "itinerary_id"),
            amount_cents=cents_field(data, "amount_cents", "amount_hnl"),
            purpose=data.get("purpose"),
            notes=data.get("notes"),
            **_cents_map(data, ESTIMATE_KEYS),
        )
        return jsonify({"advance": advance.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e), **e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense advance")
        return jsonify({"error": "Internal server error"}), 500


@advances_bp.get("")
@require_tenant
def list_advances_route():
    try:
        advances = advance_service.list_expense_advances(
            g.tenant_id,
            status=request.args.get("status"),
            itinerary_id=int_field(request.args, "itinerary_id"),
            driver_id=int_field(request.args, "driver_id"),
        )
        return jsonify({"advances": [a.to_dict() for a in advances]}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@advances_bp.get("/stats")
@require_tenant
def advance_stats_route():
    return jsonify(advance_service.advance_stats(g.tenant_id)), 200


@advances_bp.get("/<int:advance_id>")
@require_tenant
def get_advance_route(advance_id: int):
    try:
        advance = advance_service.get_expense_advance(g.tenant_id, advance_id)
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@advances_bp.patch("/<int:advance_id>")
@require_tenant
def update_advance_route(advance_id: int):
    try:
        data = json_body(request)
        changes = _cents_map(data, ESTIMATE_KEYS)
        amount = cents_field(data, "amount_cents", "amount_hnl")
        if amount is not None:
            changes["amount_cents"] = amount
        for key in ("purpose", "notes"):
            if key in data:
                changes[key] = data[key]
        advance = advance_service.update_expense_advance(
            g.tenant_id, advance_id, reason=data.get("reason"), **changes
        )
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update expense advance")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LIFECYCLE
# =============================================================================


@advances_bp.post("/<int:advance_id>/submit")
@require_tenant
def submit_advance_route(advance_id: int):
    try:
        advance = advance_service.submit_expense_advance(g.tenant_id, advance_id)
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit expense advance")
        return jsonify({"error": "Internal server error"}), 500


@advances_bp.post("/<int:advance_id>/approve")
@require_tenant
def approve_advance_route(advance_id: int):
    try:
        data = json_body(request)
        advance = advance_service.approve_expense_advance(
            g.tenant_id, advance_id, approved_by=data.get("approved_by")
        )
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve expense advance")
        return jsonify({"error": "Internal server error"}), 500


@advances_bp.post("/<int:advance_id>/disburse")
@require_tenant
def disburse_advance_route(advance_id: int):
    try:
        data = json_body(request)
        require_fields(data, "method")
        advance = advance_service.disburse_expense_advance(
            g.tenant_id, advance_id, method=data.get("method"), reference=data.get("reference")
        )
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to disburse expense advance")
        return jsonify({"error": "Internal server error"}), 500


@advances_bp.post("/<int:advance_id>/settle")
@require_tenant
def settle_advance_route(advance_id: int):
    """
    Record actual expenses on a disbursed advance.

    balance_cents = amount_cents - actual_expenses_cents
    (positive: driver owes the company; negative: company owes the driver)
    """
    try:
        data = json_body(request)
        advance = advance_service.settle_expense_advance(
            g.tenant_id,
            advance_id,
            receipts_count=int_field(data, "receipts_count"),
            settlement_notes=data.get("settlement_notes"),
            settled_by=data.get("settled_by"),
            **_cents_map(data, ACTUAL_KEYS),
        )
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to settle expense advance")
        return jsonify({"error": "Internal server error"}), 500


@advances_bp.post("/<int:advance_id>/settle-balance")
@require_tenant
def settle_balance_route(advance_id: int):
    try:
        data = json_body(request)
        advance = advance_service.settle_advance_balance(g.tenant_id, advance_id, notes=data.get("notes"))
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to settle advance balance")
        return jsonify({"error": "Internal server error"}), 500


@advances_bp.post("/<int:advance_id>/cancel")
@require_tenant
def cancel_advance_route(advance_id: int):
    try:
        data = json_body(request)
        advance = advance_service.cancel_expense_advance(g.tenant_id, advance_id, reason=data.get("reason"))
        return jsonify({"advance": advance.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel expense advance")
        return jsonify({"error": "Internal server error"}), 500


@advances_bp.delete("/<int:advance_id>")
@require_tenant
def delete_advance_route(advance_id: int):
    try:
        advance_service.delete_expense_advance(g.tenant_id, advance_id)
        return jsonify({"deleted": True}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense advance")
        return jsonify({"error": "Internal server error"}), 500
