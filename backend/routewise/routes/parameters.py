# Overview: Flask API routes for the tenant's yearly operating parameters.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..errors import WorkflowError
from ..services import tenant_service
from ..validation import int_field, json_body, pick

parameters_bp = Blueprint("parameters", __name__, url_prefix="/api/parameters")


@parameters_bp.get("")
@require_tenant
def get_active_parameters_route():
    params = tenant_service.get_active_parameters(g.tenant_id)
    if not params:
        return jsonify({"error": "No active operating parameters configured for this tenant"}), 404
    return jsonify({"parameters": params.to_dict()}), 200


@parameters_bp.get("/history")
@require_tenant
def list_parameters_route():
    rows = tenant_service.list_parameters(g.tenant_id)
    return jsonify({"parameters": [p.to_dict() for p in rows]}), 200


@parameters_bp.put("")
@require_tenant
def save_parameters_route():
    """
    Create or update one year's parameters and make them active.

    Request body:
    {
        "year": 2026,                      (optional; current year)
        "fuel_price": 98.5,                (required for a new year)
        "meal_cost_per_day": 150,
        "toll_sap_yojoa": 30,
        "tax_percentage": 15,
        "invoice_reminder_days": [3, 7]
    }

    Existing documents keep their frozen figures.
    """
    try:
        data = json_body(request)
        unknown = set(data) - set(tenant_service.PARAMETER_FIELDS) - {"year"}
        if unknown:
            return jsonify({"error": f"Unknown parameters: {', '.join(sorted(unknown))}"}), 400
        params = tenant_service.save_parameters(
            g.tenant_id,
            year=int_field(data, "year"),
            **pick(data, *tenant_service.PARAMETER_FIELDS),
        )
        return jsonify({"parameters": params.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save parameters")
        return jsonify({"error": "Internal server error"}), 500
