# Overview: Flask API routes for quotation operations; parses input and returns JSON responses.

# backend/routewise/routes/quotations.py
"""
Quotation API Routes

WHY: Price trips and move quotations through draft -> sent -> approved.
Costs, sale price and the exchange rate are frozen at creation; later
parameter or rate changes never alter an existing quotation except through
the explicit reprice endpoint (drafts only).

MULTI-TENANT: every route requires X-Tenant-ID; ids from other tenants 404.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..collaborators import get_collaborators
from ..decorators import require_tenant
from ..errors import WorkflowError
from ..services import audit_service, quotation_service
from ..validation import bool_field, int_field, json_body, pick, require_fields, timestamp_field

quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")

TRIP_FIELDS = (
    "origin",
    "destination",
    "base_location",
    "total_distance_km",
    "total_time_minutes",
    "extra_mileage_km",
    "estimated_days",
    "group_size",
)


def _trip_payload(data: dict) -> dict:
    trip = pick(data, *TRIP_FIELDS)
    trip["include_fuel"] = bool_field(data, "include_fuel", True)
    trip["include_meals"] = bool_field(data, "include_meals", True)
    trip["include_tolls"] = bool_field(data, "include_tolls", True)
    trip["include_driver_incentive"] = bool_field(data, "include_driver_incentive", True)
    return trip


@quotations_bp.post("")
@require_tenant
def create_quotation_route():
    """
    Create a draft quotation.

    Request body:
    {
        "vehicle_id": 1,
        "origin": "San Pedro Sula",
        "destination": "Tegucigalpa",
        "total_distance_km": 250,
        "total_time_minutes": 240,
        "client_id": 3,                (optional)
        "group_size": 8,               (optional)
        "group_leader_name": "Carlos", (optional)
        "markup_percentage": 20,       (optional, tenant default otherwise)
        "include_tolls": true          (optional inclusion flags)
    }

    Returns:
        201: Quotation created
        400: Invalid input / no exchange rate
        403: Tenant inactive or quotation limit reached
        404: Vehicle or client not found
    """
    try:
        data = json_body(request)
        require_fields(data, "vehicle_id", "origin", "destination", "total_distance_km")
        collaborators = get_collaborators()

        quotation = quotation_service.create_quotation(
            g.tenant_id,
            vehicle_id=int_field(data, "vehicle_id"),
            plan_limits=collaborators.plan_limits,
            rate_provider=collaborators.rate_provider,
            toll_estimator=collaborators.toll_estimator,
            client_id=int_field(data, "client_id"),
            markup_percentage=data.get("markup_percentage"),
            discount_percentage=data.get("discount_percentage"),
            group_leader_name=data.get("group_leader_name"),
            departure_date=timestamp_field(data, "departure_date"),
            notes=data.get("notes"),
            internal_notes=data.get("internal_notes"),
            **_trip_payload(data),
        )
        return jsonify({"quotation": quotation.to_dict()}), 201

    except WorkflowError as e:
        return jsonify({"error": str(e), **e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("/preview")
@require_tenant
def preview_quotation_route():
    """Cost breakdown and pricing options without persisting anything."""
    try:
        data = json_body(request)
        require_fields(data, "vehicle_id", "origin", "destination", "total_distance_km")
        collaborators = get_collaborators()

        preview = quotation_service.preview_quotation(
            g.tenant_id,
            vehicle_id=int_field(data, "vehicle_id"),
            rate_provider=collaborators.rate_provider,
            toll_estimator=collaborators.toll_estimator,
            client_id=int_field(data, "client_id"),
            markups=data.get("markups") or quotation_service.DEFAULT_MARKUPS,
            discount_percentage=data.get("discount_percentage"),
            **_trip_payload(data),
        )
        return jsonify(preview), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to preview quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.get("")
@require_tenant
def list_quotations_route():
    try:
        quotations = quotation_service.list_quotations(
            g.tenant_id,
            status=request.args.get("status"),
            limit=int_field(request.args, "limit", 100),
            offset=int_field(request.args, "offset", 0),
        )
        return jsonify({"quotations": [q.to_dict() for q in quotations]}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list quotations")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.get("/<int:quotation_id>")
@require_tenant
def get_quotation_route(quotation_id: int):
    try:
        quotation = quotation_service.get_quotation(g.tenant_id, quotation_id)
        return jsonify({"quotation": quotation.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@quotations_bp.get("/<int:quotation_id>/events")
@require_tenant
def list_quotation_events_route(quotation_id: int):
    try:
        quotation = quotation_service.get_quotation(g.tenant_id, quotation_id)
        events = audit_service.list_events(g.tenant_id, "quotation", quotation.id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@quotations_bp.post("/<int:quotation_id>/reprice")
@require_tenant
def reprice_quotation_route(quotation_id: int):
    """
    Recompute a draft quotation against the current parameters.

    Request body (all optional):
    {"markup_percentage": 25, "discount_percentage": 5, "refresh_rate": true, "reason": "..."}
    """
    try:
        data = json_body(request)
        collaborators = get_collaborators()
        quotation = quotation_service.reprice_quotation(
            g.tenant_id,
            quotation_id,
            rate_provider=collaborators.rate_provider,
            toll_estimator=collaborators.toll_estimator,
            markup_percentage=data.get("markup_percentage"),
            discount_percentage=data.get("discount_percentage"),
            refresh_rate=bool_field(data, "refresh_rate", False),
            reason=data.get("reason"),
        )
        return jsonify({"quotation": quotation.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reprice quotation")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LIFECYCLE
# =============================================================================


@quotations_bp.post("/<int:quotation_id>/send")
@require_tenant
def send_quotation_route(quotation_id: int):
    try:
        quotation = quotation_service.send_quotation(g.tenant_id, quotation_id)
        return jsonify({"quotation": quotation.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to send quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/approve")
@require_tenant
def approve_quotation_route(quotation_id: int):
    try:
        quotation = quotation_service.approve_quotation(
            g.tenant_id, quotation_id, notifier=get_collaborators().notifier
        )
        return jsonify({"quotation": quotation.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/reject")
@require_tenant
def reject_quotation_route(quotation_id: int):
    try:
        data = json_body(request)
        quotation = quotation_service.reject_quotation(g.tenant_id, quotation_id, reason=data.get("reason"))
        return jsonify({"quotation": quotation.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/expire")
@require_tenant
def expire_quotation_route(quotation_id: int):
    try:
        quotation = quotation_service.expire_quotation(g.tenant_id, quotation_id)
        return jsonify({"quotation": quotation.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to expire quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.delete("/<int:quotation_id>")
@require_tenant
def delete_quotation_route(quotation_id: int):
    try:
        quotation_service.delete_quotation(g.tenant_id, quotation_id)
        return jsonify({"deleted": True}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete quotation")
        return jsonify({"error": "Internal server error"}), 500
