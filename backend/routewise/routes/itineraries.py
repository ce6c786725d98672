# Overview: Flask API routes for itinerary operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..collaborators import get_collaborators
from ..decorators import require_tenant
from ..errors import WorkflowError
from ..services import advance_service, itinerary_service
from ..validation import cents_field, int_field, json_body, pick, require_fields, timestamp_field

itineraries_bp = Blueprint("itineraries", __name__, url_prefix="/api/itineraries")

SCHEDULE_FIELDS = itinerary_service.SCHEDULE_FIELDS


@itineraries_bp.post("/from-quotation/<int:quotation_id>")
@require_tenant
def create_from_quotation_route(quotation_id: int):
    """
    Convert an approved quotation into a scheduled itinerary.

    Request body:
    {
        "start_date": 1767225600000,   (epoch ms or ISO-8601)
        "end_date": ...,               (optional)
        "driver_id": 2,                (optional)
        "pickup_location": "Hotel X"   (optional schedule fields)
    }

    Returns:
        201: Itinerary created
        409: Quotation not approved, or already converted
    """
    try:
        data = json_body(request)
        itinerary = itinerary_service.create_itinerary_from_quotation(
            g.tenant_id,
            quotation_id,
            start_date=timestamp_field(data, "start_date", required=True),
            end_date=timestamp_field(data, "end_date"),
            driver_id=int_field(data, "driver_id"),
            vehicle_id=int_field(data, "vehicle_id"),
            notifier=get_collaborators().notifier,
            **pick(data, *SCHEDULE_FIELDS),
        )
        return jsonify({"itinerary": itinerary.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e), **e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create itinerary from quotation")
        return jsonify({"error": "Internal server error"}), 500


@itineraries_bp.post("")
@require_tenant
def create_itinerary_route():
    """Manual itinerary; agreed_price_cents (or legacy agreed_price_hnl) required."""
    try:
        data = json_body(request)
        require_fields(data, "origin", "destination", "start_date", "total_distance_km")
        exchange_rate = data.get("exchange_rate")
        itinerary = itinerary_service.create_itinerary(
            g.tenant_id,
            origin=data.get("origin"),
            destination=data.get("destination"),
            start_date=timestamp_field(data, "start_date", required=True),
            end_date=timestamp_field(data, "end_date"),
            total_distance_km=data.get("total_distance_km"),
            agreed_price_cents=cents_field(data, "agreed_price_cents", "agreed_price_hnl", required=True),
            exchange_rate=exchange_rate,
            rate_provider=None if exchange_rate is not None else get_collaborators().rate_provider,
            base_location=data.get("base_location"),
            client_id=int_field(data, "client_id"),
            vehicle_id=int_field(data, "vehicle_id"),
            driver_id=int_field(data, "driver_id"),
            group_size=int_field(data, "group_size", 1),
            group_leader_name=data.get("group_leader_name"),
            total_time_minutes=int_field(data, "total_time_minutes", 0),
            estimated_days=int_field(data, "estimated_days", 1),
            **pick(data, *SCHEDULE_FIELDS),
        )
        return jsonify({"itinerary": itinerary.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create itinerary")
        return jsonify({"error": "Internal server error"}), 500


@itineraries_bp.get("")
@require_tenant
def list_itineraries_route():
    try:
        itineraries = itinerary_service.list_itineraries(
            g.tenant_id,
            status=request.args.get("status"),
            driver_id=int_field(request.args, "driver_id"),
            limit=int_field(request.args, "limit", 100),
            offset=int_field(request.args, "offset", 0),
        )
        return jsonify({"itineraries": [i.to_dict() for i in itineraries]}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@itineraries_bp.get("/<int:itinerary_id>")
@require_tenant
def get_itinerary_route(itinerary_id: int):
    try:
        itinerary = itinerary_service.get_itinerary(g.tenant_id, itinerary_id)
        return jsonify({"itinerary": itinerary.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@itineraries_bp.get("/<int:itinerary_id>/suggested-advance")
@require_tenant
def suggested_advance_route(itinerary_id: int):
    try:
        suggestion = advance_service.calculate_suggested_advance(g.tenant_id, itinerary_id)
        return jsonify(suggestion), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute suggested advance")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LIFECYCLE
# =============================================================================


@itineraries_bp.post("/<int:itinerary_id>/start")
@require_tenant
def start_itinerary_route(itinerary_id: int):
    try:
        itinerary = itinerary_service.start_itinerary(g.tenant_id, itinerary_id)
        return jsonify({"itinerary": itinerary.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start itinerary")
        return jsonify({"error": "Internal server error"}), 500


@itineraries_bp.post("/<int:itinerary_id>/complete")
@require_tenant
def complete_itinerary_route(itinerary_id: int):
    try:
        itinerary = itinerary_service.complete_itinerary(g.tenant_id, itinerary_id)
        return jsonify({"itinerary": itinerary.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete itinerary")
        return jsonify({"error": "Internal server error"}), 500


@itineraries_bp.post("/<int:itinerary_id>/cancel")
@require_tenant
def cancel_itinerary_route(itinerary_id: int):
    try:
        data = json_body(request)
        itinerary = itinerary_service.cancel_itinerary(g.tenant_id, itinerary_id, reason=data.get("reason"))
        return jsonify({"itinerary": itinerary.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel itinerary")
        return jsonify({"error": "Internal server error"}), 500


@itineraries_bp.put("/<int:itinerary_id>/driver")
@require_tenant
def assign_driver_route(itinerary_id: int):
    try:
        data = json_body(request)
        require_fields(data, "driver_id")
        itinerary = itinerary_service.assign_driver(g.tenant_id, itinerary_id, int_field(data, "driver_id"))
        return jsonify({"itinerary": itinerary.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign driver")
        return jsonify({"error": "Internal server error"}), 500


@itineraries_bp.put("/<int:itinerary_id>/vehicle")
@require_tenant
def assign_vehicle_route(itinerary_id: int):
    try:
        data = json_body(request)
        require_fields(data, "vehicle_id")
        itinerary = itinerary_service.assign_vehicle(g.tenant_id, itinerary_id, int_field(data, "vehicle_id"))
        return jsonify({"itinerary": itinerary.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign vehicle")
        return jsonify({"error": "Internal server error"}), 500


@itineraries_bp.delete("/<int:itinerary_id>")
@require_tenant
def delete_itinerary_route(itinerary_id: int):
    try:
        itinerary_service.delete_itinerary(g.tenant_id, itinerary_id)
        return jsonify({"deleted": True}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete itinerary")
        return jsonify({"error": "Internal server error"}), 500
