# Overview: Flask API routes for vehicles, drivers and clients; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..collaborators import get_collaborators
from ..decorators import require_tenant
from ..errors import ValidationError, WorkflowError
from ..services import fleet_service
from ..validation import bool_field, int_field, json_body

fleet_bp = Blueprint("fleet", __name__, url_prefix="/api")


def _fields(data: dict, allowed) -> dict:
    unknown = set(data) - set(allowed)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return data


# =============================================================================
# VEHICLES
# =============================================================================


@fleet_bp.post("/vehicles")
@require_tenant
def create_vehicle_route():
    """
    Register a vehicle.

    Request body:
    {
        "name": "Coaster 01",
        "passenger_capacity": 15,
        "fuel_capacity": 100,
        "fuel_capacity_unit": "gal",        (optional; gal or l)
        "fuel_efficiency": 10,
        "fuel_efficiency_unit": "km/gal",   (optional; km/gal, km/l or mpg)
        "cost_per_distance": 5,
        "cost_per_day": 2000,
        "base_location": "San Pedro Sula"   (optional)
    }

    Returns:
        201: Vehicle created
        400: Missing or invalid fields
        403: Account not active
    """
    try:
        data = json_body(request)
        vehicle = fleet_service.create_vehicle(
            g.tenant_id,
            plan_limits=get_collaborators().plan_limits,
            **_fields(data, fleet_service.VEHICLE_FIELDS),
        )
        return jsonify({"vehicle": vehicle.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e), **e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create vehicle")
        return jsonify({"error": "Internal server error"}), 500


@fleet_bp.get("/vehicles")
@require_tenant
def list_vehicles_route():
    try:
        vehicles = fleet_service.list_vehicles(
            g.tenant_id,
            status=request.args.get("status"),
            min_capacity=int_field(request.args, "min_capacity"),
        )
        return jsonify({"vehicles": [v.to_dict() for v in vehicles]}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@fleet_bp.get("/vehicles/<int:vehicle_id>")
@require_tenant
def get_vehicle_route(vehicle_id: int):
    try:
        return jsonify({"vehicle": fleet_service.get_vehicle(g.tenant_id, vehicle_id).to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@fleet_bp.patch("/vehicles/<int:vehicle_id>")
@require_tenant
def update_vehicle_route(vehicle_id: int):
    """Partial update; set status to inactive to retire a vehicle."""
    try:
        data = json_body(request)
        vehicle = fleet_service.update_vehicle(g.tenant_id, vehicle_id, **_fields(data, fleet_service.VEHICLE_FIELDS))
        return jsonify({"vehicle": vehicle.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update vehicle")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DRIVERS
# =============================================================================


@fleet_bp.post("/drivers")
@require_tenant
def create_driver_route():
    try:
        data = json_body(request)
        driver = fleet_service.create_driver(g.tenant_id, **_fields(data, fleet_service.DRIVER_FIELDS))
        return jsonify({"driver": driver.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create driver")
        return jsonify({"error": "Internal server error"}), 500


@fleet_bp.get("/drivers")
@require_tenant
def list_drivers_route():
    drivers = fleet_service.list_drivers(g.tenant_id, active_only=bool_field(request.args, "active", False))
    return jsonify({"drivers": [d.to_dict() for d in drivers]}), 200


@fleet_bp.patch("/drivers/<int:driver_id>")
@require_tenant
def update_driver_route(driver_id: int):
    try:
        driver = fleet_service.update_driver(
            g.tenant_id, driver_id, **_fields(json_body(request), fleet_service.DRIVER_FIELDS)
        )
        return jsonify({"driver": driver.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update driver")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CLIENTS
# =============================================================================


@fleet_bp.post("/clients")
@require_tenant
def create_client_route():
    """
    Add a client.

    Request body:
    {
        "type": "company",                 (company or individual)
        "company_name": "Hotel Real",
        "code": "HOTR",                    (optional; derived from the name)
        "discount_percentage": 5,          (optional)
        "payment_terms_days": 15           (optional; tenant default otherwise)
    }

    Returns:
        201: Client created
        409: Client code already in use
    """
    try:
        data = json_body(request)
        client = fleet_service.create_client(g.tenant_id, **_fields(data, fleet_service.CLIENT_FIELDS))
        return jsonify({"client": client.to_dict()}), 201
    except WorkflowError as e:
        return jsonify({"error": str(e), **e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@fleet_bp.get("/clients")
@require_tenant
def list_clients_route():
    try:
        clients = fleet_service.list_clients(g.tenant_id, status=request.args.get("status"))
        return jsonify({"clients": [c.to_dict() for c in clients]}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@fleet_bp.get("/clients/<int:client_id>")
@require_tenant
def get_client_route(client_id: int):
    try:
        return jsonify({"client": fleet_service.get_client(g.tenant_id, client_id).to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code


@fleet_bp.patch("/clients/<int:client_id>")
@require_tenant
def update_client_route(client_id: int):
    try:
        client = fleet_service.update_client(
            g.tenant_id, client_id, **_fields(json_body(request), fleet_service.CLIENT_FIELDS)
        )
        return jsonify({"client": client.to_dict()}), 200
    except WorkflowError as e:
        return jsonify({"error": str(e), **e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500
