# Overview: Flask API routes for stateless pricing calculations.

from flask import Blueprint, current_app, g, jsonify, request

from ..collaborators import get_collaborators
from ..decorators import require_tenant
from ..errors import WorkflowError
from ..services import pricing
from ..services.exchange_rate_service import resolve_rate
from ..services.tenant_service import get_tenant
from ..validation import json_body, require_fields

pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


def _decimal_dict(values: dict) -> dict:
    return {k: float(v) for k, v in values.items()}


@pricing_bp.post("/options")
@require_tenant
def pricing_options_route():
    """
    Markup options for a known total cost.

    Request body:
    {
        "total_cost": 4450,             (local currency, major units)
        "markups": [10, 20, 30],        (optional)
        "recommended_markup": 20,       (optional)
        "discount_percentage": 5,       (optional)
        "exchange_rate": 25             (optional, tenant rate otherwise)
    }
    """
    try:
        data = json_body(request)
        require_fields(data, "total_cost")
        rate = data.get("exchange_rate")
        if rate is None:
            tenant = get_tenant(g.tenant_id)
            rate = resolve_rate(g.tenant_id, tenant.local_currency, get_collaborators().rate_provider)

        options = pricing.generate_pricing_options(
            data.get("total_cost"),
            rate,
            markups=data.get("markups") or pricing.DEFAULT_MARKUPS,
            recommended_markup=data.get("recommended_markup", pricing.DEFAULT_RECOMMENDED_MARKUP),
            rounding_local=data.get("rounding_local"),
            rounding_usd=data.get("rounding_usd"),
        )
        options = pricing.apply_client_discount(options, data.get("discount_percentage"))
        return jsonify({"exchange_rate": float(rate), "options": [o.to_dict() for o in options]}), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate pricing options")
        return jsonify({"error": "Internal server error"}), 500


@pricing_bp.post("/profit")
@require_tenant
def profit_route():
    """Profit, margin and implied markup for a cost / sale price pair."""
    try:
        data = json_body(request)
        require_fields(data, "cost", "price")
        result = pricing.calculate_profit(data.get("cost"), data.get("price"))
        return jsonify(_decimal_dict(result)), 200
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to calculate profit")
        return jsonify({"error": "Internal server error"}), 500
