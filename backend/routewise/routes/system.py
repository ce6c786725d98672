# backend/routewise/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import ExchangeRate, Tenant
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        tenant_count = db.session.query(Tenant).count()
        snapshot_count = db.session.query(ExchangeRate).count()
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "tenants": tenant_count,
                "exchange_rate_snapshots": snapshot_count,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_exchange_rate_health() -> dict:
    """Degraded (not unhealthy) when no snapshot exists: built-in defaults apply."""
    try:
        latest = (
            db.session.query(ExchangeRate)
            .order_by(ExchangeRate.fetched_at.desc(), ExchangeRate.id.desc())
            .first()
        )
        if not latest:
            return {"status": "degraded", "warning": "No exchange rate snapshot stored; using defaults"}
        return {
            "status": "healthy",
            "details": {"source": latest.source, "fetched_at": latest.fetched_at.isoformat() + "Z"},
        }
    except Exception:
        current_app.logger.exception("Exchange rate health check failed")
        return {"status": "unhealthy", "error": "Exchange rate lookup error"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    rates_health = check_exchange_rate_health()

    all_checks = [database_health, rates_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "exchange_rates": rates_health,
        },
    }
    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info; never exposes secrets or connection strings."""
    return {
        "api_version": "1.0.0",
        "environment": "testing" if current_app.config.get("TESTING") else current_app.config.get("ENV", "production"),
        "python_version": sys.version.split()[0],
        "default_currency": current_app.config["ROUTEWISE_DEFAULT_CURRENCY"],
        "server_time": utcnow().isoformat() + "Z",
    }, 200
