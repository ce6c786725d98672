# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .extensions import db
from .models import Tenant


def require_tenant(f):
    """
    Establish tenant context from the X-Tenant-ID header.

    MULTI-TENANT: Sets g.tenant_id. Authentication is handled upstream; this
    only resolves which tenant's documents the request may touch.

    Returns 400 when the header is missing or not an integer, 404 when the
    tenant does not exist.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-Tenant-ID")
        if not raw:
            return jsonify({"error": "X-Tenant-ID header required"}), 400
        try:
            tenant_id = int(raw)
        except ValueError:
            return jsonify({"error": "X-Tenant-ID must be an integer"}), 400

        if not db.session.get(Tenant, tenant_id):
            return jsonify({"error": "Tenant not found"}), 404

        g.tenant_id = tenant_id
        return f(*args, **kwargs)

    return decorated_function
