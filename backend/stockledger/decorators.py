# Overview: Caller identity and error-to-response helpers for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import LedgerError

# Roles the routing layer may assert in X-Actor-Role
ACTOR_ROLES = ("owner", "warehouse_manager", "salesman", "shop")
WAREHOUSE_ROLES = ("owner", "warehouse_manager")


def require_actor(*allowed_roles):
    """
    Read the pre-authenticated caller from request headers.

    The ledger performs no authentication. The gateway in front of it
    resolves the user and forwards:
    - X-Actor-Id: numeric user id
    - X-Actor-Role: one of ACTOR_ROLES

    Sets g.actor_id and g.actor_role. Returns 401 when the headers are
    missing or malformed, 403 when the role is not in allowed_roles (if
    any are given).
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            raw_id = request.headers.get("X-Actor-Id", "").strip()
            role = request.headers.get("X-Actor-Role", "").strip()

            if not raw_id.isdigit() or int(raw_id) <= 0 or role not in ACTOR_ROLES:
                return jsonify({"error": "Actor identity required"}), 401

            if allowed_roles and role not in allowed_roles:
                return jsonify({"error": f"Role {role} is not allowed to perform this action"}), 403

            g.actor_id = int(raw_id)
            g.actor_role = role
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def error_response(error: LedgerError):
    """JSON body and status code for a typed ledger error."""
    return jsonify(error.to_dict()), error.status_code
