# backend/stockledger/routes/distributions.py
"""
Distribution API routes (warehouse -> salesman / wholesale / retail).
"""
from flask import Blueprint, request, jsonify, g, current_app

from stockledger.decorators import WAREHOUSE_ROLES, error_response, require_actor
from stockledger.errors import LedgerError
from stockledger.services import distribution_service
from stockledger.services.concurrency import run_with_retry
from stockledger.validation import optional_datetime, optional_int, parse_limit


distributions_bp = Blueprint("distributions", __name__, url_prefix="/api/distributions")


@distributions_bp.route("", methods=["POST"])
@require_actor(*WAREHOUSE_ROLES)
def create_distribution():
    """
    Create a distribution.

    Request body:
    {
        "distribution_type": "salesman" | "wholesale" | "retail",
        "recipient": int (salesman id) | {"name": str, "contact": str},
        "items": [{"product_id": int, "quantity": int, "unit_price_cents": int?}],
        "payment_method": str (optional, wholesale/retail),
        "notes": str (optional)
    }

    Returns:
        201: Distribution created
        400: Invalid request
        404: Product or salesman not found
        409: Insufficient warehouse stock
        503: Write conflict, retry
    """
    data = request.get_json(silent=True) or {}

    try:
        recipient = data.get("recipient")
        if recipient is None:
            recipient = data.get("salesman_id") or {
                "name": data.get("recipient_name") or data.get("customer_name"),
                "contact": data.get("recipient_contact") or data.get("customer_contact"),
            }

        distribution = run_with_retry(
            lambda: distribution_service.distribute(
                data.get("distribution_type"),
                recipient,
                data.get("items"),
                data.get("notes"),
                actor_id=g.actor_id,
                payment_method=data.get("payment_method"),
            )
        )
        return jsonify(distribution.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create distribution")
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.route("", methods=["GET"])
@require_actor()
def list_distributions():
    try:
        recipient_id = optional_int(request.args.get("recipient_id"), "recipient_id")
        if g.actor_role == "salesman":
            recipient_id = g.actor_id

        distributions = distribution_service.list_distributions(
            distribution_type=request.args.get("distribution_type"),
            status=request.args.get("status"),
            recipient_id=recipient_id,
            start=optional_datetime(request.args.get("start_date"), "start_date", allow_date=True),
            end=optional_datetime(request.args.get("end_date"), "end_date", allow_date=True),
            limit=parse_limit(request.args.get("limit")),
        )
        return jsonify({"distributions": [d.to_dict(include_items=False) for d in distributions]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list distributions")
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.route("/<int:distribution_id>", methods=["GET"])
@require_actor()
def get_distribution(distribution_id: int):
    try:
        distribution = distribution_service.get_distribution(distribution_id)
        if g.actor_role == "salesman" and distribution.recipient_id != g.actor_id:
            return jsonify({"error": "You are not authorized to view this distribution"}), 403
        return jsonify(distribution.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load distribution %s", distribution_id)
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.route("/<int:distribution_id>/status", methods=["POST"])
@require_actor(*WAREHOUSE_ROLES)
def update_distribution_status(distribution_id: int):
    """
    Request body:
    {
        "status": "completed" | "cancelled",
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        distribution = run_with_retry(
            lambda: distribution_service.update_distribution_status(
                distribution_id,
                data.get("status"),
                actor_id=g.actor_id,
                notes=data.get("notes"),
            )
        )
        return jsonify(distribution.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update distribution %s", distribution_id)
        return jsonify({"error": "Internal server error"}), 500
