# backend/stockledger/routes/returns.py
"""
Return API routes (shop -> salesman, salesman -> warehouse).
"""
from flask import Blueprint, request, jsonify, g, current_app

from stockledger.decorators import WAREHOUSE_ROLES, error_response, require_actor
from stockledger.errors import LedgerError
from stockledger.services import return_service
from stockledger.services.concurrency import run_with_retry
from stockledger.validation import optional_datetime, optional_int, parse_limit


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.route("/shop", methods=["POST"])
@require_actor("salesman")
def create_shop_return():
    """
    Take goods back from a shop (acting salesman must be assigned to it).

    Request body:
    {
        "shop_id": int,
        "items": [{"product_id": int, "quantity": int, "condition": str, "notes": str?}],
        "return_reason": str (optional),
        "order_id": int (optional),
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        return_doc = run_with_retry(
            lambda: return_service.create_return(
                return_service.RETURN_TYPE_SHOP,
                g.actor_id,
                data.get("shop_id"),
                data.get("items"),
                data.get("return_reason"),
                order_id=data.get("order_id"),
                notes=data.get("notes"),
            )
        )
        return jsonify(return_doc.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create shop return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.route("/salesman", methods=["POST"])
@require_actor(*WAREHOUSE_ROLES)
def create_salesman_return():
    """
    End-of-day return from a salesman to the warehouse.

    Request body:
    {
        "salesman_id": int,
        "items": [{"product_id": int, "quantity": int}],
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        return_doc = run_with_retry(
            lambda: return_service.create_return(
                return_service.RETURN_TYPE_SALESMAN,
                g.actor_id,
                data.get("salesman_id"),
                data.get("items"),
                notes=data.get("notes"),
            )
        )
        return jsonify(return_doc.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create end of day return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.route("", methods=["GET"])
@require_actor()
def list_returns():
    try:
        salesman_id = optional_int(request.args.get("salesman_id"), "salesman_id")
        if g.actor_role == "salesman":
            salesman_id = g.actor_id

        returns = return_service.list_returns(
            return_type=request.args.get("return_type"),
            shop_id=optional_int(request.args.get("shop_id"), "shop_id"),
            salesman_id=salesman_id,
            start=optional_datetime(request.args.get("start_date"), "start_date", allow_date=True),
            end=optional_datetime(request.args.get("end_date"), "end_date", allow_date=True),
            limit=parse_limit(request.args.get("limit")),
        )
        return jsonify({"returns": [r.to_dict(include_items=False) for r in returns]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.route("/<int:return_id>", methods=["GET"])
@require_actor()
def get_return(return_id: int):
    try:
        return_doc = return_service.get_return(return_id)
        if g.actor_role == "salesman" and return_doc.salesman_id != g.actor_id:
            return jsonify({"error": "You are not authorized to view this return"}), 403
        return jsonify(return_doc.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load return %s", return_id)
        return jsonify({"error": "Internal server error"}), 500
