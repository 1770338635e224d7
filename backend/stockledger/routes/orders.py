# backend/stockledger/routes/orders.py
"""
Order API routes (shop sales fulfilled from salesman stock).
"""
from flask import Blueprint, request, jsonify, g, current_app

from stockledger.decorators import error_response, require_actor
from stockledger.errors import LedgerError
from stockledger.services import order_service
from stockledger.services.concurrency import run_with_retry
from stockledger.validation import optional_datetime, optional_int, parse_limit


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.route("", methods=["POST"])
@require_actor("salesman", "shop")
def create_order():
    """
    Create an order.

    Request body:
    {
        "shop_id": int,
        "items": [{"product_id": int, "quantity": int, "unit_price_cents": int?}],
        "payment_method": str (optional, default cash),
        "notes": str (optional),
        "delivery_date": ISO-8601 (optional)
    }

    Returns:
        201: Order created (completed for salesmen, pending for shops)
        400: Invalid request
        403: Shop ordering for another shop
        404: Shop, salesman or product not found
        409: Insufficient salesman stock
    """
    data = request.get_json(silent=True) or {}

    try:
        order = run_with_retry(
            lambda: order_service.create_order(
                g.actor_role,
                data.get("shop_id"),
                data.get("items"),
                data.get("payment_method"),
                data.get("notes"),
                actor_id=g.actor_id,
                delivery_date=data.get("delivery_date"),
            )
        )
        return jsonify(order.to_dict()), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.route("", methods=["GET"])
@require_actor()
def list_orders():
    try:
        salesman_id = optional_int(request.args.get("salesman_id"), "salesman_id")
        if g.actor_role == "salesman":
            salesman_id = g.actor_id

        orders = order_service.list_orders(
            shop_id=optional_int(request.args.get("shop_id"), "shop_id"),
            salesman_id=salesman_id,
            status=request.args.get("status"),
            start=optional_datetime(request.args.get("start_date"), "start_date", allow_date=True),
            end=optional_datetime(request.args.get("end_date"), "end_date", allow_date=True),
            limit=parse_limit(request.args.get("limit")),
        )
        return jsonify({"orders": [o.to_dict(include_items=False) for o in orders]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.route("/<int:order_id>", methods=["GET"])
@require_actor()
def get_order(order_id: int):
    try:
        order = order_service.get_order(order_id)
        if g.actor_role == "salesman" and order.salesman_id != g.actor_id:
            return jsonify({"error": "You are not authorized to view this order"}), 403
        return jsonify(order.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.route("/<int:order_id>/status", methods=["POST"])
@require_actor("owner", "warehouse_manager", "salesman")
def update_order_status(order_id: int):
    """
    Request body:
    {
        "status": "processing" | "completed" | "cancelled",
        "notes": str (optional)
    }

    Returns:
        200: Status updated
        403: Salesman not assigned to the order
        409: Illegal transition or insufficient salesman stock
    """
    data = request.get_json(silent=True) or {}

    try:
        order = run_with_retry(
            lambda: order_service.update_order_status(
                order_id,
                data.get("status"),
                data.get("notes"),
                actor_id=g.actor_id,
                actor_role=g.actor_role,
            )
        )
        return jsonify(order.to_dict()), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500
