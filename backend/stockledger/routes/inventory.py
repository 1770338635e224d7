# Overview: Flask API routes for stock accounts, the transaction log and low-stock alerts.

# backend/stockledger/routes/inventory.py
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import WAREHOUSE_ROLES, error_response, require_actor
from ..errors import LedgerError
from ..services import alert_service, inventory_service
from ..services.concurrency import run_with_retry
from ..validation import optional_datetime, optional_int, parse_limit

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/accounts/<int:product_id>")
@require_actor()
def get_stock_account(product_id: int):
    try:
        account = inventory_service.get_stock_account(product_id)
        return jsonify(account.to_dict()), 200
    except LedgerError as e:
        return error_response(e)


@inventory_bp.get("/salesmen/<int:salesman_id>/accounts")
@require_actor()
def list_salesman_accounts(salesman_id: int):
    if g.actor_role == "salesman" and g.actor_id != salesman_id:
        return jsonify({"error": "You can only view your own stock"}), 403
    try:
        accounts = inventory_service.list_salesman_accounts(salesman_id)
        return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200
    except LedgerError as e:
        return error_response(e)


@inventory_bp.get("/salesmen/<int:salesman_id>/accounts/<int:product_id>")
@require_actor()
def get_salesman_stock_account(salesman_id: int, product_id: int):
    if g.actor_role == "salesman" and g.actor_id != salesman_id:
        return jsonify({"error": "You can only view your own stock"}), 403
    try:
        account = inventory_service.get_salesman_stock_account(salesman_id, product_id)
        return jsonify(account.to_dict()), 200
    except LedgerError as e:
        return error_response(e)


@inventory_bp.post("/movements")
@require_actor(*WAREHOUSE_ROLES)
def record_movement():
    """
    Request body:
    {
        "transaction_type": "stock_in" | "stock_out" | "adjustment" | "stocktake",
        "product_id": int,
        "quantity": int (signed for adjustment, counted value for stocktake),
        "counterparty_type": str (optional),
        "counterparty_id": int (optional),
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        txn = run_with_retry(
            lambda: inventory_service.record_stock_movement(
                data.get("transaction_type"),
                data.get("product_id"),
                data.get("quantity"),
                actor_id=g.actor_id,
                counterparty_type=data.get("counterparty_type"),
                counterparty_id=data.get("counterparty_id"),
                notes=data.get("notes"),
            )
        )
        account = inventory_service.get_stock_account(txn.product_id)
        return jsonify({"transaction": txn.to_dict(), "account": account.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/transactions")
@require_actor(*WAREHOUSE_ROLES)
def list_transactions():
    try:
        txns = inventory_service.list_transactions(
            product_id=optional_int(request.args.get("product_id"), "product_id"),
            transaction_type=request.args.get("transaction_type") or None,
            start=optional_datetime(request.args.get("start_date"), "start_date", allow_date=True),
            end=optional_datetime(request.args.get("end_date"), "end_date", allow_date=True),
            limit=parse_limit(request.args.get("limit")),
        )
        return jsonify({"transactions": [t.to_dict() for t in txns]}), 200
    except LedgerError as e:
        return error_response(e)


@inventory_bp.get("/products/<int:product_id>/history")
@require_actor(*WAREHOUSE_ROLES)
def product_history(product_id: int):
    try:
        return jsonify({"product_id": product_id, "history": inventory_service.get_product_history(product_id)}), 200
    except LedgerError as e:
        return error_response(e)


@inventory_bp.get("/products/<int:product_id>/reconcile")
@require_actor(*WAREHOUSE_ROLES)
def reconcile_product(product_id: int):
    try:
        return jsonify(inventory_service.recompute_balances(product_id)), 200
    except LedgerError as e:
        return error_response(e)


@inventory_bp.get("/low-stock")
@require_actor(*WAREHOUSE_ROLES)
def low_stock():
    accounts = inventory_service.list_low_stock()
    return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200


@inventory_bp.get("/alerts")
@require_actor(*WAREHOUSE_ROLES)
def list_alerts():
    try:
        alerts = alert_service.list_alerts(
            status=request.args.get("status") or None,
            limit=parse_limit(request.args.get("limit")),
        )
        return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200
    except LedgerError as e:
        return error_response(e)


@inventory_bp.post("/alerts/<int:alert_id>/acknowledge")
@require_actor(*WAREHOUSE_ROLES)
def acknowledge_alert(alert_id: int):
    try:
        alert = alert_service.acknowledge_alert(alert_id)
        return jsonify(alert.to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to acknowledge alert %s", alert_id)
        return jsonify({"error": "Internal server error"}), 500
