# backend/stockledger/routes/system.py
"""
Health endpoint for the ledger's backing store.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import StockAccount, StockAlert, StockTransaction
from ..services.alert_service import ALERT_STATUS_OPEN
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with cheap counts over the ledger tables.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        account_count = db.session.query(StockAccount).count()
        transaction_count = db.session.query(StockTransaction).count()
        open_alerts = db.session.query(StockAlert).filter(StockAlert.status == ALERT_STATUS_OPEN).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stock_accounts": account_count,
                "transactions": transaction_count,
                "open_alerts": open_alerts,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: Database reachable
    - 503: Database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }, http_status
