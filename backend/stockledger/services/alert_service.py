# Overview: Low-stock events raised by stock movements and consumed by the notification collaborator.

from __future__ import annotations

from flask import current_app

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import StockAccount, StockAlert
from ..time_utils import utcnow
from .concurrency import atomic

ALERT_STATUS_OPEN = "OPEN"
ALERT_STATUS_ACKNOWLEDGED = "ACKNOWLEDGED"
ALERT_STATUS_RESOLVED = "RESOLVED"

ACTIVE_ALERT_STATUSES = (ALERT_STATUS_OPEN, ALERT_STATUS_ACKNOWLEDGED)


def _active_alert(product_id: int) -> StockAlert | None:
    return (
        db.session.query(StockAlert)
        .filter(StockAlert.product_id == product_id, StockAlert.status.in_(ACTIVE_ALERT_STATUSES))
        .order_by(StockAlert.id.desc())
        .first()
    )


def evaluate_low_stock(account: StockAccount) -> StockAlert | None:
    """
    Raise, refresh or resolve the product's low-stock alert.

    Must be called inside the movement's unit of work, after the account
    counters were written. Returns the alert only when a new one was raised.
    """
    active = _active_alert(account.product_id)

    if account.current_stock <= account.minimum_threshold:
        if active is not None:
            active.current_stock = account.current_stock
            return None

        alert = StockAlert(
            product_id=account.product_id,
            current_stock=account.current_stock,
            minimum_threshold=account.minimum_threshold,
            status=ALERT_STATUS_OPEN,
            created_at=utcnow(),
        )
        db.session.add(alert)
        db.session.flush()
        current_app.logger.warning(
            "Low stock for product %s: current_stock=%s minimum_threshold=%s",
            account.product_id,
            account.current_stock,
            account.minimum_threshold,
        )
        return alert

    if active is not None:
        active.status = ALERT_STATUS_RESOLVED
        active.current_stock = account.current_stock
        active.resolved_at = utcnow()
    return None


def list_alerts(status: str | None = None, limit: int = 100) -> list[StockAlert]:
    q = db.session.query(StockAlert)
    if status:
        q = q.filter(StockAlert.status == status)
    return q.order_by(StockAlert.created_at.desc(), StockAlert.id.desc()).limit(limit).all()


def list_open_alerts() -> list[StockAlert]:
    """Alerts not yet picked up by notification delivery."""
    return (
        db.session.query(StockAlert)
        .filter(StockAlert.status == ALERT_STATUS_OPEN)
        .order_by(StockAlert.id.asc())
        .all()
    )


def acknowledge_alert(alert_id: int) -> StockAlert:
    with atomic():
        alert = db.session.get(StockAlert, alert_id)
        if alert is None:
            raise NotFoundError("alert", alert_id)
        if alert.status != ALERT_STATUS_OPEN:
            raise ConflictError(
                f"Cannot acknowledge alert in {alert.status} status",
                alert_id=alert_id,
                status=alert.status,
            )
        alert.status = ALERT_STATUS_ACKNOWLEDGED
        alert.acknowledged_at = utcnow()
    return alert
