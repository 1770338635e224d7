# Overview: Pytest coverage for low-stock alerts raised by movements.

import pytest

from conftest import WAREHOUSE_ACTOR_ID
from stockledger.errors import ConflictError, InsufficientStockError, NotFoundError
from stockledger.models import StockAlert, TransactionType
from stockledger.services import alert_service, inventory_service


def _stock_out(product, quantity):
    return inventory_service.record_stock_movement(
        TransactionType.STOCK_OUT, product.id, quantity, actor_id=WAREHOUSE_ACTOR_ID
    )


class TestLowStockAlerts:
    def test_crossing_threshold_raises_one_open_alert(self, db_session, stocked):
        _stock_out(stocked, 90)

        alerts = alert_service.list_open_alerts()
        assert len(alerts) == 1
        assert alerts[0].product_id == stocked.id
        assert alerts[0].current_stock == 10
        assert alerts[0].minimum_threshold == 10

    def test_above_threshold_raises_nothing(self, db_session, stocked):
        _stock_out(stocked, 89)

        assert db_session.query(StockAlert).count() == 0

    def test_further_movement_refreshes_instead_of_duplicating(self, db_session, stocked):
        _stock_out(stocked, 92)
        _stock_out(stocked, 3)

        alerts = db_session.query(StockAlert).all()
        assert len(alerts) == 1
        assert alerts[0].current_stock == 5

    def test_restock_resolves_alert(self, db_session, stocked, stock_in):
        _stock_out(stocked, 95)
        stock_in(stocked, 50)

        alert = db_session.query(StockAlert).one()
        assert alert.status == alert_service.ALERT_STATUS_RESOLVED
        assert alert.resolved_at is not None
        assert alert_service.list_open_alerts() == []

    def test_failed_movement_leaves_no_alert(self, db_session, stocked):
        with pytest.raises(InsufficientStockError):
            _stock_out(stocked, 101)

        assert db_session.query(StockAlert).count() == 0


class TestAcknowledge:
    def test_acknowledge_open_alert(self, db_session, stocked):
        _stock_out(stocked, 95)
        alert = alert_service.list_open_alerts()[0]

        acknowledged = alert_service.acknowledge_alert(alert.id)

        assert acknowledged.status == alert_service.ALERT_STATUS_ACKNOWLEDGED
        assert acknowledged.acknowledged_at is not None
        assert alert_service.list_open_alerts() == []
        assert alert_service.list_alerts(status="ACKNOWLEDGED")[0].id == alert.id

    def test_acknowledged_alert_still_refreshed_then_resolved(self, db_session, stocked, stock_in):
        _stock_out(stocked, 95)
        alert_service.acknowledge_alert(alert_service.list_open_alerts()[0].id)

        _stock_out(stocked, 1)
        assert db_session.query(StockAlert).count() == 1

        stock_in(stocked, 20)
        assert db_session.query(StockAlert).one().status == alert_service.ALERT_STATUS_RESOLVED

    def test_acknowledge_twice_conflicts(self, db_session, stocked):
        _stock_out(stocked, 95)
        alert = alert_service.list_open_alerts()[0]
        alert_service.acknowledge_alert(alert.id)

        with pytest.raises(ConflictError):
            alert_service.acknowledge_alert(alert.id)

    def test_unknown_alert(self, db_session):
        with pytest.raises(NotFoundError):
            alert_service.acknowledge_alert(404)
