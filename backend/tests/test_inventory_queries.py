# Overview: Pytest coverage for the read surface: accounts, transaction log, history and reconciliation.

from datetime import datetime, time, timedelta

import pytest

from conftest import WAREHOUSE_ACTOR_ID
from stockledger.errors import NotFoundError, ValidationError
from stockledger.models import TransactionType
from stockledger.services import distribution_service, inventory_service, return_service
from stockledger.time_utils import utcnow


@pytest.fixture
def busy_product(db_session, stocked, salesman):
    """Product X after stock_in 100, distribute 40, stock_out 10, EOD return 15, stocktake 60."""
    distribution_service.distribute_to_salesman(
        salesman.id, [{"product_id": stocked.id, "quantity": 40}], actor_id=WAREHOUSE_ACTOR_ID
    )
    inventory_service.record_stock_movement(
        TransactionType.STOCK_OUT, stocked.id, 10, actor_id=WAREHOUSE_ACTOR_ID, notes="Expired batch"
    )
    return_service.create_salesman_return(
        salesman.id, [{"product_id": stocked.id, "quantity": 15}], actor_id=WAREHOUSE_ACTOR_ID
    )
    inventory_service.record_stock_movement(
        TransactionType.STOCKTAKE, stocked.id, 60, actor_id=WAREHOUSE_ACTOR_ID
    )
    return stocked


class TestAccounts:
    def test_get_stock_account(self, db_session, stocked):
        account = inventory_service.get_stock_account(stocked.id)

        assert account.warehouse_stock == 100
        assert account.to_dict()["last_updated"].endswith("Z")

    def test_product_without_movements_has_no_account(self, db_session, product):
        with pytest.raises(NotFoundError):
            inventory_service.get_stock_account(product.id)

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            inventory_service.get_stock_account(31337)
        assert exc_info.value.entity == "product"

    def test_salesman_accounts(self, db_session, busy_product, salesman):
        accounts = inventory_service.list_salesman_accounts(salesman.id)
        assert [a.product_id for a in accounts] == [busy_product.id]

        account = inventory_service.get_salesman_stock_account(salesman.id, busy_product.id)
        assert (account.allocated_quantity, account.remaining_quantity, account.returned_quantity) == (40, 25, 15)

    def test_reads_do_not_change_state(self, db_session, busy_product):
        first = inventory_service.get_stock_account(busy_product.id).to_dict()
        inventory_service.get_product_history(busy_product.id)
        inventory_service.recompute_balances(busy_product.id)
        second = inventory_service.get_stock_account(busy_product.id).to_dict()

        assert first == second


class TestTransactionLog:
    def test_newest_first_with_type_filter(self, db_session, busy_product):
        rows = inventory_service.list_transactions(busy_product.id)
        assert [r.transaction_type for r in rows] == [
            "stocktake", "transfer_in", "stock_out", "transfer_out", "stock_in",
        ]

        outs = inventory_service.list_transactions(busy_product.id, "stock_out")
        assert len(outs) == 1
        assert outs[0].notes == "Expired batch"

    def test_unknown_type_filter_rejected(self, db_session, busy_product):
        with pytest.raises(ValidationError):
            inventory_service.list_transactions(busy_product.id, "teleport")

    def test_date_bounds(self, db_session, busy_product):
        today = utcnow().date()

        assert len(inventory_service.list_transactions(busy_product.id, start=today, end=today)) == 5
        assert inventory_service.list_transactions(busy_product.id, start=today + timedelta(days=1)) == []

    def test_explicit_midnight_end_is_not_widened(self, db_session, busy_product):
        first = inventory_service.list_transactions(busy_product.id)[-1]
        day = first.transaction_date.date()
        midnight = datetime.combine(day, time.min)

        exact = inventory_service.list_transactions(busy_product.id, end=midnight)
        whole_day = inventory_service.list_transactions(busy_product.id, end=day)

        assert all(r.transaction_date <= midnight for r in exact)
        assert first in whole_day

    def test_limit(self, db_session, busy_product):
        assert len(inventory_service.list_transactions(busy_product.id, limit=2)) == 2


class TestHistoryAndReconciliation:
    def test_history_carries_running_warehouse_balance(self, db_session, busy_product):
        history = inventory_service.get_product_history(busy_product.id)

        assert [row["transaction_type"] for row in history] == [
            "stock_in", "transfer_out", "stock_out", "transfer_in", "stocktake",
        ]
        # 100, 60, 50, 65, then counted down to 60
        assert [row["warehouse_balance"] for row in history] == [100, 60, 50, 65, 60]
        assert history[-1]["warehouse_balance"] == inventory_service.get_stock_account(busy_product.id).warehouse_stock

    def test_replay_matches_stored_counters(self, db_session, busy_product):
        report = inventory_service.recompute_balances(busy_product.id)

        assert report["consistent"] is True
        assert report["transaction_count"] == 5
        assert report["stored"] == {"warehouse_stock": 60, "current_stock": 85, "allocated_stock": 25}
        assert report["drift"] == {"warehouse_stock": 0, "current_stock": 0, "allocated_stock": 0}

    def test_drift_is_reported(self, db_session, stocked):
        account = inventory_service.get_stock_account(stocked.id)
        account.warehouse_stock = 97
        db_session.commit()

        report = inventory_service.recompute_balances(stocked.id)

        assert report["consistent"] is False
        assert report["drift"]["warehouse_stock"] == -3


class TestManualMovements:
    def test_transfers_are_workflow_only(self, db_session, stocked):
        with pytest.raises(ValidationError):
            inventory_service.record_stock_movement(
                "transfer_out", stocked.id, 5, actor_id=WAREHOUSE_ACTOR_ID
            )

    def test_salesman_counterparty_rejected(self, db_session, stocked):
        with pytest.raises(ValidationError):
            inventory_service.record_stock_movement(
                "stock_out", stocked.id, 5, actor_id=WAREHOUSE_ACTOR_ID, counterparty_type="salesman"
            )

    def test_string_quantity_is_coerced(self, db_session, stocked):
        txn = inventory_service.record_stock_movement("stock_in", stocked.id, "12", actor_id=WAREHOUSE_ACTOR_ID)
        assert txn.quantity == 12

    def test_decimal_quantity_rejected(self, db_session, stocked):
        with pytest.raises(ValidationError):
            inventory_service.record_stock_movement("stock_in", stocked.id, "1.5", actor_id=WAREHOUSE_ACTOR_ID)

    def test_low_stock_listing(self, db_session, stocked, make_product, stock_in):
        scarce = make_product(name="Scarce", min_stock_level=10)
        stock_in(scarce, 4)

        low = inventory_service.list_low_stock()

        assert [a.product_id for a in low] == [scarce.id]
