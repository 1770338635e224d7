# Overview: Pytest coverage for the per-type stock effects and transaction log immutability.

import pytest
from sqlalchemy import false

from conftest import WAREHOUSE_ACTOR_ID
from stockledger.errors import ConcurrencyError, InsufficientStockError, ValidationError
from stockledger.extensions import db
from stockledger.models import (
    LocationType,
    SalesmanStockAccount,
    StockAccount,
    StockTransaction,
    StockTransactionImmutableError,
    TransactionType,
)
from stockledger.services import inventory_service, movement_service
from stockledger.services.concurrency import atomic, run_with_retry
from stockledger.services.movement_service import MovementRequest, apply_movement


def _account(product):
    return db.session.query(StockAccount).filter_by(product_id=product.id).one()


def _move(transaction_type, product, quantity, **kwargs):
    with atomic():
        return apply_movement(
            MovementRequest(
                transaction_type=transaction_type,
                product=product,
                quantity=quantity,
                actor_id=WAREHOUSE_ACTOR_ID,
                **kwargs,
            )
        )


class TestAccountSeeding:
    def test_account_created_lazily_from_min_stock_level(self, db_session, make_product, stock_in):
        product = make_product(min_stock_level=15)
        assert db_session.query(StockAccount).filter_by(product_id=product.id).first() is None

        stock_in(product, 5)

        account = _account(product)
        assert account.minimum_threshold == 15
        assert account.reorder_quantity == 30

    def test_account_threshold_falls_back_to_config_default(self, app, db_session, make_product, stock_in):
        product = make_product(min_stock_level=None)
        stock_in(product, 50)

        account = _account(product)
        assert account.minimum_threshold == app.config["LEDGER_DEFAULT_MINIMUM_THRESHOLD"]
        assert account.reorder_quantity == 2 * account.minimum_threshold


class TestWarehouseEffects:
    def test_stock_in_raises_warehouse_and_current(self, db_session, product):
        txn = _move(TransactionType.STOCK_IN, product, 30)

        account = _account(product)
        assert (account.warehouse_stock, account.current_stock, account.allocated_stock) == (30, 30, 0)
        assert txn.source_type == LocationType.SUPPLIER.value
        assert txn.destination_type == LocationType.WAREHOUSE.value

    def test_stock_out_lowers_both_counters(self, db_session, stocked):
        _move(TransactionType.STOCK_OUT, stocked, 25, counterparty_type=LocationType.WASTE)

        account = _account(stocked)
        assert (account.warehouse_stock, account.current_stock) == (75, 75)

    def test_stock_out_beyond_warehouse_is_rejected(self, db_session, stocked):
        with pytest.raises(InsufficientStockError) as exc_info:
            _move(TransactionType.STOCK_OUT, stocked, 101)

        assert exc_info.value.available == 100
        assert exc_info.value.requested == 101
        assert _account(stocked).warehouse_stock == 100

    def test_stock_in_rejects_waste_as_source(self, db_session, product):
        with pytest.raises(ValidationError):
            _move(TransactionType.STOCK_IN, product, 5, counterparty_type=LocationType.WASTE)

    def test_positive_adjustment(self, db_session, stocked):
        txn = _move(TransactionType.ADJUSTMENT, stocked, 7)

        account = _account(stocked)
        assert (account.warehouse_stock, account.current_stock) == (107, 107)
        assert txn.quantity == 7
        assert txn.destination_type == LocationType.WAREHOUSE.value

    def test_negative_adjustment_logged_as_positive_quantity(self, db_session, stocked):
        txn = _move(TransactionType.ADJUSTMENT, stocked, -12)

        account = _account(stocked)
        assert (account.warehouse_stock, account.current_stock) == (88, 88)
        assert txn.quantity == 12
        assert txn.source_type == LocationType.WAREHOUSE.value
        assert txn.warehouse_delta == -12

    def test_negative_adjustment_cannot_go_below_zero(self, db_session, stocked):
        with pytest.raises(InsufficientStockError):
            _move(TransactionType.ADJUSTMENT, stocked, -101)

    def test_zero_adjustment_is_rejected(self, db_session, stocked):
        with pytest.raises(ValidationError):
            _move(TransactionType.ADJUSTMENT, stocked, 0)

    def test_stocktake_sets_counted_value(self, db_session, stocked):
        txn = _move(TransactionType.STOCKTAKE, stocked, 94)

        account = _account(stocked)
        assert (account.warehouse_stock, account.current_stock) == (94, 94)
        assert account.last_stocktake_at is not None
        assert txn.quantity == 6
        assert txn.warehouse_delta == -6

    def test_stocktake_with_no_difference_logs_zero_quantity(self, db_session, stocked):
        txn = _move(TransactionType.STOCKTAKE, stocked, 100)

        assert txn.quantity == 0
        assert txn.warehouse_delta == 0
        assert _account(stocked).warehouse_stock == 100

    def test_unknown_type_rejected_at_boundary(self, db_session, stocked):
        with pytest.raises(ValidationError):
            movement_service.parse_transaction_type("restock")
        with pytest.raises(ValidationError):
            inventory_service.record_stock_movement("restock", stocked.id, 5, actor_id=WAREHOUSE_ACTOR_ID)


class TestSalesmanTransfers:
    def test_transfer_out_moves_stock_to_salesman(self, db_session, stocked, salesman):
        _move(TransactionType.TRANSFER_OUT, stocked, 40, salesman_id=salesman.id)

        account = _account(stocked)
        assert (account.warehouse_stock, account.current_stock, account.allocated_stock) == (60, 100, 40)
        field = db_session.query(SalesmanStockAccount).filter_by(salesman_id=salesman.id).one()
        assert (field.allocated_quantity, field.remaining_quantity) == (40, 40)

    def test_transfer_in_floors_allocated_at_zero(self, db_session, stocked, salesman):
        _move(TransactionType.TRANSFER_OUT, stocked, 10, salesman_id=salesman.id)
        movement_service.credit_shop_return(salesman.id, stocked, 5)
        db_session.commit()

        _move(TransactionType.TRANSFER_IN, stocked, 15, salesman_id=salesman.id)

        account = _account(stocked)
        assert account.warehouse_stock == 105
        assert account.allocated_stock == 0
        field = db_session.query(SalesmanStockAccount).filter_by(salesman_id=salesman.id).one()
        assert (field.remaining_quantity, field.returned_quantity) == (0, 15)

    def test_transfer_in_beyond_remaining_is_rejected(self, db_session, stocked, salesman):
        _move(TransactionType.TRANSFER_OUT, stocked, 10, salesman_id=salesman.id)

        with pytest.raises(InsufficientStockError) as exc_info:
            _move(TransactionType.TRANSFER_IN, stocked, 11, salesman_id=salesman.id)

        assert exc_info.value.scope == "salesman"
        assert exc_info.value.available == 10
        assert _account(stocked).warehouse_stock == 90

    def test_salesman_sale_keeps_conservation(self, db_session, stocked, salesman):
        _move(TransactionType.TRANSFER_OUT, stocked, 20, salesman_id=salesman.id)
        with atomic():
            field = movement_service.record_salesman_sale(salesman.id, stocked, 8)

        assert field.remaining_quantity == 12
        assert field.sold_quantity == 8
        assert (
            field.allocated_quantity - field.sold_quantity - field.returned_quantity
            == field.remaining_quantity
        )

    def test_salesman_sale_without_account_is_rejected(self, db_session, stocked, salesman):
        with pytest.raises(InsufficientStockError) as exc_info:
            movement_service.record_salesman_sale(salesman.id, stocked, 1)
        assert exc_info.value.available == 0


class TestLazyCreationRace:
    def test_duplicate_account_insert_surfaces_as_concurrency_error(self, db_session, stocked, monkeypatch):
        """A concurrent creator winning the unique key makes the call retryable."""
        assert _account(stocked) is not None

        # Simulate a reader that ran before the other writer committed
        monkeypatch.setattr(movement_service, "lock_for_update", lambda query: query.filter(false()))

        with pytest.raises(ConcurrencyError):
            movement_service.get_or_create_stock_account(stocked, lock=True)
        db_session.rollback()

    def test_recorded_movement_rolls_back_as_concurrency_error(self, db_session, stocked, monkeypatch):
        product_id = stocked.id
        monkeypatch.setattr(movement_service, "lock_for_update", lambda query: query.filter(false()))

        with pytest.raises(ConcurrencyError):
            inventory_service.record_stock_movement(
                TransactionType.STOCK_IN, product_id, 5, actor_id=WAREHOUSE_ACTOR_ID
            )

        account = db_session.query(StockAccount).filter_by(product_id=product_id).one()
        assert account.warehouse_stock == 100
        assert db_session.query(StockTransaction).filter_by(product_id=product_id).count() == 1

    def test_lost_creation_race_succeeds_on_retry(self, db_session, stocked, monkeypatch):
        product_id = stocked.id
        calls = []

        def hide_once(query):
            calls.append(query)
            if len(calls) == 1:
                return query.filter(false())
            return query.with_for_update()

        monkeypatch.setattr(movement_service, "lock_for_update", hide_once)

        txn = run_with_retry(
            lambda: inventory_service.record_stock_movement(
                TransactionType.STOCK_IN, product_id, 5, actor_id=WAREHOUSE_ACTOR_ID
            ),
            attempts=2,
            backoff_base=0,
        )

        assert len(calls) == 2
        assert txn.quantity == 5
        assert db_session.query(StockAccount).filter_by(product_id=product_id).one().warehouse_stock == 105


class TestTransactionLogImmutability:
    def test_update_is_blocked(self, db_session, stocked):
        txn = db_session.query(StockTransaction).filter_by(product_id=stocked.id).first()

        txn.notes = "rewritten"
        with pytest.raises(StockTransactionImmutableError):
            db_session.flush()
        db_session.rollback()

    def test_delete_is_blocked(self, db_session, stocked):
        txn = db_session.query(StockTransaction).filter_by(product_id=stocked.id).first()

        db_session.delete(txn)
        with pytest.raises(StockTransactionImmutableError):
            db_session.flush()
        db_session.rollback()
