# Overview: Read surface over stock accounts and the transaction log, plus manual warehouse movements.

# backend/stockledger/services/inventory_service.py
"""
Stock accounts are the source of truth for availability checks; the
transaction log is the audit trail that must be able to reproduce them.

Running balances:
- Each log row moves warehouse_stock by warehouse_delta (+q into the
  warehouse, -q out of it). Stocktake rows store the counted difference,
  so replaying the log from zero reproduces warehouse_stock.
- current_stock moves with every row except transfers, which keep units
  inside the business.
- allocated_stock rises on transfer_out and falls by min(allocated, q) on
  transfer_in.

Manual movements (record_stock_movement) cover what happens outside the
three workflows: receiving from a supplier, writing off to waste, signed
corrections and physical counts. Transfers are only ever created by the
distribution and return workflows.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import LocationType, SalesmanStockAccount, StockAccount, StockTransaction, TransactionType
from ..time_utils import end_of_day, start_of_day
from ..validation import coerce_int, optional_text, require_id
from . import lookup_service
from .concurrency import atomic
from .movement_service import MovementRequest, apply_movement, parse_location_type, parse_transaction_type

MANUAL_MOVEMENT_TYPES = (
    TransactionType.STOCK_IN,
    TransactionType.STOCK_OUT,
    TransactionType.ADJUSTMENT,
    TransactionType.STOCKTAKE,
)


def get_stock_account(product_id) -> StockAccount:
    product_id = require_id(product_id, "product_id")
    lookup_service.get_product(product_id)
    account = db.session.query(StockAccount).filter_by(product_id=product_id).first()
    if account is None:
        raise NotFoundError("stock account", product_id, f"No stock account for product {product_id}")
    return account


def get_salesman_stock_account(salesman_id, product_id) -> SalesmanStockAccount:
    salesman_id = require_id(salesman_id, "salesman_id")
    product_id = require_id(product_id, "product_id")
    account = (
        db.session.query(SalesmanStockAccount)
        .filter_by(salesman_id=salesman_id, product_id=product_id)
        .first()
    )
    if account is None:
        raise NotFoundError(
            "salesman stock account",
            f"{salesman_id}/{product_id}",
            f"No stock account for salesman {salesman_id} and product {product_id}",
        )
    return account


def list_salesman_accounts(salesman_id) -> list[SalesmanStockAccount]:
    salesman_id = require_id(salesman_id, "salesman_id")
    return (
        db.session.query(SalesmanStockAccount)
        .filter(SalesmanStockAccount.salesman_id == salesman_id)
        .order_by(SalesmanStockAccount.product_id.asc())
        .all()
    )


def record_stock_movement(
    transaction_type,
    product_id,
    quantity,
    *,
    actor_id,
    counterparty_type=None,
    counterparty_id=None,
    notes=None,
) -> StockTransaction:
    """
    Record a warehouse movement that is not part of a workflow document.

    Args:
        transaction_type: stock_in | stock_out | adjustment | stocktake
        product_id: Product moved
        quantity: Positive for stock_in/stock_out, signed delta for
            adjustment, counted on-hand value for stocktake
        actor_id: User recording the movement
        counterparty_type: Source of a stock_in (default supplier) or
            destination of a stock_out (default waste)
        counterparty_id: Optional id of that counterparty
        notes: Optional free text

    Returns:
        StockTransaction: The appended log row

    Raises:
        ValidationError: Unknown or workflow-only type, bad quantity
        InsufficientStockError: stock_out / negative adjustment beyond warehouse stock
        NotFoundError, ConcurrencyError
    """
    actor_id = require_id(actor_id, "actor_id")
    transaction_type = parse_transaction_type(transaction_type)
    if transaction_type not in MANUAL_MOVEMENT_TYPES:
        raise ValidationError(
            f"{transaction_type.value} is only recorded by the distribution and return workflows",
            field="transaction_type",
        )
    product_id = require_id(product_id, "product_id")
    quantity = coerce_int(quantity, "quantity")
    if counterparty_type is not None:
        counterparty_type = parse_location_type(counterparty_type, "counterparty_type")
        if counterparty_type in (LocationType.WAREHOUSE, LocationType.SALESMAN):
            raise ValidationError(
                f"{counterparty_type.value} cannot be the counterparty of a manual movement",
                field="counterparty_type",
            )
    if counterparty_id is not None:
        counterparty_id = require_id(counterparty_id, "counterparty_id")
    notes = optional_text(notes, "notes")

    with atomic():
        product = lookup_service.get_product(product_id)
        txn = apply_movement(
            MovementRequest(
                transaction_type=transaction_type,
                product=product,
                quantity=quantity,
                actor_id=actor_id,
                counterparty_type=counterparty_type,
                counterparty_id=counterparty_id,
                notes=notes,
            )
        )

    current_app.logger.info(
        "Stock movement %s recorded for product %s: quantity=%s",
        txn.transaction_type,
        txn.product_id,
        txn.quantity,
    )
    return txn


def list_transactions(
    product_id: int | None = None,
    transaction_type=None,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    limit: int | None = 100,
) -> list[StockTransaction]:
    """Newest first. Bounds given as bare dates cover the whole day."""
    q = db.session.query(StockTransaction)
    if product_id:
        q = q.filter(StockTransaction.product_id == product_id)
    if transaction_type:
        q = q.filter(StockTransaction.transaction_type == parse_transaction_type(transaction_type).value)
    if start:
        q = q.filter(StockTransaction.transaction_date >= start_of_day(start))
    if end:
        q = q.filter(StockTransaction.transaction_date <= end_of_day(end))
    q = q.order_by(StockTransaction.transaction_date.desc(), StockTransaction.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def _chronological(product_id: int) -> list[StockTransaction]:
    return (
        db.session.query(StockTransaction)
        .filter(StockTransaction.product_id == product_id)
        .order_by(StockTransaction.transaction_date.asc(), StockTransaction.id.asc())
        .all()
    )


def _current_delta(txn: StockTransaction) -> int:
    if txn.transaction_type in (TransactionType.TRANSFER_IN.value, TransactionType.TRANSFER_OUT.value):
        return 0
    return txn.warehouse_delta


def get_product_history(product_id) -> list[dict]:
    """
    Every movement of a product, oldest first, each with the warehouse
    balance after it was applied.
    """
    product_id = require_id(product_id, "product_id")
    lookup_service.get_product(product_id)

    history = []
    balance = 0
    for txn in _chronological(product_id):
        balance += txn.warehouse_delta
        row = txn.to_dict()
        row["warehouse_balance"] = balance
        history.append(row)
    return history


def list_low_stock() -> list[StockAccount]:
    return (
        db.session.query(StockAccount)
        .filter(StockAccount.current_stock <= StockAccount.minimum_threshold)
        .order_by(StockAccount.current_stock.asc(), StockAccount.product_id.asc())
        .all()
    )


def recompute_balances(product_id) -> dict:
    """
    Replay the transaction log and compare it with the stored account.

    Returns a report with the stored and replayed counters, the drift per
    counter (stored - replayed) and whether the account is consistent.
    """
    product_id = require_id(product_id, "product_id")
    account = db.session.query(StockAccount).filter_by(product_id=product_id).first()

    warehouse = current = allocated = 0
    count = 0
    for txn in _chronological(product_id):
        count += 1
        warehouse += txn.warehouse_delta
        current += _current_delta(txn)
        if txn.transaction_type == TransactionType.TRANSFER_OUT.value:
            allocated += txn.quantity
        elif txn.transaction_type == TransactionType.TRANSFER_IN.value:
            allocated -= min(allocated, txn.quantity)

    replayed = {"warehouse_stock": warehouse, "current_stock": current, "allocated_stock": allocated}
    stored = {
        "warehouse_stock": account.warehouse_stock if account else 0,
        "current_stock": account.current_stock if account else 0,
        "allocated_stock": account.allocated_stock if account else 0,
    }
    drift = {key: stored[key] - replayed[key] for key in stored}

    return {
        "product_id": product_id,
        "transaction_count": count,
        "stored": stored,
        "replayed": replayed,
        "drift": drift,
        "consistent": not any(drift.values()),
    }
