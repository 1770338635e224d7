# Overview: The single writer of stock counters; one effect function per transaction type.

"""
Stock mutation core.

Every change to StockAccount / SalesmanStockAccount counters goes through
this module, whichever workflow triggers it. Each TransactionType maps to
exactly one effect function that knows which accounts it touches and in
which direction; apply_movement() dispatches to it and appends the
matching StockTransaction row.

CONCURRENCY:
- Decrements are single conditional UPDATEs ("... WHERE counter >= q").
  Zero affected rows means the stock was not there at write time, which is
  reported as InsufficientStockError regardless of what an earlier read saw.
- Increments are relative UPDATEs ("counter = counter + q"), never
  read-modify-write in Python, so concurrent movements cannot lose updates.

EFFECTS (q = quantity):
    stock_in      warehouse += q, current += q
    stock_out     warehouse -= q, current -= q               (guarded)
    transfer_out  warehouse -= q, allocated += q             (guarded)
                  salesman allocated += q, remaining += q
    transfer_in   salesman remaining -= q, returned += q     (guarded)
                  warehouse += q, allocated -= min(allocated, q)
    adjustment    warehouse += d, current += d               (d signed, guarded when negative)
    stocktake     warehouse := counted, current += counted - warehouse

Salesman-only mutations (no warehouse effect, no transaction row):
    record_salesman_sale   remaining -= q, sold += q        (guarded)
    credit_shop_return     remaining += q, allocated += q
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError

from ..errors import ConcurrencyError, InsufficientStockError, ValidationError
from ..extensions import db
from ..models import (
    LocationType,
    Product,
    SalesmanStockAccount,
    StockAccount,
    StockTransaction,
    TransactionType,
)
from ..time_utils import utcnow
from .alert_service import evaluate_low_stock
from .concurrency import lock_for_update

# Where stock_out may send goods / stock_in may receive them from
EXTERNAL_DESTINATIONS = (
    LocationType.WHOLESALE_CUSTOMER,
    LocationType.RETAIL_CUSTOMER,
    LocationType.SHOP,
    LocationType.SUPPLIER,
    LocationType.WASTE,
)
EXTERNAL_SOURCES = (
    LocationType.SUPPLIER,
    LocationType.WHOLESALE_CUSTOMER,
    LocationType.RETAIL_CUSTOMER,
    LocationType.SHOP,
)


@dataclass(frozen=True)
class MovementRequest:
    """
    Input to apply_movement().

    quantity is a positive magnitude except for ADJUSTMENT (signed delta)
    and STOCKTAKE (the counted on-hand value, >= 0).
    counterparty_type/id name the external endpoint of stock_in/stock_out.
    """

    transaction_type: TransactionType
    product: Product
    quantity: int
    actor_id: int
    salesman_id: int | None = None
    counterparty_type: LocationType | None = None
    counterparty_id: int | None = None
    reference_number: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class _LogEntry:
    quantity: int
    source_type: LocationType | None
    source_id: int | None
    destination_type: LocationType | None
    destination_id: int | None


def parse_transaction_type(value) -> TransactionType:
    """Reject unknown movement kinds at the boundary instead of defaulting."""
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(value)
    except ValueError:
        raise ValidationError(
            f"Invalid transaction type. Must be one of: {', '.join(t.value for t in TransactionType)}",
            field="transaction_type",
        )


def parse_location_type(value, field: str) -> LocationType:
    if isinstance(value, LocationType):
        return value
    try:
        return LocationType(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(loc.value for loc in LocationType)}",
            field=field,
        )


# =============================================================================
# ACCOUNTS
# =============================================================================

def seed_thresholds(product: Product) -> tuple[int, int]:
    """(minimum_threshold, reorder_quantity) for a product's first account."""
    minimum = product.min_stock_level
    if not minimum:
        minimum = current_app.config.get("LEDGER_DEFAULT_MINIMUM_THRESHOLD", 10)
    return minimum, minimum * 2


def get_or_create_stock_account(product: Product, *, lock: bool = False) -> StockAccount:
    """Warehouse account for the product; created zeroed on first movement."""
    product_id = product.id
    query = db.session.query(StockAccount).filter_by(product_id=product_id)
    if lock:
        query = lock_for_update(query)
    account = query.first()
    if account is not None:
        return account

    minimum, reorder = seed_thresholds(product)
    account = StockAccount(
        product_id=product_id,
        current_stock=0,
        warehouse_stock=0,
        allocated_stock=0,
        minimum_threshold=minimum,
        reorder_quantity=reorder,
        last_updated=utcnow(),
    )
    db.session.add(account)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConcurrencyError(f"Stock account for product {product_id} was created concurrently") from exc
    return account


def get_or_create_salesman_account(salesman_id: int, product_id: int) -> SalesmanStockAccount:
    account = (
        db.session.query(SalesmanStockAccount)
        .filter_by(salesman_id=salesman_id, product_id=product_id)
        .first()
    )
    if account is not None:
        return account

    now = utcnow()
    account = SalesmanStockAccount(
        salesman_id=salesman_id,
        product_id=product_id,
        allocated_quantity=0,
        remaining_quantity=0,
        sold_quantity=0,
        returned_quantity=0,
        created_at=now,
        last_updated=now,
    )
    db.session.add(account)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConcurrencyError(
            f"Stock account for salesman {salesman_id} / product {product_id} was created concurrently"
        ) from exc
    return account


def _execute(stmt) -> int:
    result = db.session.execute(stmt, execution_options={"synchronize_session": False})
    return result.rowcount


def _warehouse_shortage(account: StockAccount, product: Product, requested: int) -> InsufficientStockError:
    db.session.refresh(account)
    return InsufficientStockError(
        product.id,
        requested,
        account.warehouse_stock,
        scope="warehouse",
        product_name=product.name,
    )


def _salesman_shortage(salesman_id: int, product_id: int, requested: int, product_name=None) -> InsufficientStockError:
    available = (
        db.session.query(SalesmanStockAccount.remaining_quantity)
        .filter_by(salesman_id=salesman_id, product_id=product_id)
        .scalar()
    )
    return InsufficientStockError(
        product_id,
        requested,
        available or 0,
        scope="salesman",
        product_name=product_name,
        salesman_id=salesman_id,
    )


def _debit_warehouse(account: StockAccount, product: Product, q: int, *, leaves_business: bool, allocate: bool = False):
    values = {
        "warehouse_stock": StockAccount.warehouse_stock - q,
        "last_updated": utcnow(),
    }
    conditions = [StockAccount.id == account.id, StockAccount.warehouse_stock >= q]
    if leaves_business:
        values["current_stock"] = StockAccount.current_stock - q
        conditions.append(StockAccount.current_stock >= q)
    if allocate:
        values["allocated_stock"] = StockAccount.allocated_stock + q

    if _execute(update(StockAccount).where(*conditions).values(**values)) == 0:
        raise _warehouse_shortage(account, product, q)


def _credit_warehouse(account: StockAccount, q: int, *, enters_business: bool, release_allocation: bool = False):
    values = {
        "warehouse_stock": StockAccount.warehouse_stock + q,
        "last_updated": utcnow(),
    }
    if enters_business:
        values["current_stock"] = StockAccount.current_stock + q
    if release_allocation:
        values["allocated_stock"] = case(
            (StockAccount.allocated_stock >= q, StockAccount.allocated_stock - q),
            else_=0,
        )
    _execute(update(StockAccount).where(StockAccount.id == account.id).values(**values))


# =============================================================================
# EFFECTS (one per transaction type)
# =============================================================================

def _require_positive(req: MovementRequest) -> int:
    if req.quantity is None or req.quantity <= 0:
        raise ValidationError("Quantity must be positive", field="quantity")
    return req.quantity


def _stock_in(account: StockAccount, req: MovementRequest) -> _LogEntry:
    q = _require_positive(req)
    source = req.counterparty_type or LocationType.SUPPLIER
    if source not in EXTERNAL_SOURCES:
        raise ValidationError(f"stock_in cannot come from {source.value}", field="source_type")
    _credit_warehouse(account, q, enters_business=True)
    return _LogEntry(q, source, req.counterparty_id, LocationType.WAREHOUSE, None)


def _stock_out(account: StockAccount, req: MovementRequest) -> _LogEntry:
    q = _require_positive(req)
    destination = req.counterparty_type or LocationType.WASTE
    if destination not in EXTERNAL_DESTINATIONS:
        raise ValidationError(f"stock_out cannot go to {destination.value}", field="destination_type")
    _debit_warehouse(account, req.product, q, leaves_business=True)
    return _LogEntry(q, LocationType.WAREHOUSE, None, destination, req.counterparty_id)


def _transfer_out(account: StockAccount, req: MovementRequest) -> _LogEntry:
    q = _require_positive(req)
    if req.salesman_id is None:
        raise ValidationError("transfer_out requires a salesman", field="salesman_id")

    _debit_warehouse(account, req.product, q, leaves_business=False, allocate=True)

    field_account = get_or_create_salesman_account(req.salesman_id, req.product.id)
    _execute(
        update(SalesmanStockAccount)
        .where(SalesmanStockAccount.id == field_account.id)
        .values(
            allocated_quantity=SalesmanStockAccount.allocated_quantity + q,
            remaining_quantity=SalesmanStockAccount.remaining_quantity + q,
            last_updated=utcnow(),
        )
    )
    db.session.refresh(field_account)
    return _LogEntry(q, LocationType.WAREHOUSE, None, LocationType.SALESMAN, req.salesman_id)


def _transfer_in(account: StockAccount, req: MovementRequest) -> _LogEntry:
    q = _require_positive(req)
    if req.salesman_id is None:
        raise ValidationError("transfer_in requires a salesman", field="salesman_id")

    debited = _execute(
        update(SalesmanStockAccount)
        .where(
            SalesmanStockAccount.salesman_id == req.salesman_id,
            SalesmanStockAccount.product_id == req.product.id,
            SalesmanStockAccount.remaining_quantity >= q,
        )
        .values(
            remaining_quantity=SalesmanStockAccount.remaining_quantity - q,
            returned_quantity=SalesmanStockAccount.returned_quantity + q,
            last_updated=utcnow(),
        )
    )
    if debited == 0:
        raise _salesman_shortage(req.salesman_id, req.product.id, q, req.product.name)

    _credit_warehouse(account, q, enters_business=False, release_allocation=True)
    return _LogEntry(q, LocationType.SALESMAN, req.salesman_id, LocationType.WAREHOUSE, None)


def _adjustment(account: StockAccount, req: MovementRequest) -> _LogEntry:
    delta = req.quantity
    if not delta:
        raise ValidationError("Adjustment quantity must be non-zero", field="quantity")

    if delta > 0:
        _credit_warehouse(account, delta, enters_business=True)
        return _LogEntry(delta, None, None, LocationType.WAREHOUSE, None)

    q = -delta
    _debit_warehouse(account, req.product, q, leaves_business=True)
    return _LogEntry(q, LocationType.WAREHOUSE, None, LocationType.WASTE, None)


def _stocktake(account: StockAccount, req: MovementRequest) -> _LogEntry:
    counted = req.quantity
    if counted is None or counted < 0:
        raise ValidationError("Counted quantity cannot be negative", field="quantity")

    db.session.refresh(account)
    observed = account.warehouse_stock
    diff = counted - observed

    changed = _execute(
        update(StockAccount)
        .where(
            StockAccount.id == account.id,
            StockAccount.warehouse_stock == observed,
            StockAccount.current_stock + diff >= 0,
        )
        .values(
            warehouse_stock=counted,
            current_stock=StockAccount.current_stock + diff,
            last_stocktake_at=utcnow(),
            last_updated=utcnow(),
        )
    )
    if changed == 0:
        db.session.refresh(account)
        if account.warehouse_stock != observed:
            raise ConcurrencyError(
                f"Warehouse stock for product {req.product.id} changed during stocktake",
                product_id=req.product.id,
            )
        raise ValidationError(
            f"Stocktake would leave current stock negative for product {req.product.id}",
            product_id=req.product.id,
        )

    if diff > 0:
        return _LogEntry(diff, None, None, LocationType.WAREHOUSE, None)
    if diff < 0:
        return _LogEntry(-diff, LocationType.WAREHOUSE, None, LocationType.WASTE, None)
    return _LogEntry(0, LocationType.WAREHOUSE, None, LocationType.WAREHOUSE, None)


_EFFECTS = {
    TransactionType.STOCK_IN: _stock_in,
    TransactionType.STOCK_OUT: _stock_out,
    TransactionType.TRANSFER_OUT: _transfer_out,
    TransactionType.TRANSFER_IN: _transfer_in,
    TransactionType.ADJUSTMENT: _adjustment,
    TransactionType.STOCKTAKE: _stocktake,
}


def apply_movement(req: MovementRequest) -> StockTransaction:
    """
    Apply one movement to the accounts it names and append its log row.

    Must run inside an atomic() scope owned by the calling workflow; any
    raised error leaves the scope to roll everything back.
    """
    transaction_type = parse_transaction_type(req.transaction_type)
    effect = _EFFECTS[transaction_type]

    account = get_or_create_stock_account(req.product, lock=True)
    entry = effect(account, req)

    txn = StockTransaction(
        product_id=req.product.id,
        quantity=entry.quantity,
        transaction_type=transaction_type.value,
        source_type=entry.source_type.value if entry.source_type else None,
        source_id=entry.source_id,
        destination_type=entry.destination_type.value if entry.destination_type else None,
        destination_id=entry.destination_id,
        reference_number=req.reference_number,
        created_by=req.actor_id,
        notes=req.notes,
        transaction_date=utcnow(),
    )
    db.session.add(txn)
    db.session.flush()

    db.session.refresh(account)
    evaluate_low_stock(account)
    return txn


# =============================================================================
# SALESMAN-SCOPE MUTATIONS
# =============================================================================

def record_salesman_sale(salesman_id: int, product: Product, quantity: int) -> SalesmanStockAccount:
    """Debit sellable field stock for a completed order line."""
    if quantity <= 0:
        raise ValidationError("Quantity must be positive", field="quantity")

    debited = _execute(
        update(SalesmanStockAccount)
        .where(
            SalesmanStockAccount.salesman_id == salesman_id,
            SalesmanStockAccount.product_id == product.id,
            SalesmanStockAccount.remaining_quantity >= quantity,
        )
        .values(
            remaining_quantity=SalesmanStockAccount.remaining_quantity - quantity,
            sold_quantity=SalesmanStockAccount.sold_quantity + quantity,
            last_updated=utcnow(),
        )
    )
    if debited == 0:
        raise _salesman_shortage(salesman_id, product.id, quantity, product.name)

    account = (
        db.session.query(SalesmanStockAccount)
        .filter_by(salesman_id=salesman_id, product_id=product.id)
        .one()
    )
    db.session.refresh(account)
    return account


def credit_shop_return(salesman_id: int, product: Product, quantity: int) -> SalesmanStockAccount:
    """
    Put goods returned by a shop back into the salesman's hands.

    Credited to remaining_quantity whatever the item condition; the units
    also count as allocated so the conservation identity keeps holding.
    """
    if quantity <= 0:
        raise ValidationError("Quantity must be positive", field="quantity")

    account = get_or_create_salesman_account(salesman_id, product.id)
    _execute(
        update(SalesmanStockAccount)
        .where(SalesmanStockAccount.id == account.id)
        .values(
            allocated_quantity=SalesmanStockAccount.allocated_quantity + quantity,
            remaining_quantity=SalesmanStockAccount.remaining_quantity + quantity,
            last_updated=utcnow(),
        )
    )
    db.session.refresh(account)
    return account
