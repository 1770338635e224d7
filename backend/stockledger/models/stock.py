from __future__ import annotations

import enum

from sqlalchemy import event

from ..extensions import db
from stockledger.time_utils import to_utc_z


class TransactionType(str, enum.Enum):
    """Closed set of movement kinds recorded in the transaction log."""

    STOCK_IN = "stock_in"
    STOCK_OUT = "stock_out"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"
    STOCKTAKE = "stocktake"


class LocationType(str, enum.Enum):
    """Endpoints a movement can come from or go to."""

    WAREHOUSE = "warehouse"
    SALESMAN = "salesman"
    SHOP = "shop"
    SUPPLIER = "supplier"
    WHOLESALE_CUSTOMER = "wholesale_customer"
    RETAIL_CUSTOMER = "retail_customer"
    WASTE = "waste"


TRANSACTION_TYPES = tuple(t.value for t in TransactionType)
LOCATION_TYPES = tuple(loc.value for loc in LocationType)


class StockAccount(db.Model):
    """
    Warehouse-scoped counters for one product.

    COUNTERS:
    - current_stock: units the business owns (warehouse + allocated to salesmen)
    - warehouse_stock: units physically on warehouse premises
    - allocated_stock: best-effort count of units out with salesmen

    Counters are only written by movement_service.apply_movement, which
    uses conditional UPDATEs so the CHECK constraints below are never the
    first line of defence. Accounts are created lazily and never deleted.
    """
    __tablename__ = "stock_accounts"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_stock_accounts_product"),
        db.CheckConstraint("current_stock >= 0", name="ck_stock_accounts_current_nonneg"),
        db.CheckConstraint("warehouse_stock >= 0", name="ck_stock_accounts_warehouse_nonneg"),
        db.CheckConstraint("allocated_stock >= 0", name="ck_stock_accounts_allocated_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    warehouse_stock = db.Column(db.Integer, nullable=False, default=0)
    allocated_stock = db.Column(db.Integer, nullable=False, default=0)

    minimum_threshold = db.Column(db.Integer, nullable=False, default=10)
    reorder_quantity = db.Column(db.Integer, nullable=False, default=20)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_stocktake_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product", backref=db.backref("stock_account", uselist=False, lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.minimum_threshold

    def __repr__(self) -> str:
        return (
            f"<StockAccount product_id={self.product_id} current={self.current_stock} "
            f"warehouse={self.warehouse_stock} allocated={self.allocated_stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "current_stock": self.current_stock,
            "warehouse_stock": self.warehouse_stock,
            "allocated_stock": self.allocated_stock,
            "minimum_threshold": self.minimum_threshold,
            "reorder_quantity": self.reorder_quantity,
            "is_low_stock": self.is_low_stock,
            "last_updated": to_utc_z(self.last_updated),
            "last_stocktake_at": to_utc_z(self.last_stocktake_at) if self.last_stocktake_at else None,
        }


class SalesmanStockAccount(db.Model):
    """
    Field inventory held by one salesman for one product.

    CONSERVATION: allocated_quantity - sold_quantity - returned_quantity
    == remaining_quantity at all times. allocated_quantity counts every
    unit that ever entered the salesman's custody (distributions and shop
    returns), so crediting a shop return keeps the identity intact.
    """
    __tablename__ = "salesman_stock_accounts"
    __table_args__ = (
        db.UniqueConstraint("salesman_id", "product_id", name="uq_salesman_stock_salesman_product"),
        db.CheckConstraint("remaining_quantity >= 0", name="ck_salesman_stock_remaining_nonneg"),
        db.Index("ix_salesman_stock_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salesman_id = db.Column(db.Integer, db.ForeignKey("salesmen.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    allocated_quantity = db.Column(db.Integer, nullable=False, default=0)
    remaining_quantity = db.Column(db.Integer, nullable=False, default=0)
    sold_quantity = db.Column(db.Integer, nullable=False, default=0)
    returned_quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    salesman = db.relationship("Salesman", backref=db.backref("stock_accounts", lazy=True))
    product = db.relationship("Product")

    def __repr__(self) -> str:
        return (
            f"<SalesmanStockAccount salesman_id={self.salesman_id} product_id={self.product_id} "
            f"remaining={self.remaining_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salesman_id": self.salesman_id,
            "product_id": self.product_id,
            "allocated_quantity": self.allocated_quantity,
            "remaining_quantity": self.remaining_quantity,
            "sold_quantity": self.sold_quantity,
            "returned_quantity": self.returned_quantity,
            "created_at": to_utc_z(self.created_at),
            "last_updated": to_utc_z(self.last_updated),
        }


class StockTransaction(db.Model):
    """
    Append-only audit record of one stock movement.

    quantity is always stored non-negative; the direction against the
    warehouse is given by the endpoints (source_type / destination_type),
    so the running warehouse balance is recomputable from this table alone.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_transactions_quantity_nonneg"),
        db.Index("ix_stocktx_product_date", "product_id", "transaction_date"),
        db.Index("ix_stocktx_product_type_date", "product_id", "transaction_type", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(32), nullable=False, index=True)

    source_type = db.Column(db.String(32), nullable=True)
    source_id = db.Column(db.Integer, nullable=True)
    destination_type = db.Column(db.String(32), nullable=True)
    destination_id = db.Column(db.Integer, nullable=True)

    # Document that caused the movement (DIST-..., EOD-..., or None for manual movements)
    reference_number = db.Column(db.String(64), nullable=True, index=True)

    created_by = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    @property
    def warehouse_delta(self) -> int:
        """Signed effect of this row on warehouse_stock."""
        delta = 0
        if self.destination_type == LocationType.WAREHOUSE.value:
            delta += self.quantity
        if self.source_type == LocationType.WAREHOUSE.value:
            delta -= self.quantity
        return delta

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "transaction_type": self.transaction_type,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "destination_type": self.destination_type,
            "destination_id": self.destination_id,
            "reference_number": self.reference_number,
            "created_by": self.created_by,
            "notes": self.notes,
            "transaction_date": to_utc_z(self.transaction_date),
            "created_at": to_utc_z(self.created_at),
        }


class StockTransactionImmutableError(RuntimeError):
    """Raised when code tries to rewrite or remove a logged movement."""


@event.listens_for(StockTransaction, "before_update")
def _prevent_transaction_update(mapper, connection, target):
    raise StockTransactionImmutableError(f"Stock transaction {target.id} is immutable")


@event.listens_for(StockTransaction, "before_delete")
def _prevent_transaction_delete(mapper, connection, target):
    raise StockTransactionImmutableError(f"Stock transaction {target.id} cannot be deleted")


class StockAlert(db.Model):
    """
    Low-stock event written in the same unit of work as the movement that
    caused it. The notification collaborator polls open alerts and
    acknowledges them; the ledger never delivers notifications itself.

    LIFECYCLE: OPEN -> ACKNOWLEDGED -> RESOLVED, or OPEN -> RESOLVED when a
    later movement lifts current_stock above the threshold.
    """
    __tablename__ = "stock_alerts"
    __table_args__ = (
        db.Index("ix_stock_alerts_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    current_stock = db.Column(db.Integer, nullable=False)
    minimum_threshold = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    acknowledged_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "current_stock": self.current_stock,
            "minimum_threshold": self.minimum_threshold,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "acknowledged_at": to_utc_z(self.acknowledged_at) if self.acknowledged_at else None,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
        }
