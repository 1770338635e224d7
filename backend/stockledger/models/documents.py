from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Distribution(db.Model):
    """
    Warehouse-initiated stock movement document.

    TYPES:
    - salesman: stock moves into a SalesmanStockAccount (status DISTRIBUTED)
    - wholesale / retail: stock leaves the business (status COMPLETED)

    Created once; afterwards only status may change. Status changes never
    reverse the stock effect applied at creation.
    """
    __tablename__ = "distributions"
    __table_args__ = (
        db.UniqueConstraint("reference_number", name="uq_distributions_reference"),
        db.Index("ix_distributions_type_date", "distribution_type", "distribution_date"),
        db.Index("ix_distributions_recipient", "recipient_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    distribution_type = db.Column(db.String(16), nullable=False)

    # Salesman recipient; external buyers are recorded by name/contact only
    recipient_id = db.Column(db.Integer, db.ForeignKey("salesmen.id"), nullable=True)
    recipient_name = db.Column(db.String(255), nullable=True)
    recipient_contact = db.Column(db.String(255), nullable=True)

    reference_number = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="distributed")
    payment_method = db.Column(db.String(32), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    distribution_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    recipient = db.relationship("Salesman")
    items = db.relationship(
        "DistributionItem",
        backref="distribution",
        lazy=True,
        order_by="DistributionItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "distribution_type": self.distribution_type,
            "recipient_id": self.recipient_id,
            "recipient_name": self.recipient_name,
            "recipient_contact": self.recipient_contact,
            "reference_number": self.reference_number,
            "status": self.status,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "created_by": self.created_by,
            "distribution_date": to_utc_z(self.distribution_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class DistributionItem(db.Model):
    __tablename__ = "distribution_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_distribution_items_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    distribution_id = db.Column(db.Integer, db.ForeignKey("distributions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "distribution_id": self.distribution_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }


class Order(db.Model):
    """
    Sale recorded against a shop and fulfilled from a salesman's stock.

    LIFECYCLE:
    - salesman-created: born COMPLETED, stock debited at creation
    - shop-created: born PENDING, stock debited on the transition into COMPLETED
    - COMPLETED and CANCELLED are terminal
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("reference_number", name="uq_orders_reference"),
        db.Index("ix_orders_shop_date", "shop_id", "order_date"),
        db.Index("ix_orders_salesman_status", "salesman_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False)
    salesman_id = db.Column(db.Integer, db.ForeignKey("salesmen.id"), nullable=False)

    reference_number = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    created_by_role = db.Column(db.String(16), nullable=False)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("orders", lazy=True))
    salesman = db.relationship("Salesman")
    items = db.relationship("OrderItem", backref="order", lazy=True, order_by="OrderItem.id")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "salesman_id": self.salesman_id,
            "reference_number": self.reference_number,
            "status": self.status,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_by_role": self.created_by_role,
            "order_date": to_utc_z(self.order_date),
            "delivery_date": to_utc_z(self.delivery_date) if self.delivery_date else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Return(db.Model):
    """
    Reverse movement document.

    TYPES:
    - shop: goods go from a shop back into the assigned salesman's hands (RET-...)
    - salesman: end-of-day reconciliation from salesman to warehouse (EOD-...)

    Returns are processed on creation (status PROCESSED).
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("reference_number", name="uq_returns_reference"),
        db.Index("ix_returns_salesman_date", "salesman_id", "return_date"),
        db.Index("ix_returns_shop_date", "shop_id", "return_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    return_type = db.Column(db.String(16), nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True)
    salesman_id = db.Column(db.Integer, db.ForeignKey("salesmen.id"), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    reference_number = db.Column(db.String(64), nullable=False)
    return_reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="processed")

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    processed_by = db.Column(db.Integer, nullable=False)
    return_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop")
    salesman = db.relationship("Salesman")
    order = db.relationship("Order", backref=db.backref("returns", lazy=True))
    items = db.relationship("ReturnItem", backref="return_doc", lazy=True, order_by="ReturnItem.id")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "return_type": self.return_type,
            "shop_id": self.shop_id,
            "salesman_id": self.salesman_id,
            "order_id": self.order_id,
            "reference_number": self.reference_number,
            "return_reason": self.return_reason,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "processed_by": self.processed_by,
            "return_date": to_utc_z(self.return_date),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    __tablename__ = "return_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_items_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # good, damaged, expired, other
    condition = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "condition": self.condition,
            "notes": self.notes,
        }
