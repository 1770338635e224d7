from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Salesman(db.Model):
    """
    Field salesman as seen by the ledger (directory collaborator data).

    Only active salesmen can receive distributions or be reconciled at end
    of day. Salesmen are deactivated, never deleted, so historic documents
    keep resolving.
    """
    __tablename__ = "salesmen"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_salesmen_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Salesman id={self.id} username={self.username!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Shop(db.Model):
    """
    Customer shop serviced by exactly one assigned salesman.

    OWNERSHIP:
    - owner_user_id is the account id of the shop's own login (if any).
      Shop-initiated orders are only accepted from that actor.
    - assigned_salesman_id routes shop-initiated orders and is the only
      salesman allowed to take returns from the shop.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.Index("ix_shops_salesman_active", "assigned_salesman_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    owner_user_id = db.Column(db.Integer, nullable=True, index=True)
    assigned_salesman_id = db.Column(db.Integer, db.ForeignKey("salesmen.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Stamped by the order workflow; everything else here is collaborator-owned
    last_order_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    assigned_salesman = db.relationship("Salesman", backref=db.backref("shops", lazy=True))

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r} salesman_id={self.assigned_salesman_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_user_id": self.owner_user_id,
            "assigned_salesman_id": self.assigned_salesman_id,
            "is_active": self.is_active,
            "last_order_at": to_utc_z(self.last_order_at) if self.last_order_at else None,
            "created_at": to_utc_z(self.created_at),
        }
