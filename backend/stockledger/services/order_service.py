# backend/stockledger/services/order_service.py
"""
Order workflow: sales to shops fulfilled from a salesman's field stock.

WHY: Shops buy from the salesman who services them. Every completed order
debits that salesman's remaining_quantity and credits sold_quantity,
exactly once.

LIFECYCLE:
1. Salesman-created orders are born COMPLETED (stock debited at creation)
2. Shop-created orders are born PENDING and routed to the shop's assigned
   salesman; no stock check until completion
3. PENDING -> PROCESSING | COMPLETED | CANCELLED
4. PROCESSING -> COMPLETED | CANCELLED
5. COMPLETED and CANCELLED are terminal (a completed order cannot be
   cancelled; a cancelled one never touched stock)
"""
from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from stockledger.errors import (
    AuthorizationError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from stockledger.extensions import db
from stockledger.models import Order, OrderItem, SalesmanStockAccount
from stockledger.services import lookup_service, reference_service
from stockledger.services.concurrency import atomic
from stockledger.services.movement_service import record_salesman_sale
from stockledger.time_utils import end_of_day, start_of_day, utcnow
from stockledger.validation import (
    PAYMENT_METHODS,
    append_note,
    optional_datetime,
    optional_text,
    parse_items,
    quantities_by_product,
    require_choice,
    require_id,
)


# Order status constants
ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PROCESSING = "processing"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
)

_STATUS_TRANSITIONS = {
    ORDER_STATUS_PENDING: (ORDER_STATUS_PROCESSING, ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED),
    ORDER_STATUS_PROCESSING: (ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED),
    ORDER_STATUS_COMPLETED: (),
    ORDER_STATUS_CANCELLED: (),
}

# Roles allowed to originate orders
ACTOR_ROLE_SALESMAN = "salesman"
ACTOR_ROLE_SHOP = "shop"


def check_salesman_availability(salesman_id: int, items, products) -> None:
    """Fail before any write if the salesman cannot cover every product."""
    for product_id, quantity in quantities_by_product(items).items():
        available = (
            db.session.query(SalesmanStockAccount.remaining_quantity)
            .filter(
                SalesmanStockAccount.salesman_id == salesman_id,
                SalesmanStockAccount.product_id == product_id,
            )
            .scalar()
        ) or 0
        if available < quantity:
            raise InsufficientStockError(
                product_id,
                quantity,
                available,
                scope="salesman",
                product_name=products[product_id].name,
                salesman_id=salesman_id,
            )


def _debit_salesman(order: Order, products) -> None:
    for item in order.items:
        record_salesman_sale(order.salesman_id, products[item.product_id], item.quantity)


def create_order(
    actor_role,
    shop_id,
    items,
    payment_method=None,
    notes=None,
    *,
    actor_id,
    delivery_date=None,
) -> Order:
    """
    Record an order for a shop.

    Args:
        actor_role: "salesman" or "shop"
        shop_id: Ordering shop (must be active)
        items: [{product_id, quantity, unit_price_cents?}, ...]
        payment_method: cash | credit | bank_transfer | check | other (default cash)
        notes: Optional free text
        actor_id: Salesman id, or the shop owner's user id
        delivery_date: Optional ISO-8601 date

    Returns:
        Order: COMPLETED for salesman actors, PENDING for shop actors

    Raises:
        AuthorizationError: Role cannot order, or shop actor does not own the shop
        InsufficientStockError: Salesman lacks remaining stock
        ValidationError, NotFoundError, ConcurrencyError
    """
    actor_id = require_id(actor_id, "actor_id")
    if actor_role not in (ACTOR_ROLE_SALESMAN, ACTOR_ROLE_SHOP):
        raise AuthorizationError("Only salesmen or shops can create orders", actor_role=actor_role)
    shop_id = require_id(shop_id, "shop_id")
    parsed = parse_items(items)
    payment_method = require_choice(payment_method, PAYMENT_METHODS, "payment_method", default="cash")
    notes = optional_text(notes, "notes")
    delivery_date = optional_datetime(delivery_date, "delivery_date")

    shop = lookup_service.get_active_shop(shop_id)

    if actor_role == ACTOR_ROLE_SALESMAN:
        salesman_id = lookup_service.get_active_salesman(actor_id).id
        status = ORDER_STATUS_COMPLETED
    else:
        if shop.owner_user_id != actor_id:
            raise AuthorizationError(
                "You can only place orders for your own shop",
                shop_id=shop_id,
                actor_id=actor_id,
            )
        if shop.assigned_salesman_id is None:
            raise ValidationError("Shop has no assigned salesman", shop_id=shop_id)
        salesman_id = shop.assigned_salesman_id
        status = ORDER_STATUS_PENDING

    with atomic():
        products = lookup_service.get_products(item.product_id for item in parsed)
        if status == ORDER_STATUS_COMPLETED:
            check_salesman_availability(salesman_id, parsed, products)

        now = utcnow()
        order = reference_service.insert_with_reference(
            Order,
            reference_service.PREFIX_ORDER,
            lambda reference: Order(
                shop_id=shop.id,
                salesman_id=salesman_id,
                reference_number=reference,
                status=status,
                payment_method=payment_method,
                total_amount_cents=0,
                notes=notes,
                created_by=actor_id,
                created_by_role=actor_role,
                order_date=now,
                delivery_date=delivery_date,
                completed_at=now if status == ORDER_STATUS_COMPLETED else None,
                updated_at=now,
            ),
        )

        total = 0
        for item in parsed:
            product = products[item.product_id]
            unit_price = item.unit_price_cents
            if unit_price is None:
                unit_price = product.retail_price_cents
            line_total = unit_price * item.quantity
            total += line_total
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_price_cents=unit_price,
                    line_total_cents=line_total,
                )
            )

        order.total_amount_cents = total
        db.session.flush()

        if status == ORDER_STATUS_COMPLETED:
            _debit_salesman(order, products)

        shop.last_order_at = now

    current_app.logger.info(
        "Order %s (%s, shop %s, salesman %s) recorded: %s items, total_cents=%s",
        order.reference_number,
        order.status,
        order.shop_id,
        order.salesman_id,
        len(parsed),
        order.total_amount_cents,
    )
    return order


def update_order_status(order_id, new_status, notes=None, *, actor_id=None, actor_role=None) -> Order:
    """
    Move an order along its state machine.

    Entering COMPLETED debits the order's salesman, after the same
    availability check a salesman-created order gets at creation.
    A salesman may only update orders assigned to them.
    """
    order_id = require_id(order_id, "order_id")
    new_status = require_choice(new_status, ORDER_STATUSES, "status")
    notes = optional_text(notes, "notes")

    with atomic():
        order = db.session.get(Order, order_id)
        if order is None:
            raise NotFoundError("order", order_id)

        if actor_role == ACTOR_ROLE_SALESMAN and order.salesman_id != actor_id:
            raise AuthorizationError(
                "You are not authorized to update this order",
                order_id=order_id,
                actor_id=actor_id,
            )

        if new_status == ORDER_STATUS_CANCELLED and order.status == ORDER_STATUS_COMPLETED:
            raise ConflictError(
                "Cannot cancel a completed order",
                order_id=order_id,
                status=order.status,
            )
        if new_status not in _STATUS_TRANSITIONS.get(order.status, ()):
            raise ConflictError(
                f"Cannot change order from {order.status} to {new_status}",
                order_id=order_id,
                status=order.status,
                requested_status=new_status,
            )

        now = utcnow()
        if new_status == ORDER_STATUS_COMPLETED:
            products = lookup_service.get_products(item.product_id for item in order.items)
            check_salesman_availability(order.salesman_id, order.items, products)
            _debit_salesman(order, products)
            order.completed_at = now
        elif new_status == ORDER_STATUS_CANCELLED:
            order.cancelled_at = now

        order.status = new_status
        if notes:
            order.notes = append_note(order.notes, notes, now)
        order.updated_at = now

    current_app.logger.info("Order %s status changed to %s", order.reference_number, new_status)
    return order


def get_order(order_id) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("order", order_id)
    return order


def list_orders(
    shop_id: int | None = None,
    salesman_id: int | None = None,
    status: str | None = None,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    limit: int = 100,
) -> list[Order]:
    q = db.session.query(Order)
    if shop_id:
        q = q.filter(Order.shop_id == shop_id)
    if salesman_id:
        q = q.filter(Order.salesman_id == salesman_id)
    if status:
        q = q.filter(Order.status == status)
    if start:
        q = q.filter(Order.order_date >= start_of_day(start))
    if end:
        q = q.filter(Order.order_date <= end_of_day(end))
    return q.order_by(Order.order_date.desc(), Order.id.desc()).limit(limit).all()
