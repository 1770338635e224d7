# backend/stockledger/services/distribution_service.py
"""
Distribution workflow: stock leaving the warehouse.

WHY: The warehouse hands stock to field salesmen (it stays company-owned)
or sells it directly to wholesale/retail buyers (it leaves the business).
Both are recorded as a Distribution document plus one movement per item.

TYPES:
- salesman:  transfer_out per item, status DISTRIBUTED, priced at wholesale
- wholesale: stock_out to wholesale_customer, status COMPLETED, wholesale price
- retail:    stock_out to retail_customer, status COMPLETED, retail price

An explicit unit_price_cents on an item overrides the catalog price.

LIFECYCLE (status only; the stock effect is never reversed):
    DISTRIBUTED -> COMPLETED | CANCELLED
"""
from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from stockledger.errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from stockledger.extensions import db
from stockledger.models import (
    Distribution,
    DistributionItem,
    LocationType,
    Product,
    StockAccount,
    TransactionType,
)
from stockledger.services import lookup_service, reference_service
from stockledger.services.concurrency import atomic
from stockledger.services.movement_service import MovementRequest, apply_movement
from stockledger.time_utils import end_of_day, start_of_day, utcnow
from stockledger.validation import (
    PAYMENT_METHODS,
    append_note,
    optional_text,
    parse_items,
    quantities_by_product,
    require_choice,
    require_id,
)


DISTRIBUTION_TYPE_SALESMAN = "salesman"
DISTRIBUTION_TYPE_WHOLESALE = "wholesale"
DISTRIBUTION_TYPE_RETAIL = "retail"
DISTRIBUTION_TYPES = (DISTRIBUTION_TYPE_SALESMAN, DISTRIBUTION_TYPE_WHOLESALE, DISTRIBUTION_TYPE_RETAIL)

DISTRIBUTION_STATUS_DISTRIBUTED = "distributed"
DISTRIBUTION_STATUS_COMPLETED = "completed"
DISTRIBUTION_STATUS_CANCELLED = "cancelled"

_STATUS_TRANSITIONS = {
    DISTRIBUTION_STATUS_DISTRIBUTED: (DISTRIBUTION_STATUS_COMPLETED, DISTRIBUTION_STATUS_CANCELLED),
    DISTRIBUTION_STATUS_COMPLETED: (),
    DISTRIBUTION_STATUS_CANCELLED: (),
}

WALK_IN_CUSTOMER = "Walk-in Customer"


def check_warehouse_availability(items, products: dict[int, Product]) -> None:
    """
    Fail before any write if the warehouse cannot cover every product.

    Quantities of repeated products are summed. The conditional updates in
    apply_movement re-check at write time, so this only gives the early,
    precise error.
    """
    for product_id, quantity in quantities_by_product(items).items():
        available = (
            db.session.query(StockAccount.warehouse_stock)
            .filter(StockAccount.product_id == product_id)
            .scalar()
        ) or 0
        if available < quantity:
            raise InsufficientStockError(
                product_id,
                quantity,
                available,
                scope="warehouse",
                product_name=products[product_id].name,
            )


def _create_distribution(
    *,
    distribution_type: str,
    prefix: str,
    items,
    actor_id: int,
    status: str,
    price_field: str,
    movement_type: TransactionType,
    counterparty_type: LocationType | None,
    recipient_id: int | None = None,
    recipient_name: str | None = None,
    recipient_contact: str | None = None,
    payment_method: str | None = None,
    notes: str | None = None,
    note_for_movement=None,
) -> Distribution:
    with atomic():
        products = lookup_service.get_products(item.product_id for item in items)
        check_warehouse_availability(items, products)

        now = utcnow()
        distribution = reference_service.insert_with_reference(
            Distribution,
            prefix,
            lambda reference: Distribution(
                distribution_type=distribution_type,
                recipient_id=recipient_id,
                recipient_name=recipient_name,
                recipient_contact=recipient_contact,
                reference_number=reference,
                status=status,
                payment_method=payment_method,
                total_amount_cents=0,
                notes=notes,
                created_by=actor_id,
                distribution_date=now,
                created_at=now,
                updated_at=now,
            ),
        )

        total = 0
        for item in items:
            product = products[item.product_id]
            unit_price = item.unit_price_cents
            if unit_price is None:
                unit_price = getattr(product, price_field)
            line_total = unit_price * item.quantity
            total += line_total

            db.session.add(
                DistributionItem(
                    distribution_id=distribution.id,
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_price_cents=unit_price,
                    total_price_cents=line_total,
                )
            )

            apply_movement(
                MovementRequest(
                    transaction_type=movement_type,
                    product=product,
                    quantity=item.quantity,
                    actor_id=actor_id,
                    salesman_id=recipient_id,
                    counterparty_type=counterparty_type,
                    reference_number=distribution.reference_number,
                    notes=note_for_movement(distribution.reference_number),
                )
            )

        distribution.total_amount_cents = total
        db.session.flush()

    current_app.logger.info(
        "Distribution %s (%s) recorded: %s items, total_cents=%s",
        distribution.reference_number,
        distribution_type,
        len(items),
        distribution.total_amount_cents,
    )
    return distribution


def distribute_to_salesman(salesman_id, items, notes=None, *, actor_id) -> Distribution:
    """
    Hand warehouse stock to an active salesman.

    Args:
        salesman_id: Receiving salesman
        items: [{product_id, quantity, unit_price_cents?}, ...]
        notes: Optional free text
        actor_id: Warehouse user performing the distribution

    Returns:
        Distribution: status DISTRIBUTED, with items

    Raises:
        ValidationError, NotFoundError, InsufficientStockError, ConcurrencyError
    """
    actor_id = require_id(actor_id, "actor_id")
    salesman_id = require_id(salesman_id, "salesman_id")
    parsed = parse_items(items)
    notes = optional_text(notes, "notes")

    salesman = lookup_service.get_active_salesman(salesman_id)

    return _create_distribution(
        distribution_type=DISTRIBUTION_TYPE_SALESMAN,
        prefix=reference_service.PREFIX_SALESMAN_DISTRIBUTION,
        items=parsed,
        actor_id=actor_id,
        status=DISTRIBUTION_STATUS_DISTRIBUTED,
        price_field="wholesale_price_cents",
        movement_type=TransactionType.TRANSFER_OUT,
        counterparty_type=None,
        recipient_id=salesman.id,
        recipient_name=salesman.full_name,
        notes=notes,
        note_for_movement=lambda ref: f"Distribution to salesman {salesman.full_name}, Reference: {ref}",
    )


def distribute_wholesale(recipient, items, payment_method=None, notes=None, *, actor_id) -> Distribution:
    """
    Sell warehouse stock to a named wholesale buyer.

    recipient is {"name": ..., "contact": ...} or a plain name string.
    """
    actor_id = require_id(actor_id, "actor_id")
    name, contact = _parse_recipient(recipient)
    if not name:
        raise ValidationError("Recipient name is required for wholesale distribution", field="recipient_name")
    parsed = parse_items(items)
    payment_method = require_choice(payment_method, PAYMENT_METHODS, "payment_method", default="cash")
    notes = optional_text(notes, "notes")

    return _create_distribution(
        distribution_type=DISTRIBUTION_TYPE_WHOLESALE,
        prefix=reference_service.PREFIX_WHOLESALE,
        items=parsed,
        actor_id=actor_id,
        status=DISTRIBUTION_STATUS_COMPLETED,
        price_field="wholesale_price_cents",
        movement_type=TransactionType.STOCK_OUT,
        counterparty_type=LocationType.WHOLESALE_CUSTOMER,
        recipient_name=name,
        recipient_contact=contact,
        payment_method=payment_method,
        notes=notes,
        note_for_movement=lambda ref: f"Wholesale sale to {name}, Reference: {ref}",
    )


def distribute_retail(customer, items, payment_method=None, notes=None, *, actor_id) -> Distribution:
    """Sell warehouse stock over the counter. An anonymous customer is a walk-in."""
    actor_id = require_id(actor_id, "actor_id")
    name, contact = _parse_recipient(customer)
    name = name or WALK_IN_CUSTOMER
    parsed = parse_items(items)
    payment_method = require_choice(payment_method, PAYMENT_METHODS, "payment_method", default="cash")
    notes = optional_text(notes, "notes")

    return _create_distribution(
        distribution_type=DISTRIBUTION_TYPE_RETAIL,
        prefix=reference_service.PREFIX_RETAIL,
        items=parsed,
        actor_id=actor_id,
        status=DISTRIBUTION_STATUS_COMPLETED,
        price_field="retail_price_cents",
        movement_type=TransactionType.STOCK_OUT,
        counterparty_type=LocationType.RETAIL_CUSTOMER,
        recipient_name=name,
        recipient_contact=contact,
        payment_method=payment_method,
        notes=notes,
        note_for_movement=lambda ref: f"Retail sale to {name}, Reference: {ref}",
    )


def distribute(distribution_type, recipient, items, notes=None, *, actor_id, payment_method=None) -> Distribution:
    """
    Single entry point dispatching on distribution_type.

    recipient is a salesman id for "salesman" and a name/contact object
    (or name string) for "wholesale" and "retail".
    """
    distribution_type = require_choice(distribution_type, DISTRIBUTION_TYPES, "distribution_type")
    if distribution_type == DISTRIBUTION_TYPE_SALESMAN:
        if isinstance(recipient, dict):
            recipient = recipient.get("salesman_id") or recipient.get("id")
        return distribute_to_salesman(recipient, items, notes, actor_id=actor_id)
    if distribution_type == DISTRIBUTION_TYPE_WHOLESALE:
        return distribute_wholesale(recipient, items, payment_method, notes, actor_id=actor_id)
    return distribute_retail(recipient, items, payment_method, notes, actor_id=actor_id)


def _parse_recipient(recipient) -> tuple[str | None, str | None]:
    if recipient is None:
        return None, None
    if isinstance(recipient, str):
        return optional_text(recipient, "recipient_name", 255), None
    if isinstance(recipient, dict):
        name = recipient.get("name", recipient.get("recipient_name"))
        contact = recipient.get("contact", recipient.get("recipient_contact"))
        return (
            optional_text(name, "recipient_name", 255),
            optional_text(contact, "recipient_contact", 255),
        )
    raise ValidationError("recipient must be a name or an object with name/contact", field="recipient")


def update_distribution_status(distribution_id, new_status, *, actor_id, notes=None) -> Distribution:
    """
    Move a distribution along its status lifecycle.

    Status changes are bookkeeping only; stock moved at creation stays moved.
    """
    require_id(actor_id, "actor_id")
    distribution_id = require_id(distribution_id, "distribution_id")
    new_status = require_choice(new_status, tuple(_STATUS_TRANSITIONS), "status")
    notes = optional_text(notes, "notes")

    with atomic():
        distribution = db.session.get(Distribution, distribution_id)
        if distribution is None:
            raise NotFoundError("distribution", distribution_id)

        if new_status not in _STATUS_TRANSITIONS.get(distribution.status, ()):
            raise ConflictError(
                f"Cannot change distribution from {distribution.status} to {new_status}",
                distribution_id=distribution_id,
                status=distribution.status,
                requested_status=new_status,
            )

        now = utcnow()
        distribution.status = new_status
        if notes:
            distribution.notes = append_note(distribution.notes, notes, now)
        distribution.updated_at = now

    current_app.logger.info(
        "Distribution %s status changed to %s", distribution.reference_number, new_status
    )
    return distribution


def get_distribution(distribution_id) -> Distribution:
    distribution = db.session.get(Distribution, distribution_id)
    if distribution is None:
        raise NotFoundError("distribution", distribution_id)
    return distribution


def list_distributions(
    distribution_type: str | None = None,
    status: str | None = None,
    recipient_id: int | None = None,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    limit: int = 100,
) -> list[Distribution]:
    q = db.session.query(Distribution)
    if distribution_type:
        q = q.filter(Distribution.distribution_type == distribution_type)
    if status:
        q = q.filter(Distribution.status == status)
    if recipient_id:
        q = q.filter(Distribution.recipient_id == recipient_id)
    if start:
        q = q.filter(Distribution.distribution_date >= start_of_day(start))
    if end:
        q = q.filter(Distribution.distribution_date <= end_of_day(end))
    return q.order_by(Distribution.distribution_date.desc(), Distribution.id.desc()).limit(limit).all()
