# backend/stockledger/services/return_service.py
"""
Return workflow: stock flowing back from shops and salesmen.

TYPES:
- shop (RET-...): goods go from a shop back into its assigned salesman's
  hands. remaining_quantity is credited whatever the item condition; no
  transaction row, since stock never left the salesman scope in the ledger.
  Priced at retail.
- salesman (EOD-...): end-of-day reconciliation. The salesman hands
  unsold units back to the warehouse; one transfer_in per item. Priced at
  wholesale, items recorded in good condition.

Returns are processed on creation and carry no further lifecycle.
"""
from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from stockledger.errors import AuthorizationError, NotFoundError, ValidationError
from stockledger.extensions import db
from stockledger.models import Order, Return, ReturnItem, TransactionType
from stockledger.services import lookup_service, reference_service
from stockledger.services.concurrency import atomic
from stockledger.services.movement_service import MovementRequest, apply_movement, credit_shop_return
from stockledger.services.order_service import check_salesman_availability
from stockledger.time_utils import end_of_day, start_of_day, utcnow
from stockledger.validation import optional_text, parse_items, require_choice, require_id


RETURN_TYPE_SHOP = "shop"
RETURN_TYPE_SALESMAN = "salesman"
RETURN_TYPES = (RETURN_TYPE_SHOP, RETURN_TYPE_SALESMAN)

RETURN_STATUS_PROCESSED = "processed"

DEFAULT_SHOP_RETURN_REASON = "No specific reason provided"
END_OF_DAY_RETURN_REASON = "End of day return"


def _resolve_order(order_id, shop_id: int, salesman_id: int) -> int | None:
    if order_id is None or order_id == "":
        return None
    order_id = require_id(order_id, "order_id")
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("order", order_id)
    if order.shop_id != shop_id or order.salesman_id != salesman_id:
        raise AuthorizationError(
            "Order does not belong to this shop or salesman",
            order_id=order_id,
            shop_id=shop_id,
            salesman_id=salesman_id,
        )
    return order.id


def create_shop_return(salesman_id, shop_id, items, reason=None, order_id=None, *, notes=None) -> Return:
    """
    Take goods back from a shop into the salesman's stock.

    Args:
        salesman_id: Acting salesman; must be the shop's assigned salesman
        shop_id: Returning shop (must be active)
        items: [{product_id, quantity, condition, notes?}, ...]
        reason: Optional return reason
        order_id: Optional originating order (same shop and salesman)

    Raises:
        AuthorizationError: Salesman is not assigned to the shop, or order mismatch
        ValidationError, NotFoundError, ConcurrencyError
    """
    salesman_id = require_id(salesman_id, "salesman_id")
    shop_id = require_id(shop_id, "shop_id")
    parsed = parse_items(items, allow_price=False, require_condition=True)
    reason = optional_text(reason, "return_reason") or DEFAULT_SHOP_RETURN_REASON
    notes = optional_text(notes, "notes")

    salesman = lookup_service.get_active_salesman(salesman_id)
    shop = lookup_service.get_active_shop(shop_id)
    if shop.assigned_salesman_id != salesman.id:
        raise AuthorizationError(
            "You are not assigned to this shop",
            shop_id=shop_id,
            salesman_id=salesman_id,
        )

    with atomic():
        resolved_order_id = _resolve_order(order_id, shop.id, salesman.id)
        products = lookup_service.get_products(item.product_id for item in parsed)

        now = utcnow()
        return_doc = reference_service.insert_with_reference(
            Return,
            reference_service.PREFIX_SHOP_RETURN,
            lambda reference: Return(
                return_type=RETURN_TYPE_SHOP,
                shop_id=shop.id,
                salesman_id=salesman.id,
                order_id=resolved_order_id,
                reference_number=reference,
                return_reason=reason,
                status=RETURN_STATUS_PROCESSED,
                total_amount_cents=0,
                notes=notes,
                processed_by=salesman.id,
                return_date=now,
                created_at=now,
            ),
        )

        total = 0
        for item in parsed:
            product = products[item.product_id]
            line_total = product.retail_price_cents * item.quantity
            total += line_total
            return_doc.items.append(
                ReturnItem(
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_price_cents=product.retail_price_cents,
                    line_total_cents=line_total,
                    condition=item.condition,
                    notes=item.notes,
                )
            )
            credit_shop_return(salesman.id, product, item.quantity)

        return_doc.total_amount_cents = total
        db.session.flush()

    current_app.logger.info(
        "Shop return %s (shop %s -> salesman %s) recorded: %s items, total_cents=%s",
        return_doc.reference_number,
        return_doc.shop_id,
        return_doc.salesman_id,
        len(parsed),
        return_doc.total_amount_cents,
    )
    return return_doc


def create_salesman_return(salesman_id, items, notes=None, *, actor_id) -> Return:
    """
    End-of-day return of unsold stock from a salesman to the warehouse.

    Args:
        salesman_id: Salesman handing stock back (must be active)
        items: [{product_id, quantity}, ...]
        notes: Optional free text
        actor_id: Warehouse user processing the return

    Raises:
        InsufficientStockError: Returning more than the salesman holds
        ValidationError, NotFoundError, ConcurrencyError
    """
    actor_id = require_id(actor_id, "actor_id")
    salesman_id = require_id(salesman_id, "salesman_id")
    parsed = parse_items(items, allow_price=False)
    notes = optional_text(notes, "notes")

    salesman = lookup_service.get_active_salesman(salesman_id)

    with atomic():
        products = lookup_service.get_products(item.product_id for item in parsed)
        check_salesman_availability(salesman.id, parsed, products)

        now = utcnow()
        return_doc = reference_service.insert_with_reference(
            Return,
            reference_service.PREFIX_SALESMAN_RETURN,
            lambda reference: Return(
                return_type=RETURN_TYPE_SALESMAN,
                shop_id=None,
                salesman_id=salesman.id,
                reference_number=reference,
                return_reason=END_OF_DAY_RETURN_REASON,
                status=RETURN_STATUS_PROCESSED,
                total_amount_cents=0,
                notes=notes,
                processed_by=actor_id,
                return_date=now,
                created_at=now,
            ),
        )

        total = 0
        for item in parsed:
            product = products[item.product_id]
            line_total = product.wholesale_price_cents * item.quantity
            total += line_total
            return_doc.items.append(
                ReturnItem(
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_price_cents=product.wholesale_price_cents,
                    line_total_cents=line_total,
                    condition="good",
                    notes=item.notes,
                )
            )
            apply_movement(
                MovementRequest(
                    transaction_type=TransactionType.TRANSFER_IN,
                    product=product,
                    quantity=item.quantity,
                    actor_id=actor_id,
                    salesman_id=salesman.id,
                    reference_number=return_doc.reference_number,
                    notes=(
                        f"End of day return from salesman {salesman.full_name}, "
                        f"Reference: {return_doc.reference_number}"
                    ),
                )
            )

        return_doc.total_amount_cents = total
        db.session.flush()

    current_app.logger.info(
        "End of day return %s (salesman %s) recorded: %s items, total_cents=%s",
        return_doc.reference_number,
        return_doc.salesman_id,
        len(parsed),
        return_doc.total_amount_cents,
    )
    return return_doc


def create_return(return_type, actor_id, target_id, items, reason=None, *, order_id=None, notes=None) -> Return:
    """
    Single entry point dispatching on return_type.

    shop:     actor_id is the salesman, target_id the shop
    salesman: actor_id is the warehouse user, target_id the salesman;
              the reason is fixed, so a supplied one is kept as notes
    """
    return_type = require_choice(return_type, RETURN_TYPES, "return_type")
    if return_type == RETURN_TYPE_SHOP:
        return create_shop_return(actor_id, target_id, items, reason, order_id, notes=notes)
    if order_id is not None:
        raise ValidationError("End of day returns cannot reference an order", field="order_id")
    return create_salesman_return(target_id, items, notes if notes is not None else reason, actor_id=actor_id)


def get_return(return_id) -> Return:
    return_doc = db.session.get(Return, return_id)
    if return_doc is None:
        raise NotFoundError("return", return_id)
    return return_doc


def list_returns(
    return_type: str | None = None,
    shop_id: int | None = None,
    salesman_id: int | None = None,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    limit: int = 100,
) -> list[Return]:
    q = db.session.query(Return)
    if return_type:
        q = q.filter(Return.return_type == return_type)
    if shop_id:
        q = q.filter(Return.shop_id == shop_id)
    if salesman_id:
        q = q.filter(Return.salesman_id == salesman_id)
    if start:
        q = q.filter(Return.return_date >= start_of_day(start))
    if end:
        q = q.filter(Return.return_date <= end_of_day(end))
    return q.order_by(Return.return_date.desc(), Return.id.desc()).limit(limit).all()
