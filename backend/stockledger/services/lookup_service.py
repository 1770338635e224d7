# Overview: Resolves collaborator-owned entities (products, salesmen, shops) for the workflows.

from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Product, Salesman, Shop


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("product", product_id, f"Product with ID {product_id} not found")
    return product


def get_products(product_ids) -> dict[int, Product]:
    """Resolve every id or fail on the first one that does not exist."""
    ids = list(dict.fromkeys(product_ids))
    found = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()} if ids else {}
    for product_id in ids:
        if product_id not in found:
            raise NotFoundError("product", product_id, f"Product with ID {product_id} not found")
    return found


def get_active_salesman(salesman_id: int) -> Salesman:
    salesman = db.session.get(Salesman, salesman_id)
    if salesman is None or not salesman.is_active:
        raise NotFoundError("salesman", salesman_id, "Salesman not found or inactive")
    return salesman


def get_active_shop(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)
    if shop is None or not shop.is_active:
        raise NotFoundError("shop", shop_id, "Shop not found or inactive")
    return shop
