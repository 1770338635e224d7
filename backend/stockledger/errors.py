# Overview: Typed error taxonomy returned by every ledger operation.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger failures; carries an HTTP-ish status and context."""

    status_code = 500
    retryable = False

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        body = {k: v for k, v in self.context.items() if v is not None}
        body["error"] = self.message
        body["error_type"] = type(self).__name__
        return body


class NotFoundError(LedgerError):
    """404-level: an id (product, salesman, shop, order, return, distribution) does not resolve."""

    status_code = 404

    def __init__(self, entity: str, entity_id, message: str | None = None):
        super().__init__(
            message or f"{entity.capitalize()} {entity_id} not found",
            entity=entity,
            entity_id=entity_id,
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(LedgerError):
    """400-level input problem."""

    status_code = 400


class InsufficientStockError(LedgerError):
    """
    Requested quantity exceeds what is available at the relevant scope.

    scope is "warehouse" for StockAccount checks and "salesman" for
    SalesmanStockAccount checks.
    """

    status_code = 409

    def __init__(
        self,
        product_id: int,
        requested: int,
        available: int,
        *,
        scope: str = "warehouse",
        product_name: str | None = None,
        salesman_id: int | None = None,
    ):
        label = product_name or f"product {product_id}"
        if scope == "salesman":
            message = f"Salesman does not have enough {label}. Requested: {requested}, available: {available}"
        else:
            message = f"Not enough stock for {label}. Requested: {requested}, available: {available}"
        super().__init__(
            message,
            product_id=product_id,
            requested=requested,
            available=available,
            scope=scope,
            salesman_id=salesman_id,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.scope = scope
        self.salesman_id = salesman_id


class AuthorizationError(LedgerError):
    """403-level: the actor has no rights over the target entity."""

    status_code = 403


class ConflictError(LedgerError):
    """409-level business rule conflict (reference collision, illegal status transition)."""

    status_code = 409


class ConcurrencyError(LedgerError):
    """The store aborted the unit of work on a write conflict. Safe to retry the whole call."""

    status_code = 503
    retryable = True
