# Overview: Human-readable reference numbers for distributions, orders and returns.

from __future__ import annotations

import random
import time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConcurrencyError, ConflictError
from ..extensions import db

PREFIX_SALESMAN_DISTRIBUTION = "DIST"
PREFIX_WHOLESALE = "WHSL"
PREFIX_RETAIL = "RTL"
PREFIX_ORDER = "ORD"
PREFIX_SHOP_RETURN = "RET"
PREFIX_SALESMAN_RETURN = "EOD"

_rng = random.SystemRandom()


def generate_reference(prefix: str, *, now_ms: int | None = None) -> str:
    """
    <PREFIX>-<last 6 digits of the millisecond clock>-<3 random digits>

    Not unique on its own; insert_with_reference() makes it so.
    """
    if not prefix:
        raise ValueError("prefix is required")
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix}-{str(now_ms)[-6:].zfill(6)}-{_rng.randrange(1000):03d}"


def insert_with_reference(model, prefix: str, build):
    """
    Allocate an unused reference number and insert the document built for it.

    build(reference_number) must return an unsaved model instance.

    Candidates already present in the table are skipped, up to
    LEDGER_REFERENCE_ATTEMPTS times. The unique constraint on
    reference_number is the final arbiter: if a concurrent insert wins the
    same number between the check and the flush, the whole unit of work is
    aborted as a ConcurrencyError so the caller retries from scratch.
    """
    attempts = current_app.config.get("LEDGER_REFERENCE_ATTEMPTS", 8)

    for _ in range(attempts):
        reference = generate_reference(prefix)
        taken = db.session.query(model.id).filter_by(reference_number=reference).first()
        if taken is not None:
            current_app.logger.info("Reference %s already taken, regenerating", reference)
            continue

        doc = build(reference)
        db.session.add(doc)
        try:
            db.session.flush()
        except IntegrityError as exc:
            if "reference" not in str(exc.orig).lower():
                raise
            raise ConcurrencyError(
                f"Reference number {reference} was claimed concurrently",
                reference_number=reference,
            ) from exc
        return doc

    raise ConflictError(
        f"Could not allocate a unique {prefix} reference number after {attempts} attempts",
        prefix=prefix,
    )
