# Overview: Unit-of-work boundary, row locking and caller-side retry for ledger operations.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyError
from ..extensions import db

_ATOMIC_DEPTH_KEY = "stockledger.atomic_depth"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Stock decrements do not rely on this lock alone; they are conditional
    UPDATEs (see movement_service).
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Run the enclosed writes as one all-or-nothing unit.

    - Commits exactly once when the outermost scope exits cleanly.
    - Rolls back on any exception and re-raises it unchanged, except that
      store-level write conflicts (OperationalError, StaleDataError) are
      surfaced as ConcurrencyError so callers know the call is retryable.
    - Nested scopes join the outer one; only the outermost commits.
    """
    session = db.session()
    depth = session.info.get(_ATOMIC_DEPTH_KEY, 0)
    session.info[_ATOMIC_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except (OperationalError, StaleDataError) as exc:
        if depth == 0:
            session.rollback()
            raise ConcurrencyError(f"Write conflict, transaction aborted: {exc.__class__.__name__}") from exc
        raise
    except Exception:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_ATOMIC_DEPTH_KEY] = depth


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a whole ledger operation, retrying only on ConcurrencyError.

    This is the caller-side helper (routes, CLI). Ledger services never
    call it on themselves, so a retried operation is always re-validated
    from scratch and can never be applied twice.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except ConcurrencyError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrency conflict, retrying (attempt %s of %s)", attempt + 1, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))
