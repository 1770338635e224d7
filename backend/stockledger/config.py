# backend/stockledger/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Seed for StockAccount.minimum_threshold when the product has no min_stock_level
    LEDGER_DEFAULT_MINIMUM_THRESHOLD = _env_int("LEDGER_DEFAULT_MINIMUM_THRESHOLD", 10)

    # Bounded retries when a generated reference number collides
    LEDGER_REFERENCE_ATTEMPTS = _env_int("LEDGER_REFERENCE_ATTEMPTS", 8)

    # Caller-side retry of ConcurrencyError (routes, CLI); the services never retry
    LEDGER_RETRY_ATTEMPTS = _env_int("LEDGER_RETRY_ATTEMPTS", 3)
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.1"))
