# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Storage-level retry for lock timeouts and optimistic version conflicts.
    # Domain errors (insufficient stock, bad input) are never retried.
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.1"))

    # Pagination for document and stock listings
    LEDGER_DEFAULT_PAGE_SIZE = int(os.environ.get("LEDGER_DEFAULT_PAGE_SIZE", "10"))
    LEDGER_MAX_PAGE_SIZE = int(os.environ.get("LEDGER_MAX_PAGE_SIZE", "100"))

    # Default cut-off for the low-stock report
    LEDGER_LOW_STOCK_THRESHOLD = int(os.environ.get("LEDGER_LOW_STOCK_THRESHOLD", "10"))
