# Overview: Transaction boundary for ledger operations; row locks, commit/rollback and storage-level retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, PersistenceError
from ..extensions import db


def lock_for_update(query):
    """
    Lock the stock records and document headers a ledger operation mutates.

    Emits SELECT ... FOR UPDATE. SQLite has no row locks and serializes
    writers on the database file, so there the version column on
    StockRecord is what detects a lost update.
    """
    return query.with_for_update()


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute `func` as one atomic unit: commit on success, roll back on any failure.

    - Domain errors (LedgerError subclasses, ValueError, ...) roll back and
      propagate unchanged; they are never retried.
    - OperationalError (lock timeout, deadlock) and StaleDataError (version
      conflict on a StockRecord) roll back and rerun `func` from scratch with
      exponential backoff. `func` must therefore load everything it mutates.
    - When retries run out, StaleDataError surfaces as ConcurrencyConflict and
      OperationalError as PersistenceError. Any other SQLAlchemy failure is
      PersistenceError.

    An interrupted call leaves the database exactly as it was before it began.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise ConcurrencyConflict(
                        "Stock was modified by a concurrent transaction; retry the request",
                        details={"attempts": attempts},
                    ) from exc
                raise PersistenceError(
                    "Database unavailable; the operation was rolled back",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Retrying ledger transaction after %s (attempt %d of %d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("Database error; the operation was rolled back") from exc
        except Exception:
            db.session.rollback()
            raise
