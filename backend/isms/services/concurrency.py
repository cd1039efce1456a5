# Overview: Transaction and retry helpers shared by every mutating service.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import PersistenceError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func as one unit of work: everything it flushes is committed once at
    the end, or rolled back together if anything raises.

    Business errors (ValidationError, ConflictError, ...) propagate unchanged
    after the rollback. Lock and stale-row failures are retried; any other
    store failure is re-raised as PersistenceError.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError):
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error("Transaction failed: %s", exc)
            raise PersistenceError("Database operation failed") from exc
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except (OperationalError, StaleDataError) as exc:
        raise PersistenceError("Database is busy, please retry") from exc
