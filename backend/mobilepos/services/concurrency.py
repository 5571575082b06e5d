# Overview: Service-layer operations for concurrency; row locks and retry of contended writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import EngineError, PersistenceError

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) by default. Callers that allocate unique
    values (invoice numbers, customer mobiles) also pass IntegrityError.
    The session is rolled back before every retry, so func must redo all
    of its reads.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def begin_immediate():
    """Take SQLite's write lock up front so the read-check-write below is serialized."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(db.text("BEGIN IMMEDIATE"))


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    run_with_retry plus the engine's error contract.

    Engine errors roll the session back and propagate unchanged; store
    failures that survive the retries surface as PersistenceError.
    """
    try:
        return run_with_retry(func, attempts=attempts, backoff_base=backoff_base, retry_on=retry_on)
    except EngineError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(
            "Could not save changes, please retry",
            details={"reason": exc.__class__.__name__},
        ) from exc
