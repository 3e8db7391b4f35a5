# Overview: Transaction helpers shared by services that mutate inventory.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceFailure
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    covers it there by taking the database write lock up front.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the current transaction as a writer.

    SQLite only serializes writers at the first write, which is too late for a
    read-check-write sequence. BEGIN IMMEDIATE takes the RESERVED lock before
    the read, so a concurrent sale waits (busy timeout) and then reads the
    committed quantity. Must be the first statement of the transaction.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, deadlocks) and StaleDataError
    (optimistic version conflicts). Any failure rolls the session back before
    it propagates, so no partial state is left behind. Database errors that
    survive the retries surface as PersistenceFailure.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.exception("Transaction failed after %s attempts", attempts)
                raise PersistenceFailure("Database is busy, transaction rolled back") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Transaction failed")
            raise PersistenceFailure("Database error, transaction rolled back") from exc
        except Exception:
            db.session.rollback()
            raise
