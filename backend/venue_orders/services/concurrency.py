# Overview: Unit-of-work, row locking and retry primitives shared by order and stock services.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConcurrencyError, NotFoundError, PersistenceError
from ..models import Order

_LOCK_MARKERS = ("locked", "deadlock", "lock wait", "could not obtain lock", "busy")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work(immediate=True)
    takes the database write lock up front instead.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work(*, immediate: bool = False):
    """
    One all-or-nothing group of mutations on the request session.

    Commits when the block exits normally; any exception (domain or storage)
    rolls back everything staged in the block and is re-raised unchanged.
    """
    try:
        if immediate and db.engine.dialect.name == "sqlite":
            db.session.execute(text("BEGIN IMMEDIATE"))
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def with_locked_order(order_id: int, fn):
    """
    Run fn(order) with the order row exclusively locked.

    The lock is taken as the first statement of the unit of work and held
    until commit/rollback, so concurrent calls for the same order are
    linearized and each one sees the status its predecessor committed.
    """
    with unit_of_work(immediate=True):
        query = db.session.query(Order).filter_by(id=order_id).populate_existing()
        order = lock_for_update(query).first()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        return fn(order)


def _is_lock_failure(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _LOCK_MARKERS)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Storage errors leave as ConcurrencyError
    or PersistenceError; domain errors pass through untouched.
    """
    if attempts is None:
        attempts = current_app.config.get("LOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LOCK_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Concurrent update conflict (attempt %d/%d): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            if attempt < attempts - 1:
                time.sleep(backoff_base * (2 ** attempt))
                continue
            if isinstance(exc, StaleDataError) or _is_lock_failure(exc):
                raise ConcurrencyError(
                    "Another terminal is updating the same record; retry the request"
                ) from exc
            current_app.logger.exception("Store unavailable")
            raise PersistenceError("Could not save changes") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Store failure during unit of work")
            raise PersistenceError("Could not save changes") from exc
