# Overview: Service-layer helpers for transactional units, retries and post-commit side effects.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class SequenceContentionError(Exception):
    """Another transaction created the same sequence row first; retry the unit."""
    pass


RETRYABLE_ERRORS = (OperationalError, StaleDataError, SequenceContentionError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (the whole database is
    locked by the writer instead), but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and sequence-row creation races.
    Domain errors propagate on the first attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_unit(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run `func` and commit as one all-or-nothing unit.

    Any exception rolls the session back before it propagates, so a
    rejected operation leaves the document untouched.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


def fire_side_effect(name: str, func, *args, **kwargs):
    """
    Run a post-commit side effect in its own small transaction.

    Failures are logged and swallowed: the primary transition that
    triggered the side effect is already committed and stays committed.
    """
    try:
        result = func(*args, **kwargs)
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Side effect %s failed", name)
        return None
