# Overview: Retry and locking helpers shared by every billing unit of work.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import DependencyError


LOCK_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "lock wait timeout",
    "could not obtain lock",
    "could not serialize access",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def is_lock_contention(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in LOCK_CONTENTION_MARKERS)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute one unit of work, retrying on concurrency-related failures.

    Retries on lock contention (locked database, deadlock, lock wait timeout)
    and StaleDataError (optimistic version conflicts). The session is rolled
    back before each retry so the next attempt re-reads current state.

    Any other OperationalError means the storage itself is unavailable; it is
    raised as DependencyError on the first occurrence, without retrying. Lock
    contention that outlasts the retries also surfaces as DependencyError; a
    version conflict that outlasts them is re-raised unchanged. Any other
    failure rolls the session back and propagates, so no partial write
    survives it.
    """
    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
        except OperationalError as exc:
            db.session.rollback()
            if not is_lock_contention(exc) or attempt >= attempts - 1:
                raise DependencyError("Billing storage unavailable") from exc
        except Exception:
            db.session.rollback()
            raise
        time.sleep(backoff_base * (2 ** attempt))
    raise DependencyError("Billing storage unavailable")
