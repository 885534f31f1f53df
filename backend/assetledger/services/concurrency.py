# Overview: Row locking, retry and conditional-update helpers shared by the mutating services.

from __future__ import annotations

import logging
import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from assetledger.extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the conditional updates in transition_status() carry the guarantee.
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
            logger.warning("Retrying after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


def transition_status(model, row_id: int, from_status: str, values: dict) -> bool:
    """
    Compare-and-set a row's status column.

    Issues UPDATE ... SET <values> WHERE id = :row_id AND status = :from_status
    and returns True only if exactly one row changed. Objects already loaded
    in the session are refreshed from the new values.
    """
    result = db.session.execute(
        update(model)
        .where(model.id == row_id, model.status == from_status)
        .values(**values)
        .execution_options(synchronize_session="evaluate")
    )
    return result.rowcount == 1
