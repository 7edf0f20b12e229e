# Overview: Transaction helpers for the stock ledger and the bootstrap gate.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError

from ..extensions import db


def lock_for_update(query):
    """
    Row lock for the read that precedes a stock change.

    SQLite has no SELECT ... FOR UPDATE; callers there open the transaction
    with BEGIN IMMEDIATE instead, which takes the write lock up front.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func, retrying on OperationalError ("database is locked", deadlocks).

    The session is rolled back before each retry. Anything else func raises,
    including SaleError and BootstrapError, propagates on the first attempt.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Database contention on attempt %s/%s, retrying in %.2fs", attempt, attempts, delay
            )
            time.sleep(delay)
