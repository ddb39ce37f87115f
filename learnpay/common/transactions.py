"""Optimistic read-decide-write helper shared by ledger writers.

`work` receives a fresh session on every attempt and must re-read whatever it
decides on; nothing from a failed attempt survives into the next one.
"""

import time
from typing import Callable, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from learnpay.common.errors import LedgerConflictError, LedgerContentionError
from learnpay.common.logging import logger
from learnpay.common.metrics import retries_total

T = TypeVar("T")

MAX_BACKOFF_SECONDS = 1.0


def bump_version(db, model, key_column, key: str, current_version: int, **values) -> None:
    """Advance `state_version` only if nobody else did since it was read."""

    result = db.execute(
        update(model)
        .where(key_column == key, model.state_version == current_version)
        .values(state_version=current_version + 1, **values)
    )
    if result.rowcount != 1:
        raise LedgerConflictError(f"optimistic concurrency conflict for {key} (expected version {current_version})")


def run_in_transaction(
    session_factory,
    work: Callable[..., T],
    *,
    max_attempts: int = 5,
    base_delay_seconds: float = 0.05,
    service_name: str = "ledger",
) -> T:
    """Run `work(db)` and commit, re-running it from scratch on write conflicts.

    Conflicts are version mismatches and unique-key collisions from concurrent
    inserts. Any other exception propagates and the attempt is rolled back.
    """

    for attempt in range(1, max_attempts + 1):
        with session_factory() as db:
            try:
                result = work(db)
                db.commit()
                return result
            except (LedgerConflictError, IntegrityError) as exc:
                db.rollback()
                retries_total.labels(service=service_name, dependency="database").inc()
                logger.warning(
                    "ledger write conflict attempt=%s/%s error=%s",
                    attempt,
                    max_attempts,
                    exc.__class__.__name__,
                )
                if attempt == max_attempts:
                    raise LedgerContentionError(f"ledger write gave up after {max_attempts} attempts") from exc
        # Exponential backoff: base, 2x base, 4x base ... capped.
        time.sleep(min(base_delay_seconds * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS))
    raise LedgerContentionError("ledger write was not attempted")
