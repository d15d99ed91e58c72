"""
Bounded retries for transient database conflicts

Deadlocks, serialization failures and lock timeouts surface from Django
as ``OperationalError``. Operations wrapped here are re-run from scratch
with exponential backoff, and a conflict that outlives the ceiling becomes
``ConcurrencyConflict`` so callers can tell "try again" from "full".
"""

from __future__ import annotations

import functools
import logging
import time

from django.conf import settings  # type: ignore
from django.db import OperationalError, transaction  # type: ignore

from shared.domain.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)


def retry_on_conflict(func):
    """Re-run ``func`` on OperationalError up to TRANSACTION_MAX_ATTEMPTS times."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        # Inside a caller's transaction the whole block is already doomed on
        # conflict; only the outermost caller can start over.
        if transaction.get_connection().in_atomic_block:
            return func(*args, **kwargs)

        attempts = max(1, settings.TRANSACTION_MAX_ATTEMPTS)
        backoff = settings.TRANSACTION_RETRY_BACKOFF_SECONDS
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except OperationalError as exc:
                if attempt == attempts:
                    logger.error(
                        "Giving up on %s after %d attempts: %s", func.__name__, attempts, exc
                    )
                    raise ConcurrencyConflict(
                        f"{func.__name__} kept conflicting with concurrent writers"
                    ) from exc
                delay = backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Conflict in %s (attempt %d/%d), retrying in %.3fs: %s",
                    func.__name__, attempt, attempts, delay, exc,
                )
                time.sleep(delay)

    return wrapper
