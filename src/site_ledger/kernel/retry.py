"""
Retry logic with exponential backoff for transient failures.

Two kinds of contention are retried here:
- SQLite lock contention ("database is locked") on the event store
- Optimistic version conflicts, where a stream moved between the read and
  the append; the whole load-decide-append cycle is re-run on fresh state
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryError,
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

from site_ledger.kernel.errors import ConcurrencyConflictError, StreamVersionConflict
from site_ledger.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def retry_on_sqlite_lock(
    max_attempts: int = 5,
    min_wait_ms: int = 50,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention (OperationalError).

    Args:
        max_attempts: Maximum number of attempts (default: 5)
        min_wait_ms: Minimum wait time in milliseconds (default: 50)
        max_wait_ms: Maximum wait time in milliseconds (default: 1000)

    Example:
        @retry_on_sqlite_lock()
        def append_atomic(...):
            conn.execute("BEGIN IMMEDIATE")
    """
    return retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )


def run_with_conflict_retry(
    operation: Callable[[], T],
    *,
    max_attempts: int,
    min_wait_ms: int = 5,
    max_wait_ms: int = 200,
) -> T:
    """
    Run a load-decide-append cycle, re-running it on version conflicts.

    The operation must re-read everything it decides on, so each attempt
    sees the freshest committed state. Jittered backoff keeps concurrent
    writers on the same budget from colliding in lockstep.

    Args:
        operation: Zero-argument callable performing one full attempt
        max_attempts: Attempts before giving up
        min_wait_ms: Lower bound of the jittered backoff
        max_wait_ms: Upper bound of the jittered backoff

    Returns:
        Whatever the successful attempt returned

    Raises:
        ConcurrencyConflictError: If every attempt hit a version conflict
    """
    retrying = Retrying(
        retry=retry_if_exception_type(StreamVersionConflict),
        stop=stop_after_attempt(max_attempts),
        wait=wait_random_exponential(
            multiplier=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.debug(
            "Stream version conflict, retrying with fresh state",
            attempt=retry_state.attempt_number,
            stream_id=getattr(retry_state.outcome.exception(), "stream_id", None)
            if retry_state.outcome
            else None,
        ),
    )
    try:
        return retrying(operation)
    except RetryError as e:
        conflict = e.last_attempt.exception()
        stream_id = getattr(conflict, "stream_id", "unknown")
        logger.warning(
            "Version conflict retries exhausted",
            stream_id=stream_id,
            attempts=max_attempts,
        )
        raise ConcurrencyConflictError(stream_id, max_attempts) from conflict


def retry_read_model_rebuild(
    max_attempts: int = 3,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for read model rebuilds.

    Rebuilds read every event in the store and can fail on lock contention
    or transient I/O errors.
    """
    return retry(
        retry=retry_if_exception_type((sqlite3.OperationalError, OSError)),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=0.5, max=5.0),
        before_sleep=lambda retry_state: logger.warning(
            "Read model rebuild failed, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )

