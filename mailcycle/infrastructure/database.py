"""SQLite connection helpers for the state store.

One database file holds both tables (arrivals, processing_status). A run
touches it a handful of times, so connections are opened per operation
rather than pooled.

Provides:
- Connection factory with WAL/synchronous settings and Row factory
- Transaction context manager (commit on success, rollback on error)
- Retry decorator for SQLITE_BUSY lock contention
"""

from __future__ import annotations

import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

from mailcycle.config import (
    DB_CONNECT_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger(__name__)


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    SQLite returns "database is locked" when a manual re-trigger races the
    scheduled run. Each wrapped operation is one self-contained statement, so
    re-executing it is safe.

    Side Effects:
        - Sleeps between retries (exponential backoff with jitter)
        - Logs warning messages for each retry attempt
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except sqlite3.OperationalError as e:
                    # Only retry on lock errors
                    if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    counter("database.lock_retries")
                    time.sleep(sleep_time)

            raise AssertionError("unreachable")

        return wrapper  # type: ignore[return-value]

    return decorator


def create_connection(db_path: Path | str) -> sqlite3.Connection:
    """
    Open a configured SQLite connection.

    Side Effects:
        - Opens (and creates, if needed) the database file
        - Executes PRAGMA statements (journal_mode, synchronous)
    """
    conn = sqlite3.connect(str(db_path), timeout=DB_CONNECT_TIMEOUT)

    if str(db_path) != ":memory:":
        # Write-Ahead Logging lets a status read proceed during a write
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")

    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def db_connection(db_path: Path | str) -> Generator[sqlite3.Connection, None, None]:
    """
    Connection context manager (closes on exit).

    Usage:
        with db_connection(path) as conn:
            row = conn.execute("SELECT ...").fetchone()
    """
    conn = create_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def db_transaction(db_path: Path | str) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Automatically commits on success, rolls back on error.

    Side Effects:
        - Commits transaction on success (writes changes to disk)
        - Rolls back transaction on exception (discards uncommitted changes)
    """
    with db_connection(db_path) as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
