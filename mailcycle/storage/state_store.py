"""
State store adapters for arrivals and processing status.

Both puts are conditional single-key writes:
- put_arrival only writes while the stored record is not yet received
- put_status only writes while the stored status is not yet COMPLETE

They return True when the write happened and False when the condition
refused it. That makes every mutation monotonic at the store level, so a
duplicate invocation racing this one cannot regress state.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, TypeVar

from mailcycle.cycle.errors import ConfigurationError, TransientAdapterError
from mailcycle.infrastructure.database import db_connection, db_transaction, retry_on_db_lock
from mailcycle.infrastructure.database_schema import init_database, validate_schema
from mailcycle.observability.logging import get_logger
from mailcycle.observability.telemetry import counter
from mailcycle.storage.models import ArrivalRecord, ProcessingRecord, ProcessingStatus

logger = get_logger(__name__)

T = TypeVar("T")


class StateStore(Protocol):
    """Keyed store for ArrivalRecord (period, category) and ProcessingRecord (period)."""

    def get_arrival(self, period: str, category: str) -> ArrivalRecord | None: ...

    def list_arrivals(self, period: str) -> list[ArrivalRecord]: ...

    def put_arrival(self, record: ArrivalRecord) -> bool: ...

    def get_status(self, period: str) -> ProcessingRecord | None: ...

    def put_status(self, record: ProcessingRecord) -> bool: ...


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate sqlite failures into TransientAdapterError."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error("State store %s failed: %s", operation, e)
        counter("state_store.errors")
        raise TransientAdapterError(f"state store {operation} failed: {e}") from e


class SQLiteStateStore:
    """
    SQLite implementation of StateStore.

    Conditional writes use INSERT ... ON CONFLICT DO UPDATE ... WHERE, so the
    check and the write are one atomic statement.
    """

    def __init__(self, db_path: Path | str, initialize: bool = True):
        """
        Raises:
            ConfigurationError: If initialize is False and the schema is missing
            TransientAdapterError: If the database cannot be opened
        """
        self.db_path = Path(db_path)
        with _store_errors("init"):
            if initialize:
                init_database(self.db_path)
            with db_connection(self.db_path) as conn:
                try:
                    validate_schema(conn)
                except ValueError as e:
                    raise ConfigurationError(
                        f"state database {self.db_path} is not initialized ({e}); run `mailcycle-run init-db`"
                    ) from e

    def _run(self, operation: str, func: Callable[[], T]) -> T:
        with _store_errors(operation):
            return retry_on_db_lock()(func)()

    def get_arrival(self, period: str, category: str) -> ArrivalRecord | None:
        def _read() -> ArrivalRecord | None:
            with db_connection(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM arrivals WHERE period = ? AND category = ?",
                    (period, category),
                ).fetchone()
            return ArrivalRecord.from_db_row(dict(row)) if row else None

        return self._run("get_arrival", _read)

    def list_arrivals(self, period: str) -> list[ArrivalRecord]:
        def _read() -> list[ArrivalRecord]:
            with db_connection(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM arrivals WHERE period = ? ORDER BY category",
                    (period,),
                ).fetchall()
            return [ArrivalRecord.from_db_row(dict(row)) for row in rows]

        return self._run("list_arrivals", _read)

    def put_arrival(self, record: ArrivalRecord) -> bool:
        def _write() -> bool:
            with db_transaction(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO arrivals (period, category, received, message_id, observed_at)
                    VALUES (:period, :category, :received, :message_id, :observed_at)
                    ON CONFLICT (period, category) DO UPDATE SET
                        received = excluded.received,
                        message_id = excluded.message_id,
                        observed_at = excluded.observed_at
                    WHERE arrivals.received = 0
                    """,
                    record.to_db_dict(),
                )
                return cursor.rowcount > 0

        return self._run("put_arrival", _write)

    def get_status(self, period: str) -> ProcessingRecord | None:
        def _read() -> ProcessingRecord | None:
            with db_connection(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM processing_status WHERE period = ?",
                    (period,),
                ).fetchone()
            return ProcessingRecord.from_db_row(dict(row)) if row else None

        return self._run("get_status", _read)

    def put_status(self, record: ProcessingRecord) -> bool:
        def _write() -> bool:
            with db_transaction(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO processing_status (period, status, last_updated)
                    VALUES (:period, :status, :last_updated)
                    ON CONFLICT (period) DO UPDATE SET
                        status = excluded.status,
                        last_updated = excluded.last_updated
                    WHERE processing_status.status != 'COMPLETE'
                    """,
                    record.to_db_dict(),
                )
                return cursor.rowcount > 0

        return self._run("put_status", _write)


class InMemoryStateStore:
    """
    Lock-guarded dict implementation of StateStore.

    Used by tests and by callers that inject it into build_controller. The
    CLI and API build a SQLiteStateStore, so their dry runs still write
    arrivals to the real database.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._arrivals: dict[tuple[str, str], ArrivalRecord] = {}
        self._statuses: dict[str, ProcessingRecord] = {}

    def get_arrival(self, period: str, category: str) -> ArrivalRecord | None:
        with self._lock:
            return self._arrivals.get((period, category))

    def list_arrivals(self, period: str) -> list[ArrivalRecord]:
        with self._lock:
            return sorted(
                (r for (p, _), r in self._arrivals.items() if p == period),
                key=lambda r: r.category,
            )

    def put_arrival(self, record: ArrivalRecord) -> bool:
        key = (record.period, record.category)
        with self._lock:
            existing = self._arrivals.get(key)
            if existing is not None and existing.received:
                return False
            self._arrivals[key] = record
            return True

    def get_status(self, period: str) -> ProcessingRecord | None:
        with self._lock:
            return self._statuses.get(period)

    def put_status(self, record: ProcessingRecord) -> bool:
        with self._lock:
            existing = self._statuses.get(record.period)
            if existing is not None and existing.status == ProcessingStatus.COMPLETE:
                return False
            self._statuses[record.period] = record
            return True
