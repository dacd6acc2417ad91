"""
Database schema initialization for mailcycle.

Two tables, both partitioned by period:
- arrivals: one row per (period, category), written on first sighting
- processing_status: one row per period, written when the notification is sent
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from mailcycle.observability.logging import get_logger

logger = get_logger(__name__)

EXPECTED_TABLES = ("arrivals", "processing_status")

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS arrivals (
        period TEXT NOT NULL,
        category TEXT NOT NULL,
        received INTEGER NOT NULL DEFAULT 0,
        message_id TEXT,
        observed_at TEXT,
        PRIMARY KEY (period, category)
    );

    CREATE TABLE IF NOT EXISTS processing_status (
        period TEXT PRIMARY KEY,
        status TEXT NOT NULL DEFAULT 'PENDING'
            CHECK (status IN ('PENDING', 'COMPLETE')),
        last_updated TEXT
    );
"""


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Side Effects:
    - Creates parent directory if needed
    - Creates tables if they don't exist
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema ready at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected tables

    Raises:
        ValueError: If tables are missing
    """
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    present = {row[0] for row in rows}
    missing = [table for table in EXPECTED_TABLES if table not in present]
    if missing:
        raise ValueError(f"Missing tables: {', '.join(missing)}")
    return True
