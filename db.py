"""SQLite log of aggregated scale readings."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from config import DATABASE_PATH, LOG_RETENTION


@contextmanager
def get_connection() -> Iterator[sqlite3.Connection]:
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")  # Non-blocking reads
    try:
        yield conn
    finally:
        conn.close()


def init_db() -> None:
    """Initialize database with schema."""
    with get_connection() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS measurement_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                weight_kg REAL,
                impedance_ohm REAL,
                impedance_source TEXT,
                age INTEGER,
                height_cm REAL,
                sex TEXT,
                units TEXT,
                body_type TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_measurement_log_timestamp
            ON measurement_log(timestamp);
        """)
        conn.commit()


def save_log_record(record: dict) -> int:
    """Save a log record, drop all but the newest LOG_RETENTION rows, return the row ID."""
    profile = record.get("profile", {})
    with get_connection() as conn:
        cursor = conn.execute(
            """
            INSERT INTO measurement_log (
                timestamp, weight_kg, impedance_ohm, impedance_source,
                age, height_cm, sex, units, body_type
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.get("timestamp") or datetime.now().isoformat(),
                record.get("weight_kg"),
                record.get("impedance_ohm"),
                record.get("impedance_source"),
                profile.get("age"),
                profile.get("height_cm"),
                profile.get("sex"),
                profile.get("units"),
                profile.get("body_type"),
            ),
        )
        conn.execute(
            """
            DELETE FROM measurement_log WHERE id NOT IN (
                SELECT id FROM measurement_log ORDER BY id DESC LIMIT ?
            )
            """,
            (LOG_RETENTION,),
        )
        conn.commit()
        return cursor.lastrowid or 0


def _to_record(row: sqlite3.Row) -> dict:
    data = dict(row)
    data["profile"] = {
        key: data.pop(key) for key in ("age", "height_cm", "sex", "units", "body_type")
    }
    return data


def get_log_records(limit: int = 10) -> list[dict]:
    """Get recent log records, newest first."""
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT * FROM measurement_log ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [_to_record(row) for row in rows]


def get_latest_log_record() -> dict | None:
    """Get the most recent log record."""
    records = get_log_records(limit=1)
    return records[0] if records else None


def count_log_records() -> int:
    with get_connection() as conn:
        return conn.execute("SELECT COUNT(*) FROM measurement_log").fetchone()[0]
