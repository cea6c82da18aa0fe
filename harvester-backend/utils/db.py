"""
Database utilities for SQLite operations.

Provides the record store used by the harvester and the admin API:
- news_data: one row per harvested news identifier
- scheduler_checkpoint: single-row copy of the scheduler cursor

Payloads are stored as JSON text (orjson); NULL means the payload is absent.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import orjson

from utils.config import settings
from utils.schemas import Checkpoint, NewsRecord

logger = logging.getLogger(__name__)

PAYLOAD_FIELDS = ("version_data", "full_data")


def _encode(payload: Any) -> Optional[str]:
    if payload is None:
        return None
    return orjson.dumps(payload).decode("utf-8")


def _decode(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    return orjson.loads(raw)


def _row_to_record(row: sqlite3.Row) -> NewsRecord:
    return NewsRecord(
        id=row["id"],
        version_data=_decode(row["version_data"]),
        full_data=_decode(row["full_data"]),
        fail_count=row["fail_count"],
        fetched_at=datetime.fromisoformat(row["fetched_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class RecordStore:
    """SQLite-backed store of news records, keyed by identifier."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        """
        Args:
            db_path: Path to the SQLite file, defaults to settings.SQLITE_PATH
        """
        self.db_path = db_path or settings.SQLITE_PATH

    @contextmanager
    def get_conn(self) -> Iterator[sqlite3.Connection]:
        """
        Open a SQLite connection with dict-friendly row factory.

        Commits on success, rolls back on error and always closes.

        Raises:
            sqlite3.Error: If connection fails
        """
        # Ensure database directory exists
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """
        Initialize database schema by creating required tables if they don't exist.

        Raises:
            sqlite3.Error: If schema creation fails
        """
        with self.get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS news_data (
                    id INTEGER PRIMARY KEY,
                    version_data TEXT,
                    full_data TEXT,
                    fail_count INTEGER NOT NULL DEFAULT 0,
                    fetched_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS scheduler_checkpoint (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    current_index INTEGER NOT NULL,
                    total_ids INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

        logger.info("DB schema ready", extra={"db_path": self.db_path})

    def find_by_id(self, news_id: int) -> Optional[NewsRecord]:
        with self.get_conn() as conn:
            row = conn.execute("SELECT * FROM news_data WHERE id = ?", (news_id,)).fetchone()
        return _row_to_record(row) if row else None

    def upsert(
        self,
        news_id: int,
        version_data: Any,
        full_data: Any,
        now: Optional[datetime] = None,
    ) -> NewsRecord:
        """
        Insert or replace the payloads of a record.

        Both payloads are written as given: an absent payload clears whatever was
        stored before. fetched_at is only set when the row is created. fail_count
        goes back to 0 when the write completes the record, otherwise it grows by one.

        Args:
            news_id: Record identifier
            version_data: Version payload or None
            full_data: Full payload or None
            now: Write timestamp, defaults to the current UTC time

        Returns:
            The record as stored after the write
        """
        ts = (now or datetime.now(timezone.utc)).isoformat()
        complete = version_data is not None and full_data is not None

        with self.get_conn() as conn:
            conn.execute(
                """
                INSERT INTO news_data (id, version_data, full_data, fail_count, fetched_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    version_data = excluded.version_data,
                    full_data = excluded.full_data,
                    fail_count = CASE WHEN excluded.fail_count = 0 THEN 0
                                      ELSE news_data.fail_count + 1 END,
                    updated_at = excluded.updated_at
                """,
                (news_id, _encode(version_data), _encode(full_data), 0 if complete else 1, ts, ts),
            )
            row = conn.execute("SELECT * FROM news_data WHERE id = ?", (news_id,)).fetchone()

        return _row_to_record(row)

    def delete_by_id(self, news_id: int) -> bool:
        with self.get_conn() as conn:
            deleted = conn.execute("DELETE FROM news_data WHERE id = ?", (news_id,)).rowcount
        return deleted > 0

    def count_all(self) -> int:
        with self.get_conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM news_data").fetchone()[0]

    def count_where(self, field: str) -> int:
        """Count records whose payload `field` is present."""
        if field not in PAYLOAD_FIELDS:
            raise ValueError(f"Unknown payload field: {field}")

        with self.get_conn() as conn:
            return conn.execute(
                f"SELECT COUNT(*) FROM news_data WHERE {field} IS NOT NULL"
            ).fetchone()[0]

    def list_all(self, page: int = 1, limit: int = 50) -> list[NewsRecord]:
        """Return one page of records, highest identifier first. Pages start at 1."""
        offset = (max(page, 1) - 1) * limit

        with self.get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM news_data ORDER BY id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()

        return [_row_to_record(row) for row in rows]

    def load_checkpoint(self) -> Optional[Checkpoint]:
        with self.get_conn() as conn:
            row = conn.execute(
                "SELECT current_index, total_ids, updated_at FROM scheduler_checkpoint WHERE id = 1"
            ).fetchone()

        if row is None:
            return None

        return Checkpoint(
            current_index=row["current_index"],
            total_ids=row["total_ids"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def save_checkpoint(self, current_index: int, total_ids: int) -> None:
        ts = datetime.now(timezone.utc).isoformat()

        with self.get_conn() as conn:
            conn.execute(
                """
                INSERT INTO scheduler_checkpoint (id, current_index, total_ids, updated_at)
                VALUES (1, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    current_index = excluded.current_index,
                    total_ids = excluded.total_ids,
                    updated_at = excluded.updated_at
                """,
                (current_index, total_ids, ts),
            )
