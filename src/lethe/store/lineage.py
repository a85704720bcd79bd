"""
SQLite-backed lineage log of clone operations.

Every clone appends one row linking the new log to the log it was made from,
together with the options used and the compression statistics. Rows are
never updated; ``ancestry()`` walks target → source links back to the first
log that was not itself a clone.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from ulid import ULID

from lethe.errors import LetheError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS lineage (
    id              TEXT PRIMARY KEY,
    created_at      INTEGER NOT NULL,
    source_log_id   TEXT NOT NULL,
    source_path     TEXT NOT NULL,
    target_log_id   TEXT NOT NULL UNIQUE,
    target_path     TEXT NOT NULL,
    options         TEXT NOT NULL DEFAULT '{}',
    stats           TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_lineage_source ON lineage(source_log_id);
"""


class LineageStoreError(LetheError):
    """Raised when the lineage store is used before ``initialize()``."""


@dataclass(frozen=True)
class LineageEntry:
    """One clone operation: ``source_log_id`` was cloned into ``target_log_id``."""

    id: str
    created_at: int
    """Unix time in milliseconds."""
    source_log_id: str
    source_path: str
    target_log_id: str
    target_path: str
    options: dict[str, Any]
    stats: dict[str, Any]


class LineageStore:
    """
    Append-only lineage log.

    Usage::

        lineage = LineageStore("~/.lethe/lineage.db")
        await lineage.initialize()
        try:
            await lineage.record(source_log_id=..., source_path=..., target_log_id=..., target_path=...)
            chain = await lineage.ancestry(target_id)
        finally:
            await lineage.close()
    """

    def __init__(self, db_path: str | Path, connection_timeout: float = 30.0) -> None:
        self._db_path = str(Path(db_path).expanduser())
        self._connection_timeout = connection_timeout
        self._conn: aiosqlite.Connection | None = None
        self._logger = structlog.get_logger("lethe.store.lineage")

    async def initialize(self) -> None:
        """
        Open the database and apply the schema idempotently.

        Raises:
            aiosqlite.Error: If the database cannot be opened or the schema fails.
        """
        if self._conn is not None:
            return
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self._db_path, timeout=self._connection_timeout)
        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.executescript(_SCHEMA)
            await conn.commit()
        except Exception:
            await conn.close()
            raise
        self._conn = conn
        self._logger.info("lineage_store_initialized", db_path=self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _conn_or_raise(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise LineageStoreError("Lineage store is not initialized. Call initialize() first.")
        return self._conn

    # ── Writes ─────────────────────────────────────────────────────────────────

    async def record(
        self,
        *,
        source_log_id: str,
        source_path: str,
        target_log_id: str,
        target_path: str,
        options: dict[str, Any] | None = None,
        stats: dict[str, Any] | None = None,
    ) -> LineageEntry:
        """Append a lineage row and return it."""
        conn = self._conn_or_raise()
        entry = LineageEntry(
            id=f"lin_{ULID()}",
            created_at=int(time.time() * 1000),
            source_log_id=source_log_id,
            source_path=source_path,
            target_log_id=target_log_id,
            target_path=target_path,
            options=options or {},
            stats=stats or {},
        )
        await conn.execute(
            """
            INSERT INTO lineage
                (id, created_at, source_log_id, source_path,
                 target_log_id, target_path, options, stats)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.created_at,
                entry.source_log_id,
                entry.source_path,
                entry.target_log_id,
                entry.target_path,
                json.dumps(entry.options),
                json.dumps(entry.stats),
            ),
        )
        await conn.commit()
        self._logger.info(
            "lineage_recorded", source_log_id=source_log_id, target_log_id=target_log_id
        )
        return entry

    # ── Reads ──────────────────────────────────────────────────────────────────

    async def get(self, target_log_id: str) -> LineageEntry | None:
        """The row that produced ``target_log_id``, or None if it is not a clone."""
        conn = self._conn_or_raise()
        async with conn.execute(
            "SELECT * FROM lineage WHERE target_log_id = ?", (target_log_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_entry(row) if row is not None else None

    async def children(self, source_log_id: str) -> list[LineageEntry]:
        """Every clone made directly from ``source_log_id``, oldest first."""
        conn = self._conn_or_raise()
        async with conn.execute(
            "SELECT * FROM lineage WHERE source_log_id = ? ORDER BY created_at, id",
            (source_log_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_entry(row) for row in rows]

    async def ancestry(self, log_id: str) -> list[LineageEntry]:
        """
        Walk from ``log_id`` back to its root.

        Returns the rows newest first: ``[0]`` produced ``log_id``, ``[1]``
        produced ``[0].source_log_id`` and so on. Empty when ``log_id`` is
        not a clone.
        """
        chain: list[LineageEntry] = []
        seen: set[str] = set()
        current = log_id
        while current not in seen:
            seen.add(current)
            entry = await self.get(current)
            if entry is None:
                break
            chain.append(entry)
            current = entry.source_log_id
        return chain


def _row_to_entry(row: aiosqlite.Row) -> LineageEntry:
    return LineageEntry(
        id=row["id"],
        created_at=row["created_at"],
        source_log_id=row["source_log_id"],
        source_path=row["source_path"],
        target_log_id=row["target_log_id"],
        target_path=row["target_path"],
        options=json.loads(row["options"]),
        stats=json.loads(row["stats"]),
    )
