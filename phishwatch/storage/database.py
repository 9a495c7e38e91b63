"""SQLite database operations for PhishWatch."""

import asyncio
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone

import aiosqlite

logger = logging.getLogger(__name__)


class RecordType(str, Enum):
    """Kind of entry in the append-only check log."""

    CHECK = "check"  # One domain check (API or monitor)
    ALERT = "alert"  # Inactive -> active edge with a high-severity level
    INFO = "info"  # Watchlist bookkeeping (e.g. removal)


class Database:
    """Async SQLite database for check records and the watchlist."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self):
        """Establish database connection and create tables."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        # Best-effort because some SQLite builds/settings may reject these pragmas.
        try:
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._connection.execute("PRAGMA busy_timeout=5000")
            await self._connection.commit()
        except aiosqlite.Error as e:
            logger.debug("SQLite pragmas rejected: %s", e)
        await self._create_tables()

    async def close(self):
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _create_tables(self):
        """Create database tables if they don't exist."""
        async with self._lock:
            await self._connection.executescript(
                """
                    CREATE TABLE IF NOT EXISTS check_records (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        timestamp TEXT NOT NULL,
                        domain TEXT NOT NULL,
                        record_type TEXT NOT NULL DEFAULT 'check',
                        alert_type TEXT,
                        status TEXT,
                        is_active INTEGER DEFAULT 0,
                        composite_score INTEGER DEFAULT 0,
                        visual_score INTEGER DEFAULT 0,
                        text_score INTEGER DEFAULT 0,
                        dom_score INTEGER DEFAULT 0,
                        keyword_score INTEGER DEFAULT 0,
                        form_score INTEGER DEFAULT 0,
                        threat_level TEXT,
                        is_filtered INTEGER DEFAULT 0,
                        screenshot_ref TEXT,
                        metadata TEXT
                    );

                    CREATE TABLE IF NOT EXISTS watchlist (
                        domain TEXT PRIMARY KEY,
                        source TEXT DEFAULT 'manual',
                        added_at TEXT NOT NULL,
                        is_active INTEGER DEFAULT 0,
                        checked INTEGER DEFAULT 0,
                        threat_level TEXT,
                        similarity INTEGER,
                        last_checked TEXT,
                        screenshot_ref TEXT,
                        scores TEXT,
                        position INTEGER DEFAULT 0
                    );

                    CREATE INDEX IF NOT EXISTS idx_records_domain ON check_records(domain);
                    CREATE INDEX IF NOT EXISTS idx_records_timestamp ON check_records(timestamp);
                """
            )
            await self._connection.commit()

    async def add_record(
        self,
        *,
        domain: str,
        record_type: RecordType | str = RecordType.CHECK,
        alert_type: str = "",
        status: str = "",
        is_active: bool = False,
        composite_score: int = 0,
        scores: Optional[dict] = None,
        threat_level: Optional[str] = None,
        is_filtered: bool = False,
        screenshot_ref: Optional[str] = None,
        metadata: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
    ) -> int:
        """Append one record. Records are never updated or deleted."""
        scores = scores or {}
        ts = (timestamp or datetime.now(timezone.utc)).isoformat()
        kind = record_type.value if isinstance(record_type, RecordType) else str(record_type)
        async with self._lock:
            cursor = await self._connection.execute(
                """
                INSERT INTO check_records (
                    timestamp, domain, record_type, alert_type, status, is_active,
                    composite_score, visual_score, text_score, dom_score, keyword_score,
                    form_score, threat_level, is_filtered, screenshot_ref, metadata
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    ts,
                    domain.lower(),
                    kind,
                    alert_type,
                    status,
                    1 if is_active else 0,
                    int(composite_score or 0),
                    int(scores.get("visual") or 0),
                    int(scores.get("text") or 0),
                    int(scores.get("dom") or 0),
                    int(scores.get("keywords") or 0),
                    int(scores.get("forms") or 0),
                    threat_level,
                    1 if is_filtered else 0,
                    screenshot_ref,
                    json.dumps(metadata or {}),
                ),
            )
            await self._connection.commit()
            return cursor.lastrowid

    @staticmethod
    def _record_from_row(row: aiosqlite.Row) -> dict:
        record = dict(row)
        record["is_active"] = bool(record.get("is_active"))
        record["is_filtered"] = bool(record.get("is_filtered"))
        record["scores"] = {
            "visual": record.pop("visual_score", 0),
            "text": record.pop("text_score", 0),
            "dom": record.pop("dom_score", 0),
            "keywords": record.pop("keyword_score", 0),
            "forms": record.pop("form_score", 0),
        }
        raw_meta = record.get("metadata")
        try:
            record["metadata"] = json.loads(raw_meta) if raw_meta else {}
        except (TypeError, ValueError):
            record["metadata"] = {}
        return record

    async def get_history(
        self,
        domain: Optional[str] = None,
        limit: int = 100,
        record_type: Optional[str] = None,
    ) -> list[dict]:
        """Return records newest first."""
        clauses = []
        params: list = []
        if domain:
            clauses.append("domain = ?")
            params.append(domain.lower())
        if record_type:
            clauses.append("record_type = ?")
            params.append(record_type)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(max(1, int(limit)))
        async with self._connection.execute(
            f"SELECT * FROM check_records {where} ORDER BY id DESC LIMIT ?",
            params,
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._record_from_row(row) for row in rows]

    async def count_records(self) -> dict[str, int]:
        """Record counts keyed by record type."""
        async with self._connection.execute(
            "SELECT record_type, COUNT(*) AS count FROM check_records GROUP BY record_type"
        ) as cursor:
            rows = await cursor.fetchall()
        return {row["record_type"]: row["count"] for row in rows}

    async def upsert_watchlist_entry(self, entry: dict, position: int = 0) -> None:
        """Insert or replace the persisted state of one watchlist entry."""
        async with self._lock:
            await self._connection.execute(
                """
                INSERT INTO watchlist (
                    domain, source, added_at, is_active, checked, threat_level,
                    similarity, last_checked, screenshot_ref, scores, position
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(domain) DO UPDATE SET
                    source = excluded.source,
                    is_active = excluded.is_active,
                    checked = excluded.checked,
                    threat_level = excluded.threat_level,
                    similarity = excluded.similarity,
                    last_checked = excluded.last_checked,
                    screenshot_ref = excluded.screenshot_ref,
                    scores = excluded.scores,
                    position = excluded.position
                """,
                (
                    entry["domain"],
                    entry.get("source") or "manual",
                    entry.get("added_at") or datetime.now(timezone.utc).isoformat(),
                    1 if entry.get("is_active") else 0,
                    1 if entry.get("checked") else 0,
                    entry.get("threat_level"),
                    entry.get("similarity"),
                    entry.get("last_checked"),
                    entry.get("screenshot_ref"),
                    json.dumps(entry["scores"]) if entry.get("scores") else None,
                    position,
                ),
            )
            await self._connection.commit()

    async def set_watchlist_positions(self, domains: list[str]) -> None:
        """Renumber persisted entries to match the given order."""
        async with self._lock:
            await self._connection.executemany(
                "UPDATE watchlist SET position = ? WHERE domain = ?",
                [(index, domain.lower()) for index, domain in enumerate(domains)],
            )
            await self._connection.commit()

    async def delete_watchlist_entry(self, domain: str) -> bool:
        async with self._lock:
            cursor = await self._connection.execute(
                "DELETE FROM watchlist WHERE domain = ?",
                (domain.lower(),),
            )
            await self._connection.commit()
            return cursor.rowcount > 0

    async def get_watchlist(self) -> list[dict]:
        """Persisted watchlist in insertion order."""
        async with self._connection.execute(
            "SELECT * FROM watchlist ORDER BY position ASC, added_at ASC"
        ) as cursor:
            rows = await cursor.fetchall()
        entries = []
        for row in rows:
            entry = dict(row)
            entry["is_active"] = bool(entry.get("is_active"))
            entry["checked"] = bool(entry.get("checked"))
            try:
                entry["scores"] = json.loads(entry["scores"]) if entry.get("scores") else None
            except (TypeError, ValueError):
                entry["scores"] = None
            entry.pop("position", None)
            entries.append(entry)
        return entries
