"""Cache repository - durable result cache keyed by cache key."""

import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import polars as pl
from loguru import logger

from app.errors import StoreRejected
from app.models.common import CacheEntry, Marker
from app.repositories.base import BaseRepository
from app.services.keys import normalize_key

_BATCH_SCHEMA = {
    "CacheKey": pl.Utf8,
    "Result": pl.Utf8,
    "Timestamp": pl.Datetime,
    "Signature": pl.Utf8,
}


def _encode(value: Any) -> str:
    return json.dumps(value, default=str)


def _checked_key(key: str | None) -> str:
    """Normalized key; blank keys are refused."""
    key = normalize_key(key)
    if not key:
        raise StoreRejected("Blank cache key")
    return key


class CacheRepository(BaseRepository):
    """Repository for cube cache operations."""

    def lookup(self, key: str) -> Any:
        """Stored value, Marker.NULL for a stored null, Marker.REFRESH when absent."""
        row = self.fetchone("SELECT Result FROM cube_cache WHERE CacheKey = ?", [normalize_key(key)])
        if row is None:
            return Marker.REFRESH

        value = json.loads(row[0]) if row[0] is not None else None
        if value is None:
            return Marker.NULL
        logger.debug("Cache hit: {}", key)
        return value

    def upsert(self, key: str, value: Any, signature: str = "") -> None:
        """Insert or replace one entry."""
        try:
            key = _checked_key(key)
        except StoreRejected:
            logger.debug("Blank cache key dropped (signature={})", signature)
            return

        self.execute(
            """
            INSERT OR REPLACE INTO cube_cache (CacheKey, Result, Timestamp, Signature)
            VALUES (?, ?, ?, ?)
            """,
            [key, _encode(value), datetime.now(), signature],
        )
        logger.debug("Cache saved: {}", key)

    def upsert_batch(self, entries: Iterable[tuple[str, Any, str]]) -> int:
        """Insert or replace many (key, value, signature) entries; last one wins per key."""
        rows: dict[str, tuple[str, str]] = {}
        dropped = 0
        for key, value, signature in entries:
            try:
                key = _checked_key(key)
            except StoreRejected:
                dropped += 1
                continue
            rows[key] = (_encode(value), signature or "")

        if dropped:
            logger.debug("Dropped {} blank cache keys", dropped)
        if not rows:
            return 0

        now = datetime.now()
        batch_df = pl.DataFrame(
            {
                "CacheKey": list(rows),
                "Result": [r[0] for r in rows.values()],
                "Timestamp": [now] * len(rows),
                "Signature": [r[1] for r in rows.values()],
            },
            schema=_BATCH_SCHEMA,
        )

        self.execute("BEGIN TRANSACTION")
        try:
            if self._is_empty():
                # Placeholder rows from an empty table export have blank keys
                self.execute("DELETE FROM cube_cache WHERE CacheKey IS NULL OR trim(CacheKey) = ''")
                statement = "INSERT INTO cube_cache SELECT * FROM batch_df"
            else:
                statement = "INSERT OR REPLACE INTO cube_cache SELECT * FROM batch_df"
            self._db.register("batch_df", batch_df)
            self.execute(statement)
            self._db.unregister("batch_df")
            self.execute("COMMIT")
        except Exception:
            self.execute("ROLLBACK")
            raise

        logger.debug("Cache batch saved: {} entries", len(rows))
        return len(rows)

    def _is_empty(self) -> bool:
        row = self.fetchone("SELECT COUNT(*) FROM cube_cache WHERE CacheKey IS NOT NULL AND trim(CacheKey) <> ''")
        return row[0] == 0

    def clear(self) -> None:
        """Delete all entries."""
        self.execute("DELETE FROM cube_cache")
        logger.info("All cache cleared")

    def entry(self, key: str) -> CacheEntry | None:
        """Full stored row for a key."""
        row = self.fetchone(
            "SELECT CacheKey, Result, Timestamp, Signature FROM cube_cache WHERE CacheKey = ?",
            [normalize_key(key)],
        )
        if row is None:
            return None
        value = json.loads(row[1]) if row[1] is not None else None
        return CacheEntry(key=row[0], value=value, last_updated=row[2], signature=row[3] or "")

    def count(self) -> int:
        """Number of stored entries."""
        return self.fetchone("SELECT COUNT(*) FROM cube_cache")[0]
