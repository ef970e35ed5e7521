"""
Source output caches.

Collaborators get a cache injected; the synthesis core never sees one.
Entries are keyed by subject + source kind and carry their own expiry.
PersistentSourceCache uses SQLite so entries survive restarts.
"""

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from config import get_config
from config.schema import CacheConfig
from domain import SourceKind

logger = logging.getLogger(__name__)

# Default cache location
CACHE_DIR = Path.home() / ".cache" / "sigsynth"
CACHE_DB = CACHE_DIR / "source_cache.db"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def make_key(subject: str, kind: SourceKind) -> str:
    """Cache key for one subject and source kind."""
    return f"{subject.strip().upper()}:{SourceKind(kind).value}"


class MemorySourceCache:
    """In-process cache. One instance per pipeline, never module-global."""

    def __init__(self):
        self._entries: dict[str, tuple[dict[str, Any], datetime]] = {}

    def get(self, subject: str, kind: SourceKind) -> dict[str, Any] | None:
        key = make_key(subject, kind)
        entry = self._entries.get(key)
        if entry is None:
            return None

        data, expires_at = entry
        if expires_at > _now():
            logger.debug(f"Memory cache hit: {key}")
            return data

        # Clean up expired entry
        del self._entries[key]
        return None

    def set(self, subject: str, kind: SourceKind, data: dict[str, Any], ttl: timedelta) -> None:
        self.cleanup()
        key = make_key(subject, kind)
        self._entries[key] = (data, _now() + ttl)
        logger.debug(f"Cached in memory: {key} (TTL={ttl})")

    def invalidate(self, subject: str | None = None) -> int:
        if subject is None:
            deleted = len(self._entries)
            self._entries.clear()
        else:
            prefix = f"{subject.strip().upper()}:"
            keys = [k for k in self._entries if k.startswith(prefix)]
            for key in keys:
                del self._entries[key]
            deleted = len(keys)
        logger.info(f"Invalidated {deleted} memory cache entries" + (f" for {subject}" if subject else ""))
        return deleted

    def cleanup(self) -> int:
        """Remove expired entries. Returns the number deleted."""
        now = _now()
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired memory cache entries")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class PersistentSourceCache:
    """
    SQLite-backed source cache.

    Features:
    - Survives process restarts
    - Automatic expiration
    - Grouped by subject for easy invalidation
    - Automatic fallback to an in-memory cache on SQLite errors
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or CACHE_DB
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._fallback = MemorySourceCache()
        self._sqlite_available = True
        self._init_db()

    @property
    def is_persistent(self) -> bool:
        return self._sqlite_available

    def _init_db(self) -> None:
        """Initialize database schema."""
        try:
            with sqlite3.connect(self.db_path, timeout=10.0) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS source_cache (
                        key TEXT PRIMARY KEY,
                        subject TEXT NOT NULL,
                        kind TEXT NOT NULL,
                        data TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        expires_at TEXT NOT NULL
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_subject ON source_cache(subject)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_expires ON source_cache(expires_at)")
                conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"SQLite initialization failed: {e}. Falling back to in-memory cache.")
            self._sqlite_available = False

    def get(self, subject: str, kind: SourceKind) -> dict[str, Any] | None:
        """
        Get cached output if not expired.

        Returns:
            Cached output dict or None if not found/expired
        """
        if not self._sqlite_available:
            return self._fallback.get(subject, kind)

        key = make_key(subject, kind)
        try:
            with sqlite3.connect(self.db_path, timeout=5.0) as conn:
                row = conn.execute(
                    "SELECT data FROM source_cache WHERE key = ? AND expires_at > ?",
                    (key, _now().isoformat()),
                ).fetchone()
        except sqlite3.Error as e:
            # Read errors may be transient, keep SQLite enabled
            logger.warning(f"Cache read failed for {key}: {e}. Returning None.")
            return None

        if row:
            logger.debug(f"Cache hit: {key}")
            return json.loads(row[0])
        return None

    def set(self, subject: str, kind: SourceKind, data: dict[str, Any], ttl: timedelta) -> None:
        """Store an output dict (must be JSON-serializable) for ttl."""
        if not self._sqlite_available:
            self._fallback.set(subject, kind, data, ttl)
            return

        key = make_key(subject, kind)
        now = _now()
        try:
            with sqlite3.connect(self.db_path, timeout=5.0) as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO source_cache (key, subject, kind, data, created_at, expires_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        key,
                        subject.strip().upper(),
                        SourceKind(kind).value,
                        json.dumps(data),
                        now.isoformat(),
                        (now + ttl).isoformat(),
                    ),
                )
                conn.commit()
            logger.debug(f"Cached: {key} (TTL={ttl})")
        except sqlite3.Error as e:
            logger.warning(f"Cache write failed for {key}: {e}. Skipping cache write.")

    def invalidate(self, subject: str | None = None) -> int:
        """
        Invalidate cache entries.

        Args:
            subject: If provided, only invalidate this subject's entries.

        Returns:
            Number of entries deleted
        """
        if not self._sqlite_available:
            return self._fallback.invalidate(subject)

        deleted = 0
        try:
            with sqlite3.connect(self.db_path, timeout=5.0) as conn:
                if subject:
                    result = conn.execute(
                        "DELETE FROM source_cache WHERE subject = ?", (subject.strip().upper(),)
                    )
                else:
                    result = conn.execute("DELETE FROM source_cache")
                deleted = result.rowcount
                conn.commit()
            logger.info(f"Invalidated {deleted} cache entries" + (f" for {subject}" if subject else ""))
        except sqlite3.Error as e:
            logger.error(f"Cache invalidation failed: {e}")

        return deleted

    def cleanup(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries deleted
        """
        if not self._sqlite_available:
            return 0

        deleted = 0
        try:
            with sqlite3.connect(self.db_path, timeout=5.0) as conn:
                result = conn.execute(
                    "DELETE FROM source_cache WHERE expires_at < ?", (_now().isoformat(),)
                )
                deleted = result.rowcount
                conn.commit()
            if deleted:
                logger.info(f"Cleaned up {deleted} expired cache entries")
        except sqlite3.Error as e:
            logger.error(f"Cache cleanup failed: {e}")

        return deleted

    def stats(self) -> dict:
        """Get cache statistics."""
        if not self._sqlite_available:
            return {
                "cache_type": "memory",
                "total_entries": len(self._fallback),
                "by_kind": {},
            }

        now = _now().isoformat()
        try:
            with sqlite3.connect(self.db_path, timeout=5.0) as conn:
                total = conn.execute("SELECT COUNT(*) FROM source_cache").fetchone()[0]
                valid = conn.execute(
                    "SELECT COUNT(*) FROM source_cache WHERE expires_at > ?", (now,)
                ).fetchone()[0]
                by_kind = {
                    row[0]: row[1]
                    for row in conn.execute(
                        "SELECT kind, COUNT(*) FROM source_cache WHERE expires_at > ? GROUP BY kind",
                        (now,),
                    )
                }
            return {
                "cache_type": "sqlite",
                "total_entries": total,
                "valid_entries": valid,
                "expired_entries": total - valid,
                "by_kind": by_kind,
            }
        except sqlite3.Error as e:
            logger.error(f"Failed to get cache stats: {e}")
            return {"cache_type": "sqlite", "error": str(e), "total_entries": 0, "by_kind": {}}


def create_cache(settings: CacheConfig | None = None) -> MemorySourceCache | PersistentSourceCache | None:
    """
    Build the cache described by config.

    Returns None when caching is disabled. A new instance per call;
    share it by passing it to every source of a pipeline.
    """
    settings = settings or get_config().cache
    if not settings.enabled:
        return None
    if settings.backend == "sqlite":
        return PersistentSourceCache(settings.path)
    return MemorySourceCache()
