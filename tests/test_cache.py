"""
Tests for the source output caches and BaseSource caching.
"""

import asyncio
import time
from datetime import timedelta

import pytest

from adapters import (
    CallableSource,
    MemorySourceCache,
    PersistentSourceCache,
    create_cache,
)
from adapters.cache import make_key
from config.schema import CacheConfig
from domain import SourceKind


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sqlite_cache(tmp_path):
    """SQLite cache in a temporary directory."""
    return PersistentSourceCache(tmp_path / "cache" / "sources.db")


@pytest.fixture
def entry():
    return {"source_id": "technical-1", "confidence": 80}


class TestMakeKey:
    def test_normalized(self):
        assert make_key(" btc ", SourceKind.TECHNICAL) == "BTC:technical"

    def test_accepts_kind_value(self):
        assert make_key("BTC", "flow") == "BTC:flow"


class TestMemoryCache:
    def test_roundtrip(self, entry):
        cache = MemorySourceCache()
        cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(minutes=1))

        assert cache.get("btc", SourceKind.TECHNICAL) == entry
        assert cache.get("BTC", SourceKind.FLOW) is None

    def test_expiry(self, entry):
        cache = MemorySourceCache()
        cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(milliseconds=10))
        time.sleep(0.05)

        assert cache.get("BTC", SourceKind.TECHNICAL) is None
        assert len(cache) == 0

    def test_invalidate_subject(self, entry):
        cache = MemorySourceCache()
        cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(minutes=1))
        cache.set("BTC", SourceKind.FLOW, entry, timedelta(minutes=1))
        cache.set("ETH", SourceKind.FLOW, entry, timedelta(minutes=1))

        assert cache.invalidate("btc") == 2
        assert len(cache) == 1
        assert cache.invalidate() == 1

    def test_cleanup(self, entry):
        cache = MemorySourceCache()
        cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(seconds=-1))
        cache.set("ETH", SourceKind.TECHNICAL, entry, timedelta(seconds=-1))

        assert cache.cleanup() == 1
        assert len(cache) == 1
        assert cache.cleanup() == 1
        assert len(cache) == 0

    def test_set_purges_other_expired_subjects(self, entry):
        cache = MemorySourceCache()
        for subject in ("BTC", "ETH", "SOL"):
            cache.set(subject, SourceKind.FLOW, entry, timedelta(seconds=-1))
        cache.set("ADA", SourceKind.FLOW, entry, timedelta(minutes=1))

        assert len(cache) == 1
        assert cache.get("ADA", SourceKind.FLOW) == entry


class TestPersistentCache:
    def test_roundtrip(self, sqlite_cache, entry):
        sqlite_cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(minutes=1))

        assert sqlite_cache.is_persistent
        assert sqlite_cache.get("BTC", SourceKind.TECHNICAL) == entry

    def test_survives_new_instance(self, tmp_path, entry):
        path = tmp_path / "sources.db"
        PersistentSourceCache(path).set("BTC", SourceKind.ML, entry, timedelta(minutes=1))

        assert PersistentSourceCache(path).get("BTC", SourceKind.ML) == entry

    def test_expired_not_returned(self, sqlite_cache, entry):
        sqlite_cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(seconds=-1))

        assert sqlite_cache.get("BTC", SourceKind.TECHNICAL) is None
        assert sqlite_cache.cleanup() == 1

    def test_invalidate(self, sqlite_cache, entry):
        sqlite_cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(minutes=1))
        sqlite_cache.set("ETH", SourceKind.TECHNICAL, entry, timedelta(minutes=1))

        assert sqlite_cache.invalidate("BTC") == 1
        assert sqlite_cache.get("ETH", SourceKind.TECHNICAL) == entry

    def test_stats(self, sqlite_cache, entry):
        sqlite_cache.set("BTC", SourceKind.TECHNICAL, entry, timedelta(minutes=1))
        sqlite_cache.set("BTC", SourceKind.FLOW, entry, timedelta(seconds=-1))
        stats = sqlite_cache.stats()

        assert stats["cache_type"] == "sqlite"
        assert stats["total_entries"] == 2
        assert stats["valid_entries"] == 1
        assert stats["by_kind"] == {"technical": 1}


class TestCreateCache:
    def test_disabled(self):
        assert create_cache(CacheConfig(enabled=False)) is None

    def test_memory(self):
        assert isinstance(create_cache(CacheConfig()), MemorySourceCache)

    def test_sqlite(self, tmp_path):
        cache = create_cache(CacheConfig(backend="sqlite", path=tmp_path / "c.db"))
        assert isinstance(cache, PersistentSourceCache)
        assert cache.db_path == tmp_path / "c.db"


class TestBaseSourceCaching:
    """Cached outputs are reused only within their TTL."""

    def _source(self, cache, calls):
        def produce(subject):
            calls.append(subject)
            return {
                "timestamp": "2025-03-14T15:00:00+00:00",
                "confidence": 70,
                "payload": {"trend": {"direction": "UP"}},
                "provenance": ["yahoo.com"],
            }
        return CallableSource("technical-1", "technical", produce, cache=cache)

    def test_cached_within_ttl(self):
        cache = MemorySourceCache()
        calls = []
        source = self._source(cache, calls)

        first = asyncio.run(source.process("BTC", timedelta(minutes=1)))
        second = asyncio.run(source.process("BTC", timedelta(minutes=1)))

        assert calls == ["BTC"]
        assert first == second

    def test_no_ttl_no_cache(self):
        cache = MemorySourceCache()
        calls = []
        source = self._source(cache, calls)

        asyncio.run(source.process("BTC"))
        asyncio.run(source.process("BTC"))

        assert len(calls) == 2
        assert len(cache) == 0

    def test_unreadable_entry_discarded(self):
        cache = MemorySourceCache()
        cache.set("BTC", SourceKind.TECHNICAL, {"garbage": True}, timedelta(minutes=1))
        calls = []
        source = self._source(cache, calls)

        output = asyncio.run(source.process("BTC", timedelta(minutes=1)))

        assert calls == ["BTC"]
        assert output.confidence == 70

    def test_sqlite_backed(self, sqlite_cache):
        calls = []
        source = self._source(sqlite_cache, calls)

        asyncio.run(source.process("BTC", timedelta(minutes=1)))
        asyncio.run(source.process("btc", timedelta(minutes=1)))

        assert calls == ["BTC"]
