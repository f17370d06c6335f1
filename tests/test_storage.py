"""
Tests for src/storage/ - DuckDB article store, cached row model, tiered cache.
"""
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from src.storage.article_store import ArticleStore
from src.storage.models import CachedArticle
from src.storage.tiered_cache import NAMESPACE, CacheLookup, TieredArticleCache, calculate_age
from utils.platform import now_utc

from conftest import make_article


def _age_rows(store, hours, url=None):
    """Push fetched_at back in time for one row or every row."""
    fetched = (now_utc() - timedelta(hours=hours)).replace(tzinfo=None)
    if url:
        store.conn.execute("UPDATE cached_articles SET fetched_at = ? WHERE url = ?", [fetched, url])
    else:
        store.conn.execute("UPDATE cached_articles SET fetched_at = ?", [fetched])


def _expire_rows(store):
    past = (now_utc() - timedelta(minutes=1)).replace(tzinfo=None)
    store.conn.execute("UPDATE cached_articles SET cache_expiry = ?", [past])


def _fetch_result(articles, provider="alpha"):
    result = MagicMock()
    result.articles = articles
    result.provider = provider
    return result


# ============================================
# ARTICLE STORE
# ============================================

class TestArticleStore:

    def test_insert_then_update(self, store):
        first = store.bulk_upsert([make_article("One"), make_article("Two")], "alpha")
        assert first == {"inserted": 2, "updated": 0, "total": 2}

        second = store.bulk_upsert([make_article("Two"), make_article("Three")], "beta")
        assert second == {"inserted": 1, "updated": 1, "total": 2}
        assert store.stats()["total_articles"] == 3

    def test_empty_upsert(self, store):
        assert store.bulk_upsert([], "alpha") == {"inserted": 0, "updated": 0, "total": 0}

    def test_update_refreshes_fields(self, store):
        store.bulk_upsert([make_article("One", category="general")], "alpha")
        updated = make_article("One", category="business")
        updated.title = "One (updated)"
        store.bulk_upsert([updated], "beta")

        rows = store.get_recent(limit=10)
        assert len(rows) == 1
        assert rows[0].title == "One (updated)"
        assert rows[0].category == "business"
        assert rows[0].provider == "beta"
        assert rows[0].access_count == 2

    def test_get_by_category(self, store):
        store.bulk_upsert([
            make_article("Tech one", category="technology"),
            make_article("Biz one", category="business"),
        ], "alpha")

        rows = store.get_by_category("technology", limit=10, max_age_hours=2)
        assert [r.title for r in rows] == ["Tech one"]

    def test_newest_first(self, store):
        now = now_utc()
        store.bulk_upsert([
            make_article("Old", published_at=now - timedelta(hours=5)),
            make_article("New", published_at=now - timedelta(minutes=5)),
            make_article("Mid", published_at=now - timedelta(hours=1)),
        ], "alpha")

        assert [r.title for r in store.get_recent(limit=10)] == ["New", "Mid", "Old"]

    def test_limit(self, store):
        store.bulk_upsert([make_article(f"Story {i}") for i in range(5)], "alpha")
        assert len(store.get_recent(limit=3)) == 3

    def test_offset_pages_through_rows(self, store):
        now = now_utc()
        store.bulk_upsert([
            make_article(f"Story {i}", category="sports", published_at=now - timedelta(minutes=i))
            for i in range(5)
        ], "alpha")

        assert [r.title for r in store.get_recent(limit=2, offset=2)] == ["Story 2", "Story 3"]
        assert [r.title for r in store.get_by_category("sports", limit=2, offset=4)] == ["Story 4"]
        assert store.get_recent(limit=2, offset=10) == []

    def test_max_age_filters_on_fetch_time(self, store):
        store.bulk_upsert([make_article("Stale"), make_article("Fresh")], "alpha")
        _age_rows(store, hours=3, url="https://example.com/stale")

        assert [r.title for r in store.get_recent(limit=10, max_age_hours=2)] == ["Fresh"]
        assert len(store.get_recent(limit=10, max_age_hours=6)) == 2

    def test_expired_rows_invisible(self, store):
        store.bulk_upsert([make_article("One")], "alpha")
        _expire_rows(store)
        assert store.get_recent(limit=10) == []

    def test_purge_expired(self, store):
        store.bulk_upsert([make_article("One"), make_article("Two")], "alpha")
        _expire_rows(store)
        assert store.purge_expired() == 2
        assert store.stats()["total_articles"] == 0
        assert store.purge_expired() == 0

    def test_record_access(self, store):
        store.bulk_upsert([make_article("One")], "alpha")
        store.record_access(["https://example.com/one"])
        store.record_access([])
        assert store.get_recent(limit=1)[0].access_count == 2

    def test_rows_are_utc_aware(self, store):
        published = now_utc().replace(microsecond=0) - timedelta(hours=2)
        store.bulk_upsert([make_article("One", published_at=published)], "alpha")

        row = store.get_recent(limit=1)[0]
        assert row.published_at == published
        assert row.fetched_at.tzinfo is not None
        assert row.cache_expiry - row.fetched_at == timedelta(days=7)

    def test_stats(self, store):
        store.bulk_upsert([
            make_article("A", category="technology"),
            make_article("B", category="technology"),
            make_article("C", category="sports"),
        ], "alpha")

        stats = store.stats()
        assert stats["total_articles"] == 3
        assert stats["recent_articles"] == 3
        assert stats["by_category"] == {"technology": 2, "sports": 1}
        assert stats["by_provider"] == {"alpha": 3}

    def test_low_disk_space_skips_write(self, store):
        with patch("src.storage.article_store.check_disk_space", return_value=False):
            result = store.bulk_upsert([make_article("One")], "alpha")
        assert result["inserted"] == 0
        assert store.stats()["total_articles"] == 0

    def test_in_memory_store(self):
        with ArticleStore(":memory:") as mem:
            assert mem.db_path is None
            mem.bulk_upsert([make_article("One")], "alpha")
            assert len(mem.get_recent(limit=5)) == 1

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "persist.duckdb"
        with ArticleStore(path) as first:
            first.bulk_upsert([make_article("One")], "alpha")
        with ArticleStore(path) as second:
            assert second.stats()["total_articles"] == 1


class TestCachedArticle:

    def test_to_article(self):
        now = now_utc()
        row = CachedArticle(
            url="https://example.com/a",
            title="A",
            published_at=now.replace(tzinfo=None),
            provider="guardian",
            fetched_at=now,
            last_accessed_at=now,
            cache_expiry=now + timedelta(days=7),
        )
        article = row.to_article()
        assert article.published_at.tzinfo is not None
        assert article.source.id == "guardian"
        assert article.source.name == "guardian"
        assert article.url_to_image == ""
        assert article.quality_weight == 50

    def test_quality_weight_bounds(self):
        now = now_utc()
        with pytest.raises(ValueError):
            CachedArticle(
                url="https://example.com/a", title="A", published_at=now,
                provider="guardian", fetched_at=now, last_accessed_at=now,
                cache_expiry=now, quality_weight=150,
            )


# ============================================
# TIERED CACHE
# ============================================

class TestCalculateAge:

    @pytest.mark.parametrize("hours,expected", [
        (0.5, "fresh"), (3, "recent"), (12, "today"), (30, "yesterday"), (72, "stale"),
    ])
    def test_buckets(self, hours, expected):
        now = now_utc()
        assert calculate_age(now - timedelta(hours=hours), now=now) == expected

    def test_none(self):
        assert calculate_age(None) == "unknown"

    def test_naive_treated_as_utc(self):
        now = now_utc()
        naive = (now - timedelta(minutes=10)).replace(tzinfo=None)
        assert calculate_age(naive, now=now) == "fresh"


class TestTieredCache:

    def test_miss_everywhere(self, tiered_cache):
        lookup = tiered_cache.get("news:headlines:1:20")
        assert lookup.hit is False
        assert lookup.source == "none"

    def test_set_writes_both_tiers(self, tiered_cache, memory_cache, store):
        tiered_cache.set("news:headlines:1:20", [make_article("One")], "alpha")
        assert memory_cache.get(NAMESPACE, "news:headlines:1:20") is not None
        assert store.stats()["total_articles"] == 1

    def test_set_ignores_empty(self, tiered_cache, memory_cache, store):
        tiered_cache.set("news:headlines:1:20", [], "alpha")
        assert len(memory_cache) == 0
        assert store.stats()["total_articles"] == 0

    def test_memory_hit(self, tiered_cache):
        tiered_cache.set("news:headlines:1:20", [make_article("One")], "alpha")
        lookup = tiered_cache.get("news:headlines:1:20")
        assert lookup.source == "memory"
        assert lookup.age == "fresh"

    def test_persistent_hit_promotes_to_memory(self, tiered_cache, memory_cache):
        tiered_cache.set("news:category:technology:1:20",
                         [make_article("Tech", category="technology")], "alpha")
        memory_cache.invalidate()

        lookup = tiered_cache.get("news:category:technology:1:20", category="technology")
        assert lookup.source == "persistent"
        assert lookup.age == "fresh"
        assert [a.title for a in lookup.data] == ["Tech"]
        assert memory_cache.get(NAMESPACE, "news:category:technology:1:20") is not None

    def test_persistent_hit_records_access(self, tiered_cache, memory_cache, store):
        tiered_cache.set("k", [make_article("One")], "alpha")
        memory_cache.invalidate()
        tiered_cache.get("k")
        assert store.get_recent(limit=1)[0].access_count == 2

    def test_general_reads_recent_across_categories(self, tiered_cache, memory_cache):
        tiered_cache.set("k", [make_article("Biz", category="business")], "alpha")
        memory_cache.invalidate()
        assert tiered_cache.get("news:headlines:1:20", category="general").hit is True

    def test_persistent_respects_max_age(self, tiered_cache, memory_cache, store):
        tiered_cache.set("k", [make_article("One")], "alpha")
        memory_cache.invalidate()
        _age_rows(store, hours=3)

        assert tiered_cache.get("k").hit is False
        assert tiered_cache.get("k", max_age_hours=6).hit is True

    def test_store_error_reported(self, memory_cache):
        broken = MagicMock()
        broken.get_recent.side_effect = RuntimeError("database is locked")
        cache = TieredArticleCache(memory=memory_cache, store=broken)

        with patch("src.storage.tiered_cache.log_exception") as mock_log:
            lookup = cache.get("k")
        assert lookup.source == "error"
        assert "database is locked" in lookup.error
        assert mock_log.call_args.kwargs["context"] == "persistent cache read"

    def test_offset_selects_page_slice(self, tiered_cache, memory_cache):
        now = now_utc()
        tiered_cache.set("news:headlines:1:2", [
            make_article(f"Story {i}", published_at=now - timedelta(minutes=i)) for i in range(3)
        ], "alpha")
        memory_cache.invalidate()

        lookup = tiered_cache.get("news:headlines:2:2", limit=2, offset=2)
        assert lookup.source == "persistent"
        assert [a.title for a in lookup.data] == ["Story 2"]

    def test_store_write_error_keeps_memory(self, memory_cache):
        broken = MagicMock()
        broken.bulk_upsert.side_effect = RuntimeError("disk I/O error")
        cache = TieredArticleCache(memory=memory_cache, store=broken)

        cache.set("k", [make_article("One")], "alpha")
        assert memory_cache.get(NAMESPACE, "k") is not None

    def test_clear(self, tiered_cache, memory_cache, store):
        tiered_cache.set("a", [make_article("One")], "alpha")
        tiered_cache.set("b", [make_article("Two")], "alpha")

        tiered_cache.clear("a")
        assert memory_cache.get(NAMESPACE, "a") is None
        assert memory_cache.get(NAMESPACE, "b") is not None

        tiered_cache.clear()
        assert len(memory_cache) == 0
        # Persistent rows are left to expire
        assert store.stats()["total_articles"] == 2

    def test_stats_and_purge(self, tiered_cache, store):
        tiered_cache.set("a", [make_article("One")], "alpha")
        _expire_rows(store)

        assert tiered_cache.purge_expired() == {"memory": 0, "persistent": 1}
        stats = tiered_cache.stats()
        assert set(stats) == {"memory", "persistent", "timestamp"}


class TestGetOrFetch:

    def test_fetches_and_caches(self, tiered_cache, store):
        fetcher = MagicMock(return_value=_fetch_result([make_article("One")]))

        lookup = tiered_cache.get_or_fetch("k", fetcher)
        assert lookup.source == "api"
        assert lookup.provider == "alpha"
        assert fetcher.call_count == 1
        assert store.stats()["total_articles"] == 1

        again = tiered_cache.get_or_fetch("k", fetcher)
        assert again.source == "memory"
        assert fetcher.call_count == 1

    def test_fetch_failure_uses_fallback_window(self, tiered_cache, memory_cache, store):
        tiered_cache.set("k", [make_article("One")], "alpha")
        memory_cache.invalidate()
        _age_rows(store, hours=4)

        fetcher = MagicMock(side_effect=RuntimeError("All providers failed"))
        lookup = tiered_cache.get_or_fetch("k", fetcher)

        assert lookup.source == "persistent"
        assert lookup.age == "fallback"
        assert [a.title for a in lookup.data] == ["One"]

    def test_fetch_failure_nothing_cached(self, tiered_cache):
        fetcher = MagicMock(side_effect=RuntimeError("All providers failed"))
        lookup = tiered_cache.get_or_fetch("k", fetcher)

        assert lookup.hit is False
        assert lookup.source == "none"
        assert lookup.error == "All providers failed"

    def test_fetch_failure_beyond_fallback_window(self, tiered_cache, memory_cache, store):
        tiered_cache.set("k", [make_article("One")], "alpha")
        memory_cache.invalidate()
        _age_rows(store, hours=8)

        lookup = tiered_cache.get_or_fetch("k", MagicMock(side_effect=RuntimeError("down")))
        assert lookup.hit is False

    def test_empty_result_not_cached(self, tiered_cache, memory_cache, store):
        lookup = tiered_cache.get_or_fetch("k", MagicMock(return_value=_fetch_result([])))
        assert lookup.source == "none"
        assert len(memory_cache) == 0
        assert store.stats()["total_articles"] == 0

    def test_empty_result_uses_recent_rows(self, tiered_cache, memory_cache, store):
        tiered_cache.set("k", [make_article("One")], "alpha")
        memory_cache.invalidate()
        _age_rows(store, hours=4)

        lookup = tiered_cache.get_or_fetch("k", MagicMock(return_value=_fetch_result([])))
        assert lookup.source == "persistent"
        assert lookup.age == "recent"

    def test_lookup_hit_property(self):
        assert CacheLookup().hit is False
        assert CacheLookup(data=[make_article()]).hit is True
