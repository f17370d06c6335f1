"""
DuckDB-backed persistent article cache (the L2 tier).

Articles are keyed by URL. Each write refreshes fetched_at and pushes
cache_expiry out by the configured number of days; expired rows are
ignored on read and removed by purge_expired().
"""
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional

import duckdb
from loguru import logger

from providers.base import Article
from src.storage.models import CachedArticle
from utils.platform import check_disk_space, ensure_utc, now_utc

COLUMNS = [
    "url", "title", "description", "content", "url_to_image", "published_at",
    "source_id", "source_name", "author", "category", "provider", "quality_weight",
    "fetched_at", "last_accessed_at", "access_count", "cache_expiry",
]


def _naive_utc(value: datetime) -> datetime:
    """DuckDB TIMESTAMP columns store naive UTC."""
    return ensure_utc(value).replace(tzinfo=None)


class ArticleStore:
    """DuckDB store for validated articles."""

    def __init__(self, db_path: Path | str, expiry_days: int = 7):
        """
        Initialize database connection.

        Args:
            db_path: Path to DuckDB database file, or ":memory:"
            expiry_days: Days a row stays readable after its last write
        """
        self.expiry = timedelta(days=expiry_days)
        self._lock = Lock()

        if str(db_path) == ":memory:":
            self.db_path = None
            self.conn = duckdb.connect(":memory:")
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = duckdb.connect(str(self.db_path))

        self._init_tables()
        logger.info(f"Article store initialized at {self.db_path or ':memory:'}")

    def _init_tables(self) -> None:
        """Create tables if they don't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS cached_articles (
                url VARCHAR PRIMARY KEY,
                title VARCHAR NOT NULL,
                description VARCHAR DEFAULT '',
                content VARCHAR DEFAULT '',
                url_to_image VARCHAR,
                published_at TIMESTAMP NOT NULL,
                source_id VARCHAR,
                source_name VARCHAR,
                author VARCHAR DEFAULT 'Unknown',
                category VARCHAR NOT NULL,
                provider VARCHAR NOT NULL,
                quality_weight INTEGER DEFAULT 50,
                fetched_at TIMESTAMP NOT NULL,
                last_accessed_at TIMESTAMP NOT NULL,
                access_count INTEGER DEFAULT 0,
                cache_expiry TIMESTAMP NOT NULL
            )
        """)
        # No secondary indexes: DuckDB refuses ON CONFLICT updates to indexed columns

    def bulk_upsert(self, articles: List[Article], provider: str) -> Dict[str, int]:
        """
        Insert new articles, refresh existing ones (matched by URL).

        Returns:
            {"inserted": n, "updated": n, "total": n}
        """
        if not articles:
            return {"inserted": 0, "updated": 0, "total": 0}

        if self.db_path is not None and not check_disk_space(self.db_path):
            logger.warning("Skipping article cache write: low disk space")
            return {"inserted": 0, "updated": 0, "total": len(articles)}

        now = _naive_utc(now_utc())
        expiry = now + self.expiry
        urls = list({a.url for a in articles})

        with self._lock:
            placeholders = ", ".join("?" for _ in urls)
            existing = {
                row[0] for row in self.conn.execute(
                    f"SELECT url FROM cached_articles WHERE url IN ({placeholders})", urls
                ).fetchall()
            }

            for article in articles:
                self.conn.execute("""
                    INSERT INTO cached_articles (
                        url, title, description, content, url_to_image, published_at,
                        source_id, source_name, author, category, provider, quality_weight,
                        fetched_at, last_accessed_at, access_count, cache_expiry
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                    ON CONFLICT (url) DO UPDATE SET
                        title = excluded.title,
                        description = excluded.description,
                        content = excluded.content,
                        url_to_image = excluded.url_to_image,
                        published_at = excluded.published_at,
                        source_id = excluded.source_id,
                        source_name = excluded.source_name,
                        author = excluded.author,
                        category = excluded.category,
                        provider = excluded.provider,
                        quality_weight = excluded.quality_weight,
                        fetched_at = excluded.fetched_at,
                        access_count = access_count + 1,
                        cache_expiry = excluded.cache_expiry
                """, [
                    article.url,
                    article.title,
                    article.description,
                    article.content,
                    article.url_to_image,
                    _naive_utc(article.published_at),
                    article.source.id,
                    article.source.name,
                    article.author,
                    article.category or "general",
                    provider,
                    article.quality_weight or 50,
                    now,
                    now,
                    expiry,
                ])

        inserted = len(urls) - len(existing)
        result = {"inserted": inserted, "updated": len(existing), "total": len(articles)}
        logger.debug(
            f"Cached {len(articles)} articles: {result['inserted']} new, {result['updated']} updated"
        )
        return result

    def _select(self, where: str, params: List[Any], limit: int,
                offset: int = 0) -> List[CachedArticle]:
        with self._lock:
            rows = self.conn.execute(
                f"SELECT {', '.join(COLUMNS)} FROM cached_articles "
                f"WHERE {where} AND cache_expiry > ? "
                f"ORDER BY published_at DESC, fetched_at DESC LIMIT ? OFFSET ?",
                [*params, _naive_utc(now_utc()), limit, max(0, offset)],
            ).fetchall()
        return [CachedArticle(**dict(zip(COLUMNS, row))) for row in rows]

    def get_by_category(self, category: str, limit: int = 20,
                        max_age_hours: float = 48, offset: int = 0) -> List[CachedArticle]:
        """Newest cached articles in a category fetched within max_age_hours.

        ``offset`` skips rows so page N of a request reads its own slice.
        """
        cutoff = _naive_utc(now_utc() - timedelta(hours=max_age_hours))
        return self._select("category = ? AND fetched_at >= ?", [category, cutoff], limit, offset)

    def get_recent(self, limit: int = 20, max_age_hours: float = 48,
                   offset: int = 0) -> List[CachedArticle]:
        """Newest cached articles of any category fetched within max_age_hours."""
        cutoff = _naive_utc(now_utc() - timedelta(hours=max_age_hours))
        return self._select("fetched_at >= ?", [cutoff], limit, offset)

    def record_access(self, urls: Iterable[str]) -> None:
        urls = list(urls)
        if not urls:
            return
        placeholders = ", ".join("?" for _ in urls)
        with self._lock:
            self.conn.execute(
                f"UPDATE cached_articles SET last_accessed_at = ?, "
                f"access_count = access_count + 1 WHERE url IN ({placeholders})",
                [_naive_utc(now_utc()), *urls],
            )

    def purge_expired(self) -> int:
        """Delete rows past cache_expiry. Returns rows removed."""
        now = _naive_utc(now_utc())
        with self._lock:
            count = self.conn.execute(
                "SELECT COUNT(*) FROM cached_articles WHERE cache_expiry <= ?", [now]
            ).fetchone()[0]
            if count:
                self.conn.execute("DELETE FROM cached_articles WHERE cache_expiry <= ?", [now])
        if count:
            logger.info(f"Purged {count} expired cached articles")
        return count

    def stats(self) -> Dict[str, Any]:
        now = now_utc()
        one_day_ago = _naive_utc(now - timedelta(hours=24))
        two_days_ago = _naive_utc(now - timedelta(hours=48))

        with self._lock:
            total = self.conn.execute("SELECT COUNT(*) FROM cached_articles").fetchone()[0]
            recent = self.conn.execute(
                "SELECT COUNT(*) FROM cached_articles WHERE fetched_at >= ?", [one_day_ago]
            ).fetchone()[0]
            by_category = self.conn.execute(
                "SELECT category, COUNT(*) AS n FROM cached_articles WHERE fetched_at >= ? "
                "GROUP BY category ORDER BY n DESC", [two_days_ago]
            ).fetchall()
            by_provider = self.conn.execute(
                "SELECT provider, COUNT(*) AS n FROM cached_articles WHERE fetched_at >= ? "
                "GROUP BY provider ORDER BY n DESC", [two_days_ago]
            ).fetchall()

        return {
            "total_articles": total,
            "recent_articles": recent,
            "by_category": dict(by_category),
            "by_provider": dict(by_provider),
        }

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()
        logger.info("Article store connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
