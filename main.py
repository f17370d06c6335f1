#!/usr/bin/env python3
"""
News Fetch Layer - Main Entry Point

Usage:
    python main.py headlines                      # Top headlines, page 1
    python main.py headlines --page 2 --page-size 10
    python main.py category technology            # One UI category
    python main.py search "climate summit"        # Keyword search
    python main.py health                         # Provider health overview
    python main.py health --provider guardian     # One provider in detail
    python main.py quota                          # Daily quota usage
    python main.py cache-stats                    # Memory + persistent cache stats
    python main.py purge-cache                    # Drop expired cache rows

Common options:
    --output json                 Machine-readable output
    --disable newsapi             Skip a provider for this run (repeatable)

Providers are tried in priority order (NewsAPI, Guardian, GNews, NewsData,
Currents) and skipped when they have no API key, no quota left, or are
cooling down after a rate limit.
"""
import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from loguru import logger


def setup_logging():
    """Configure logging."""
    from config.settings import get_settings
    from src.utils.logger import setup_logger

    settings = get_settings()
    setup_logger(log_dir=settings.log_dir, level=settings.log_level)


def _emit(args, payload, text: str):
    if args.output == "json":
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(text)


def _format_articles(response) -> str:
    lines = [
        "=" * 60,
        f"{len(response.articles)} articles | source: {response.source}"
        f"{f' | provider: {response.provider}' if response.provider else ''}"
        f"{f' | age: {response.age}' if response.age else ''}",
        "=" * 60,
    ]
    for i, article in enumerate(response.articles, 1):
        lines.append(f"{i:>2}. {article.title}")
        lines.append(
            f"    {article.source.name} | {article.category} | "
            f"{article.published_at:%Y-%m-%d %H:%M} UTC"
        )
        lines.append(f"    {article.url}")
    if response.error:
        lines.append(f"\nError: {response.error}")
    return "\n".join(lines)


def _fetcher(args):
    from src.data.news_fetcher import NewsFetcher
    from src.data.provider_manager import get_provider_manager

    manager = get_provider_manager()
    for name in args.disable or []:
        if not manager.set_provider_enabled(name, False):
            logger.warning(f"Cannot disable unknown provider '{name}'")
    return NewsFetcher(manager=manager)


def cmd_headlines(args):
    response = _fetcher(args).get_headlines(page=args.page, page_size=args.page_size)
    _emit(args, response.to_dict(), _format_articles(response))


def cmd_category(args):
    response = _fetcher(args).get_by_category(args.name, page=args.page, page_size=args.page_size)
    _emit(args, response.to_dict(), _format_articles(response))


def cmd_search(args):
    try:
        response = _fetcher(args).search(args.query, page=args.page, page_size=args.page_size)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(2)
    _emit(args, response.to_dict(), _format_articles(response))


def cmd_health(args):
    from src.data.provider_manager import get_provider_manager

    manager = get_provider_manager()
    status = manager.get_health_status()

    if args.provider:
        entry = status.get(args.provider)
        if entry is None:
            print(f"Unknown provider: {args.provider}. Available: {', '.join(manager.provider_names())}")
            sys.exit(1)
        provider = manager.get_provider(args.provider)
        payload = {**entry, "info": provider.get_info()}
        lines = [f"{entry['display_name']} ({args.provider})"]
        for key, value in entry["health"].items():
            lines.append(f"  {key:16s} {value}")
        if entry["quota"]:
            q = entry["quota"]
            lines.append(f"  {'quota':16s} {q['used']}/{q['limit']} (resets {q['reset_time']})")
        _emit(args, payload, "\n".join(lines))
        return

    overall = manager.get_overall_health()
    lines = [
        f"Status: {overall['status'].upper()} "
        f"({overall['healthy']}/{overall['total_providers']} healthy, {overall['disabled']} disabled)",
    ]
    for name, entry in status.items():
        health = entry["health"]
        flag = "" if entry["enabled"] else " [disabled]"
        lines.append(
            f"  {name:10s} {health['status']:9s} {health['success_rate']:>6.1f}%  "
            f"{health['total_requests']:>4d} req  {health['avg_response_ms']:>5d}ms{flag}"
        )
    _emit(args, {"overall": overall, "providers": status}, "\n".join(lines))


def cmd_quota(args):
    from providers.quota import get_quota_manager
    from src.data.provider_manager import get_provider_manager

    get_provider_manager()  # Registers providers with the quota manager
    quota = get_quota_manager()
    _emit(args, quota.get_usage(), quota.format_health_report() or "No providers registered")


def cmd_cache_stats(args):
    stats = _fetcher(args).cache.stats()
    memory, persistent = stats["memory"], stats["persistent"]
    lines = [
        f"Memory:     {memory['entries']} entries, {memory['hit_rate']:.0f}% hit rate "
        f"({memory['hits']} hits / {memory['misses']} misses)",
        f"Persistent: {persistent['total_articles']} articles, "
        f"{persistent['recent_articles']} fetched in the last 24h",
    ]
    for category, count in persistent["by_category"].items():
        lines.append(f"  {category:14s} {count}")
    _emit(args, stats, "\n".join(lines))


def cmd_purge_cache(args):
    removed = _fetcher(args).cache.purge_expired()
    _emit(args, removed, f"Purged {removed['memory']} memory entries, "
                         f"{removed['persistent']} persistent rows")


def main():
    parser = argparse.ArgumentParser(
        description="News Fetch Layer - multi-provider news with fallback and caching"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--output", "-o",
        choices=["text", "json"],
        default="text",
        help="Output format"
    )
    common.add_argument(
        "--disable",
        action="append",
        metavar="PROVIDER",
        help="Skip a provider for this run (repeatable)"
    )

    paging = argparse.ArgumentParser(add_help=False)
    paging.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    paging.add_argument(
        "--page-size",
        type=int,
        default=20,
        dest="page_size",
        help="Articles per page (default: 20)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("headlines", parents=[common, paging], help="Top headlines")

    category_parser = subparsers.add_parser("category", parents=[common, paging],
                                            help="Headlines for one category")
    category_parser.add_argument("name", type=str, help="Category (e.g., technology)")

    search_parser = subparsers.add_parser("search", parents=[common, paging], help="Keyword search")
    search_parser.add_argument("query", type=str, help="Search terms")

    health_parser = subparsers.add_parser("health", parents=[common], help="Provider health")
    health_parser.add_argument("--provider", "-p", type=str, help="Show one provider in detail")

    subparsers.add_parser("quota", parents=[common], help="Daily quota usage")
    subparsers.add_parser("cache-stats", parents=[common], help="Cache statistics")
    subparsers.add_parser("purge-cache", parents=[common], help="Drop expired cache entries")

    args = parser.parse_args()

    # Setup logging
    setup_logging()

    commands = {
        "headlines": cmd_headlines,
        "category": cmd_category,
        "search": cmd_search,
        "health": cmd_health,
        "quota": cmd_quota,
        "cache-stats": cmd_cache_stats,
        "purge-cache": cmd_purge_cache,
    }
    handler = commands.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
