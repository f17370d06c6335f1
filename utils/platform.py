"""
Platform Utilities - UTC clock and provider quota-day helpers.

Centralizes cross-cutting time handling so the rest of the codebase stays
clean. Vendor quotas reset on UTC boundaries, so all quota and cache code
should use now_utc()/quota_day() instead of datetime.now()/date.today()
to behave the same on servers in any local timezone.
"""
import shutil
from datetime import datetime, date, timedelta, timezone
from pathlib import Path

from loguru import logger


# ============================================
# UTC CLOCK
# ============================================

UTC = timezone.utc


def now_utc() -> datetime:
    """Get current timezone-aware datetime in UTC."""
    return datetime.now(UTC)


def today_utc() -> date:
    """Get today's date in UTC."""
    return now_utc().date()


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ============================================
# QUOTA WINDOWS
# ============================================

def quota_day(reset_hour: int = 0, now: datetime | None = None) -> date:
    """Identify the current daily quota window.

    A provider whose quota resets at ``reset_hour`` UTC is in the same
    window from that hour until the same hour the next day. The window is
    labelled with the UTC date on which it started.
    """
    now = ensure_utc(now) if now else now_utc()
    return (now - timedelta(hours=reset_hour)).date()


def next_reset_time(reset_hour: int = 0, now: datetime | None = None) -> datetime:
    """Next UTC instant at which a daily quota resets."""
    now = ensure_utc(now) if now else now_utc()
    candidate = now.replace(hour=reset_hour, minute=0, second=0, microsecond=0)
    if now >= candidate:
        candidate += timedelta(days=1)
    return candidate


# ============================================
# DISK SPACE CHECK
# ============================================

def check_disk_space(path, min_mb=50) -> bool:
    """
    Check if there's enough disk space for cache database writes.

    Args:
        path: Directory or file path to check
        min_mb: Minimum free space in MB (default 50MB)

    Returns:
        True if sufficient space available, True on error (don't block caching)
    """
    try:
        target = Path(path)
        if not target.exists():
            target = target.parent
        usage = shutil.disk_usage(str(target))
        free_mb = usage.free / (1024 * 1024)
        if free_mb < min_mb:
            logger.warning(f"Low disk space at {target}: {free_mb:.0f}MB free")
        return free_mb >= min_mb
    except OSError:
        return True
