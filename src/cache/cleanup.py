"""
Cleanup and maintenance for the query result cache
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict

from src.logging import get_logger

from .store import CacheStore

logger = get_logger('CACHE')

DEFAULT_CLEANUP_INTERVAL_SECONDS = 900


def perform_cache_cleanup(store: CacheStore) -> Dict[str, Any]:
    """
    Sweep expired entries and report what changed.
    Intended for the background housekeeping loop and the cleanup_cache tool.
    """
    start_time = datetime.now(timezone.utc)

    stats_before = store.get_stats()
    removed = store.sweep_expired()
    stats_after = store.get_stats()

    end_time = datetime.now(timezone.utc)
    total_time = (end_time - start_time).total_seconds()

    logger.info(f"cache cleanup completed | removed:{removed} | duration:{total_time:.2f}s")

    return {
        "success": True,
        "entries_removed": removed,
        "stats_before": stats_before,
        "stats_after": stats_after,
        "execution_time": total_time,
        "timestamp": end_time.isoformat()
    }


async def run_periodic_cleanup(store: CacheStore, interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS) -> None:
    """Sweep expired entries every interval until cancelled."""
    if not store.enabled:
        logger.info("cache disabled | periodic cleanup not started")
        return

    logger.info(f"periodic cache cleanup started | interval:{interval_seconds}s")
    while True:
        await asyncio.sleep(interval_seconds)
        perform_cache_cleanup(store)
