"""Tests for cache housekeeping."""

import asyncio

import pytest

from src.cache import CacheStore, perform_cache_cleanup, run_periodic_cleanup


def test_perform_cache_cleanup_reports_before_and_after(cache_store, clock):
    cache_store.set("expired", 1, ttl_seconds=1)
    cache_store.set("live", 2)
    clock.advance(10)

    report = perform_cache_cleanup(cache_store)

    assert report["success"] is True
    assert report["entries_removed"] == 1
    assert report["stats_before"]["total_entries"] == 2
    assert report["stats_before"]["expired_entries"] == 1
    assert report["stats_after"]["total_entries"] == 1
    assert report["stats_after"]["expired_entries"] == 0
    assert report["execution_time"] >= 0
    assert "timestamp" in report


@pytest.mark.asyncio
async def test_periodic_cleanup_sweeps_until_cancelled(cache_store, clock):
    cache_store.set("expired", 1, ttl_seconds=1)
    clock.advance(10)

    task = asyncio.create_task(run_periodic_cleanup(cache_store, interval_seconds=0.01))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert cache_store.get_stats()["total_entries"] == 0


@pytest.mark.asyncio
async def test_periodic_cleanup_returns_when_cache_disabled(tmp_path):
    store = CacheStore(tmp_path / "cache", enabled=False)
    await asyncio.wait_for(run_periodic_cleanup(store, interval_seconds=0.01), timeout=1)
