"""
File-backed query result cache with per-entry TTL.

Each entry lives in its own JSON file named by the SHA-256 digest of the exact
query text, so identical query strings share one entry and any textual
difference (whitespace, casing) gets its own. Cache failures never reach the
caller: reads degrade to a miss and writes to "not cached".
"""

import hashlib
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from src.logging import get_logger

logger = get_logger('CACHE')

ENTRY_SUFFIX = ".json"


class CacheEntry(BaseModel):
    """One cached payload with its creation time and lifetime."""
    data: Any = Field(..., description="Cached payload, JSON serializable")
    created_at_epoch_ms: int = Field(..., description="Creation time in epoch milliseconds")
    ttl_seconds: int = Field(..., ge=0, description="Lifetime of this entry")

    def age_seconds(self, now_ms: int) -> float:
        return (now_ms - self.created_at_epoch_ms) / 1000

    def is_live(self, now_ms: int) -> bool:
        return self.age_seconds(now_ms) <= self.ttl_seconds


class CacheStore:
    """TTL cache keyed by query content hash, one file per entry."""

    def __init__(
        self,
        cache_dir: Path,
        ttl_seconds: int = 3600,
        enabled: bool = True,
        clock: Callable[[], float] = time.time
    ):
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._clock = clock

        if self.enabled:
            self._ensure_cache_dir()

    def _ensure_cache_dir(self) -> None:
        try:
            if not self.cache_dir.exists():
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"created cache directory | path:{self.cache_dir}")
        except OSError as e:
            logger.error(f"failed to create cache directory | path:{self.cache_dir} | error:{e}")

    @staticmethod
    def generate_key(query: str) -> str:
        """SHA-256 of the exact query text, no normalization."""
        return hashlib.sha256(query.encode('utf-8')).hexdigest()

    def _entry_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}{ENTRY_SUFFIX}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _entry_files(self):
        return [p for p in self.cache_dir.iterdir() if p.is_file() and p.suffix == ENTRY_SUFFIX]

    @staticmethod
    def _read_entry(path: Path) -> CacheEntry:
        return CacheEntry.model_validate_json(path.read_text(encoding='utf-8'))

    def get(self, query: str) -> Optional[Any]:
        """
        Return the cached payload for a query, or None on a miss.

        Expired entries are deleted on read.
        """
        if not self.enabled:
            return None

        key = self.generate_key(query)
        path = self._entry_path(key)

        try:
            if not path.exists():
                return None

            entry = self._read_entry(path)
            now_ms = self._now_ms()
            age = entry.age_seconds(now_ms)

            if not entry.is_live(now_ms):
                logger.info(f"cache expired | key:{key[:12]} | age:{round(age)}s | ttl:{entry.ttl_seconds}s")
                path.unlink(missing_ok=True)
                return None

            logger.info(f"cache hit | key:{key[:12]} | age:{round(age)}s")
            return entry.data

        except (OSError, ValueError) as e:
            logger.error(f"failed to read cache entry | key:{key[:12]} | error:{e}")
            return None

    def set(self, query: str, data: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a payload, replacing any existing entry for the same query."""
        if not self.enabled:
            return

        key = self.generate_key(query)

        try:
            entry = CacheEntry(
                data=data,
                created_at_epoch_ms=self._now_ms(),
                ttl_seconds=ttl_seconds if ttl_seconds is not None else self.ttl_seconds
            )
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            content = json.dumps(entry.model_dump(mode='json'), indent=2)
            # Write then rename so readers never see a half written entry
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(content)
                os.replace(tmp_name, self._entry_path(key))
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            logger.info(f"cached data | key:{key[:12]} | ttl:{entry.ttl_seconds}s")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"failed to write cache entry | key:{key[:12]} | error:{e}")

    def delete(self, query: str) -> None:
        """Remove the entry for a query; a missing entry is not an error."""
        if not self.enabled:
            return

        key = self.generate_key(query)
        try:
            path = self._entry_path(key)
            if path.exists():
                path.unlink()
                logger.info(f"deleted cache entry | key:{key[:12]}")
        except OSError as e:
            logger.error(f"failed to delete cache entry | key:{key[:12]} | error:{e}")

    def clear(self) -> int:
        """Remove all entries. Returns the number removed."""
        if not self.enabled:
            return 0

        removed = 0
        try:
            for path in self._entry_files():
                path.unlink(missing_ok=True)
                removed += 1
            logger.info(f"cleared cache | entries:{removed}")
        except OSError as e:
            logger.error(f"failed to clear cache | error:{e}")
        return removed

    def sweep_expired(self) -> int:
        """Remove every entry that is no longer live. Returns the number removed."""
        if not self.enabled:
            return 0

        removed = 0
        now_ms = self._now_ms()
        try:
            for path in self._entry_files():
                try:
                    if not self._read_entry(path).is_live(now_ms):
                        path.unlink(missing_ok=True)
                        removed += 1
                except (OSError, ValueError) as e:
                    logger.error(f"failed to process cache file | file:{path.name} | error:{e}")
        except OSError as e:
            logger.error(f"failed to sweep expired cache entries | error:{e}")

        if removed:
            logger.info(f"swept expired cache entries | removed:{removed}")
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Entry counts and on-disk size of the cache."""
        stats = {
            "enabled": self.enabled,
            "total_entries": 0,
            "expired_entries": 0,
            "total_size_bytes": 0,
            "cache_path": str(self.cache_dir)
        }
        if not self.enabled or not self.cache_dir.exists():
            return stats

        now_ms = self._now_ms()
        try:
            for path in self._entry_files():
                stats["total_entries"] += 1
                try:
                    stats["total_size_bytes"] += path.stat().st_size
                    if not self._read_entry(path).is_live(now_ms):
                        stats["expired_entries"] += 1
                except (OSError, ValueError) as e:
                    logger.error(f"failed to process cache file | file:{path.name} | error:{e}")
        except OSError as e:
            logger.error(f"failed to get cache stats | error:{e}")

        return stats
