"""
Query result cache

A file-backed, content-addressed TTL store plus its maintenance helpers.
"""

from .store import CacheStore, CacheEntry
from .cleanup import perform_cache_cleanup, run_periodic_cleanup

__all__ = [
    'CacheStore',
    'CacheEntry',
    'perform_cache_cleanup',
    'run_periodic_cleanup'
]
