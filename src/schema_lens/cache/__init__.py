"""
Cache stores used to share derived schema metadata between analyzers.
"""

from schema_lens.cache.stores import CacheStore, FileCacheStore, MemoryCacheStore

__all__ = [
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
]
