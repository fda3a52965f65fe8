"""
Cache infrastructure.
"""

from .query_cache import CacheStats, QueryCache

__all__ = ["CacheStats", "QueryCache"]
