"""
Storage Package

Caching for aggregation results.

Current implementation:
- In-memory TTL cache (AssetCache) used by the HTTP layer

Durable persistence of canonical assets is handled outside this service.
"""

from storage.cache import AssetCache, CacheEntry

__all__ = ["AssetCache", "CacheEntry"]
