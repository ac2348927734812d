from core.cache.dependencies import (
    CacheDependency,
    CacheInvalidationStrategy,
    DependencyType,
)
from core.cache.errors import CacheError, CacheSerializationError, InvalidCacheKeyError
from core.cache.keys import build_key
from core.cache.service import CacheLookup, CacheService, CacheStats, LookupStatus

__all__ = [
    "CacheDependency",
    "CacheError",
    "CacheInvalidationStrategy",
    "CacheLookup",
    "CacheSerializationError",
    "CacheService",
    "CacheStats",
    "DependencyType",
    "InvalidCacheKeyError",
    "LookupStatus",
    "build_key",
]
