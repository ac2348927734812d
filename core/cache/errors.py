"""Cache exceptions."""


class CacheError(Exception):
    """Base class for errors the cache lets escape to callers."""


class InvalidCacheKeyError(CacheError, ValueError):
    """Rejected key, pattern, prefix or dependency (raised before any tier is touched)."""


class CacheSerializationError(CacheError):
    """Value could not be encoded as JSON for storage."""
