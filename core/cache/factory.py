"""Build the process-wide ``CacheService`` from ``config``."""

import logging

import config
from core.cache.service import CacheService
from core.cache.ttl import TtlPolicy

logger = logging.getLogger(__name__)

VALID_PROVIDERS = ("memory", "redis", "none")


def create_cache_service(provider: str = None, **overrides) -> CacheService:
    """
    ``memory``: memory tier + ``cache_entries`` table.
    ``redis``: memory tier + Redis.
    ``none``: memory tier only.

    TTL overrides come from ``cache_config`` for every provider except ``none``.
    """
    provider = (provider or config.CACHE_PROVIDER).lower()
    if provider not in VALID_PROVIDERS:
        raise ValueError(f"Unknown CACHE_PROVIDER {provider!r}; expected one of {', '.join(VALID_PROVIDERS)}")

    store = None
    ttl_source = None
    if provider != "none":
        from app.db import AsyncSessionLocal
        from core.cache.store import SqlAlchemyCacheStore, SqlAlchemyTtlOverrideSource

        ttl_source = SqlAlchemyTtlOverrideSource(AsyncSessionLocal)
        if provider == "memory":
            store = SqlAlchemyCacheStore(AsyncSessionLocal)
        else:
            from core.cache.redis_store import RedisCacheStore

            store = RedisCacheStore.from_url(config.REDIS_URL, prefix=config.REDIS_KEY_PREFIX)

    options = dict(
        ttl_policy=TtlPolicy(default_minutes=config.CACHE_DEFAULT_TTL),
        ttl_overrides_source=ttl_source,
        max_keys=config.CACHE_MAX_KEYS,
        sweep_interval_seconds=config.CACHE_SWEEP_INTERVAL_SECONDS,
        purge_interval_seconds=config.CACHE_PURGE_INTERVAL_SECONDS,
        coalesce=config.CACHE_COALESCE_COMPUTE,
    )
    options.update(overrides)

    logger.info(f"Cache service configured: provider={provider}, max_keys={options['max_keys']}")
    return CacheService(store, **options)
