"""Cache admin service layer."""

import logging

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

import config
from core.cache import CacheDependency, CacheService, InvalidCacheKeyError
from core.cache.store import load_ttl_overrides
from core.cache.ttl import PREFIX_TTL_MINUTES
from core.logging import log_with_context

from . import repository

logger = logging.getLogger(__name__)


async def clear(cache: CacheService, *, pattern=None, prefix=None):
    if pattern is not None and prefix is not None:
        raise HTTPException(status_code=400, detail="Send either pattern or prefix, not both")
    try:
        if pattern is not None:
            removed = await cache.clear_by_pattern(pattern)
            message = f"Cache entries matching '{pattern}' cleared"
        elif prefix is not None:
            removed = await cache.clear_by_prefix(prefix)
            message = f"Cache entries starting with '{prefix}' cleared"
        else:
            removed = await cache.clear_all()
            message = "All cache entries cleared"
    except InvalidCacheKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    log_with_context(logger, logging.INFO, "ADMIN_CACHE_CLEAR", pattern=pattern, prefix=prefix, removed=removed)
    return {"success": True, "removed": removed, "message": message}


async def invalidate(cache: CacheService, *, dependency_type: str, dependency_id: str):
    try:
        dependency = CacheDependency(dependency_type, dependency_id)
    except InvalidCacheKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    removed = await cache.invalidate(dependency)
    log_with_context(logger, logging.INFO, "ADMIN_CACHE_INVALIDATE", dependency=dependency.tag, removed=removed)
    return {"success": True, "removed": removed, "message": f"Cache invalidated for {dependency.tag}"}


async def purge_expired(cache: CacheService):
    removed = await cache.purge_expired()
    return {"success": True, "removed": removed, "message": "Expired cache entries purged"}


def settings(cache: CacheService):
    return {
        "provider": config.CACHE_PROVIDER,
        "default_ttl_minutes": cache.ttl_policy.default_minutes,
        "max_keys": config.CACHE_MAX_KEYS,
        "sweep_interval_seconds": config.CACHE_SWEEP_INTERVAL_SECONDS,
        "purge_interval_seconds": config.CACHE_PURGE_INTERVAL_SECONDS,
        "coalesce_compute": config.CACHE_COALESCE_COMPUTE,
        "prefix_ttl_minutes": dict(PREFIX_TTL_MINUTES),
        "ttl_overrides": cache.ttl_policy.overrides,
    }


async def create_config(db: AsyncSession, cache: CacheService, *, cache_key: str, ttl_minutes: int, description=None):
    if await repository.get_cache_config_by_key(db, cache_key=cache_key):
        raise HTTPException(status_code=409, detail=f"Cache config for '{cache_key}' already exists")
    row = await repository.create_cache_config(
        db, cache_key=cache_key, ttl_minutes=ttl_minutes, description=description
    )
    await _refresh_overrides(db, cache)
    return row


async def update_config(db: AsyncSession, cache: CacheService, *, config_id: int, ttl_minutes=None, description=None):
    row = await _get_config_or_404(db, config_id)
    row = await repository.update_cache_config(db, row, ttl_minutes=ttl_minutes, description=description)
    await _refresh_overrides(db, cache)
    return row


async def delete_config(db: AsyncSession, cache: CacheService, *, config_id: int):
    row = await _get_config_or_404(db, config_id)
    await repository.delete_cache_config(db, row)
    await _refresh_overrides(db, cache)


async def _get_config_or_404(db: AsyncSession, config_id: int):
    row = await repository.get_cache_config(db, config_id=config_id)
    if not row:
        raise HTTPException(status_code=404, detail="Cache config not found")
    return row


async def _refresh_overrides(db: AsyncSession, cache: CacheService) -> None:
    # Read through the request session so the change is visible even when the
    # service was built without a table-backed override source.
    cache.ttl_policy.replace_overrides(await load_ttl_overrides(db))
