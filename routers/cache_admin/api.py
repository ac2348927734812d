import os
import secrets
from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_async_db
from core.cache import CacheService

from . import repository, service
from .schemas import (
    CacheClearRequest,
    CacheConfigCreateRequest,
    CacheConfigResponse,
    CacheConfigUpdateRequest,
    CacheInvalidateRequest,
    CacheOperationResponse,
    CacheSettingsResponse,
    CacheStatsResponse,
)


def _is_authorized(secret: str) -> bool:
    expected = os.getenv("CACHE_ADMIN_SECRET", "")
    # An unset secret disables the admin API entirely.
    return bool(expected) and secrets.compare_digest(secret or "", expected)


def verify_cache_admin(x_admin_secret: str = Header(None, alias="X-Admin-Secret")):
    if not _is_authorized(x_admin_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


router = APIRouter(
    prefix="/admin/cache",
    tags=["Cache Admin"],
    dependencies=[Depends(verify_cache_admin)],
)


@router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(cache: CacheService = Depends(get_cache_service)):
    stats = await cache.get_statistics()
    return stats.to_dict()


@router.post("/clear", response_model=CacheOperationResponse)
async def clear_cache(payload: CacheClearRequest, cache: CacheService = Depends(get_cache_service)):
    return await service.clear(cache, pattern=payload.pattern, prefix=payload.prefix)


@router.post("/invalidate", response_model=CacheOperationResponse)
async def invalidate_cache(payload: CacheInvalidateRequest, cache: CacheService = Depends(get_cache_service)):
    return await service.invalidate(cache, dependency_type=payload.type, dependency_id=payload.id)


@router.post("/purge-expired", response_model=CacheOperationResponse)
async def purge_expired_cache(cache: CacheService = Depends(get_cache_service)):
    return await service.purge_expired(cache)


@router.get("/settings", response_model=CacheSettingsResponse)
async def get_cache_settings(cache: CacheService = Depends(get_cache_service)):
    return service.settings(cache)


@router.get("/config", response_model=List[CacheConfigResponse])
async def list_cache_configs(db: AsyncSession = Depends(get_async_db)):
    return await repository.list_cache_configs(db)


@router.post("/config", response_model=CacheConfigResponse, status_code=201)
async def create_cache_config(
    payload: CacheConfigCreateRequest,
    db: AsyncSession = Depends(get_async_db),
    cache: CacheService = Depends(get_cache_service),
):
    return await service.create_config(
        db,
        cache,
        cache_key=payload.cache_key,
        ttl_minutes=payload.ttl_minutes,
        description=payload.description,
    )


@router.put("/config/{config_id}", response_model=CacheConfigResponse)
async def update_cache_config(
    config_id: int,
    payload: CacheConfigUpdateRequest,
    db: AsyncSession = Depends(get_async_db),
    cache: CacheService = Depends(get_cache_service),
):
    return await service.update_config(
        db,
        cache,
        config_id=config_id,
        ttl_minutes=payload.ttl_minutes,
        description=payload.description,
    )


@router.delete("/config/{config_id}", response_model=CacheOperationResponse)
async def delete_cache_config(
    config_id: int,
    db: AsyncSession = Depends(get_async_db),
    cache: CacheService = Depends(get_cache_service),
):
    await service.delete_config(db, cache, config_id=config_id)
    return {"success": True, "removed": 1, "message": "Cache config deleted"}
