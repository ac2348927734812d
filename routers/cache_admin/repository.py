"""Cache config repository layer."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.cache import CacheConfig


async def list_cache_configs(db: AsyncSession):
    result = await db.execute(select(CacheConfig).order_by(CacheConfig.cache_key))
    return list(result.scalars().all())


async def get_cache_config(db: AsyncSession, *, config_id: int):
    return await db.get(CacheConfig, config_id)


async def get_cache_config_by_key(db: AsyncSession, *, cache_key: str):
    result = await db.execute(select(CacheConfig).where(CacheConfig.cache_key == cache_key))
    return result.scalar_one_or_none()


async def create_cache_config(db: AsyncSession, *, cache_key: str, ttl_minutes: int, description=None):
    now = datetime.utcnow()
    row = CacheConfig(
        cache_key=cache_key,
        ttl_minutes=ttl_minutes,
        description=description,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return row


async def update_cache_config(db: AsyncSession, row: CacheConfig, *, ttl_minutes=None, description=None):
    if ttl_minutes is not None:
        row.ttl_minutes = ttl_minutes
    if description is not None:
        row.description = description
    row.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(row)
    return row


async def delete_cache_config(db: AsyncSession, row: CacheConfig) -> None:
    await db.delete(row)
    await db.commit()
