"""Persistent cache tier backed by the ``cache_entries`` table.

Exceptions propagate from here; ``CacheService`` is the boundary that turns
them into misses/no-ops.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.cache import CacheConfig, CacheEntry, CacheEntryDependency
from core.cache.dependencies import CacheDependency
from core.ports.cache import StoredEntry, StoreStatistics

_NO_SYNC = {"synchronize_session": False}


class SqlAlchemyCacheStore:
    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    async def get(self, key: str, *, now: datetime) -> Optional[StoredEntry]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(CacheEntry.cache_data, CacheEntry.expires_at).where(
                    CacheEntry.cache_key == key,
                    CacheEntry.expires_at > now,
                )
            )
            row = result.first()
            if row is None:
                return None

            deps = await session.execute(
                select(
                    CacheEntryDependency.dependency_type,
                    CacheEntryDependency.dependency_id,
                ).where(CacheEntryDependency.cache_key == key)
            )
            dependencies = frozenset(CacheDependency(dep_type, dep_id) for dep_type, dep_id in deps.all())
            return StoredEntry(
                key=key,
                payload=row.cache_data,
                expires_at=row.expires_at,
                dependencies=dependencies,
            )

    async def set(
        self,
        key: str,
        payload: str,
        *,
        expires_at: datetime,
        dependencies: Iterable[CacheDependency],
        now: datetime,
    ) -> None:
        dependencies = list(dependencies)
        try:
            await self._write(key, payload, expires_at=expires_at, dependencies=dependencies, now=now)
        except IntegrityError:
            # A concurrent writer inserted the key first; the retry updates its row.
            await self._write(key, payload, expires_at=expires_at, dependencies=dependencies, now=now)

    async def _write(
        self,
        key: str,
        payload: str,
        *,
        expires_at: datetime,
        dependencies: List[CacheDependency],
        now: datetime,
    ) -> None:
        async with self._session_maker() as session:
            async with session.begin():
                result = await session.execute(select(CacheEntry).where(CacheEntry.cache_key == key))
                entry = result.scalar_one_or_none()
                if entry is None:
                    session.add(
                        CacheEntry(
                            cache_key=key,
                            cache_data=payload,
                            expires_at=expires_at,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                else:
                    entry.cache_data = payload
                    entry.expires_at = expires_at
                    entry.updated_at = now

                # Tags are replaced wholesale so both tiers agree after a write.
                await session.execute(
                    delete(CacheEntryDependency)
                    .where(CacheEntryDependency.cache_key == key)
                    .execution_options(**_NO_SYNC)
                )
                session.add_all(
                    [
                        CacheEntryDependency(
                            cache_key=key,
                            dependency_type=dependency.type.value,
                            dependency_id=dependency.id,
                        )
                        for dependency in dependencies
                    ]
                )

    async def delete(self, key: str) -> int:
        return await self._delete_keys([key])

    async def delete_expired(self, *, now: datetime) -> int:
        expired = select(CacheEntry.cache_key).where(CacheEntry.expires_at <= now)
        return await self._delete_where_key_in(expired)

    async def delete_by_pattern(self, pattern: str) -> int:
        matching = select(CacheEntry.cache_key).where(CacheEntry.cache_key.contains(pattern, autoescape=True))
        return await self._delete_where_key_in(matching)

    async def delete_by_prefix(self, prefix: str) -> int:
        matching = select(CacheEntry.cache_key).where(CacheEntry.cache_key.startswith(prefix, autoescape=True))
        return await self._delete_where_key_in(matching)

    async def delete_by_dependency(self, dependency: CacheDependency) -> int:
        async with self._session_maker() as session:
            result = await session.execute(
                select(CacheEntryDependency.cache_key)
                .where(
                    CacheEntryDependency.dependency_type == dependency.type.value,
                    CacheEntryDependency.dependency_id == dependency.id,
                )
                .distinct()
            )
            keys = list(result.scalars().all())
        return await self._delete_keys(keys)

    async def delete_all(self) -> int:
        async with self._session_maker() as session:
            async with session.begin():
                await session.execute(delete(CacheEntryDependency).execution_options(**_NO_SYNC))
                result = await session.execute(delete(CacheEntry).execution_options(**_NO_SYNC))
                return result.rowcount or 0

    async def statistics(self, *, now: datetime) -> StoreStatistics:
        async with self._session_maker() as session:
            result = await session.execute(
                select(
                    func.count(CacheEntry.id),
                    func.coalesce(func.sum(case((CacheEntry.expires_at <= now, 1), else_=0)), 0),
                    func.max(CacheEntry.updated_at),
                )
            )
            total, expired, last_updated_at = result.one()
            return StoreStatistics(
                total=int(total or 0),
                expired=int(expired or 0),
                last_updated_at=last_updated_at,
            )

    async def _delete_keys(self, keys: List[str]) -> int:
        if not keys:
            return 0
        async with self._session_maker() as session:
            async with session.begin():
                await session.execute(
                    delete(CacheEntryDependency)
                    .where(CacheEntryDependency.cache_key.in_(keys))
                    .execution_options(**_NO_SYNC)
                )
                result = await session.execute(
                    delete(CacheEntry).where(CacheEntry.cache_key.in_(keys)).execution_options(**_NO_SYNC)
                )
                return result.rowcount or 0

    async def _delete_where_key_in(self, key_select) -> int:
        async with self._session_maker() as session:
            async with session.begin():
                # Tags first: the subquery still sees the entries.
                await session.execute(
                    delete(CacheEntryDependency)
                    .where(CacheEntryDependency.cache_key.in_(key_select))
                    .execution_options(**_NO_SYNC)
                )
                result = await session.execute(
                    delete(CacheEntry)
                    .where(CacheEntry.cache_key.in_(key_select))
                    .execution_options(**_NO_SYNC)
                )
                return result.rowcount or 0


class SqlAlchemyTtlOverrideSource:
    """Reads per-key TTL overrides from ``cache_config``."""

    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    async def load_ttl_overrides(self) -> Dict[str, int]:
        async with self._session_maker() as session:
            return await load_ttl_overrides(session)


async def load_ttl_overrides(session: AsyncSession) -> Dict[str, int]:
    result = await session.execute(select(CacheConfig.cache_key, CacheConfig.ttl_minutes))
    return {cache_key: int(ttl_minutes) for cache_key, ttl_minutes in result.all()}
