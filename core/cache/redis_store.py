"""Persistent cache tier backed by Redis (``CACHE_PROVIDER=redis``).

Layout, all under ``REDIS_KEY_PREFIX``:

* ``entry:<cache key>`` -> JSON document ``{payload, expires_at, updated_at, dependencies}``
  with a Redis expiry matching ``expires_at``.
* ``dep:<type>:<id>`` -> set of cache keys tagged with that dependency. These
  sets carry no expiry; ``delete_expired`` prunes members whose entry is gone.
"""

from __future__ import annotations

import json
import math
import re
from datetime import datetime
from typing import Iterable, List, Optional

import redis.asyncio as redis

from core.cache.dependencies import CacheDependency
from core.ports.cache import StoredEntry, StoreStatistics

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")
_SCAN_COUNT = 500


def glob_escape(text: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class RedisCacheStore:
    def __init__(self, client: redis.Redis, *, prefix: str = "aprovafacil:"):
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "aprovafacil:") -> "RedisCacheStore":
        return cls(redis.from_url(url, decode_responses=True), prefix=prefix)

    def _entry_key(self, key: str) -> str:
        return f"{self._prefix}entry:{key}"

    def _dep_key(self, dependency: CacheDependency) -> str:
        return f"{self._prefix}dep:{dependency.tag}"

    def _strip_entry_prefix(self, redis_key: str) -> str:
        return redis_key[len(self._prefix) + len("entry:"):]

    async def get(self, key: str, *, now: datetime) -> Optional[StoredEntry]:
        raw = await self._redis.get(self._entry_key(key))
        if raw is None:
            return None
        document = json.loads(raw)
        expires_at = datetime.fromisoformat(document["expires_at"])
        if expires_at <= now:
            return None
        return StoredEntry(
            key=key,
            payload=document["payload"],
            expires_at=expires_at,
            dependencies=frozenset(CacheDependency.from_tag(tag) for tag in document.get("dependencies", [])),
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
        ttl_ms = max(1, math.ceil((expires_at - now).total_seconds() * 1000))
        document = json.dumps(
            {
                "payload": payload,
                "expires_at": expires_at.isoformat(),
                "updated_at": now.isoformat(),
                "dependencies": sorted(dependency.tag for dependency in dependencies),
            }
        )
        previous = await self.get(key, now=now)

        pipe = self._redis.pipeline()
        if previous is not None:
            for dependency in previous.dependencies:
                pipe.srem(self._dep_key(dependency), key)
        pipe.set(self._entry_key(key), document, px=ttl_ms)
        for dependency in dependencies:
            pipe.sadd(self._dep_key(dependency), key)
        await pipe.execute()

    async def delete(self, key: str) -> int:
        return await self._delete_keys([key])

    async def delete_expired(self, *, now: datetime) -> int:
        # Redis drops expired entries itself; prune dangling tag-set members.
        removed = 0
        async for dep_key in self._redis.scan_iter(match=f"{glob_escape(self._prefix)}dep:*", count=_SCAN_COUNT):
            members = list(await self._redis.smembers(dep_key))
            if not members:
                continue
            exists = await self._redis.mget([self._entry_key(member) for member in members])
            dangling = [member for member, raw in zip(members, exists) if raw is None]
            if dangling:
                removed += await self._redis.srem(dep_key, *dangling)
        return removed

    async def delete_by_pattern(self, pattern: str) -> int:
        return await self._delete_matching(f"*{glob_escape(pattern)}*")

    async def delete_by_prefix(self, prefix: str) -> int:
        return await self._delete_matching(f"{glob_escape(prefix)}*")

    async def delete_by_dependency(self, dependency: CacheDependency) -> int:
        dep_key = self._dep_key(dependency)
        keys = list(await self._redis.smembers(dep_key))
        await self._redis.delete(dep_key)
        return await self._delete_keys(keys)

    async def delete_all(self) -> int:
        removed = await self._delete_matching("*")
        dep_keys = [
            dep_key
            async for dep_key in self._redis.scan_iter(
                match=f"{glob_escape(self._prefix)}dep:*", count=_SCAN_COUNT
            )
        ]
        if dep_keys:
            await self._redis.delete(*dep_keys)
        return removed

    async def statistics(self, *, now: datetime) -> StoreStatistics:
        entry_keys = await self._scan_entries("*")
        total = 0
        expired = 0
        last_updated_at = None
        for start in range(0, len(entry_keys), _SCAN_COUNT):
            batch = entry_keys[start:start + _SCAN_COUNT]
            for raw in await self._redis.mget(batch):
                if raw is None:
                    continue
                document = json.loads(raw)
                total += 1
                if datetime.fromisoformat(document["expires_at"]) <= now:
                    expired += 1
                updated_at = datetime.fromisoformat(document["updated_at"])
                if last_updated_at is None or updated_at > last_updated_at:
                    last_updated_at = updated_at
        return StoreStatistics(total=total, expired=expired, last_updated_at=last_updated_at)

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def _scan_entries(self, key_glob: str) -> List[str]:
        match = f"{glob_escape(self._prefix)}entry:{key_glob}"
        return [redis_key async for redis_key in self._redis.scan_iter(match=match, count=_SCAN_COUNT)]

    async def _delete_matching(self, key_glob: str) -> int:
        entry_keys = await self._scan_entries(key_glob)
        return await self._delete_keys([self._strip_entry_prefix(redis_key) for redis_key in entry_keys])

    async def _delete_keys(self, keys: List[str]) -> int:
        if not keys:
            return 0
        documents = await self._redis.mget([self._entry_key(key) for key in keys])
        pipe = self._redis.pipeline()
        for key, raw in zip(keys, documents):
            if raw is None:
                continue
            for tag in json.loads(raw).get("dependencies", []):
                pipe.srem(f"{self._prefix}dep:{tag}", key)
        pipe.delete(*[self._entry_key(key) for key in keys])
        results = await pipe.execute()
        return int(results[-1] or 0)
