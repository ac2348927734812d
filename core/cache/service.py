"""Two-tier cache service.

Reads go memory -> persistent (promoting persistent hits into memory); writes
go memory first, then persistent. The persistent tier is best-effort: any error
it raises is logged and turned into a miss or a no-op, so a misconfigured or
unreachable cache table can never fail the caller's request. Only invalid
arguments and values that cannot be serialized are raised.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple, Type, TypeVar, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from core.cache.dependencies import DependencyLike, normalize_dependencies
from core.cache.errors import CacheSerializationError, InvalidCacheKeyError
from core.cache.keys import validate_key
from core.cache.memory import MemoryTier
from core.cache.ttl import TtlPolicy
from core.logging import log_with_context
from core.ports.cache import CacheStorePort, TtlOverrideSourcePort

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNDECODABLE = object()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the ``DateTime`` columns of the cache tables."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@lru_cache(maxsize=256)
def _adapter(model) -> TypeAdapter:
    return TypeAdapter(model)


class LookupStatus(str, Enum):
    HIT_MEMORY = "hit_memory"
    HIT_PERSISTENT = "hit_persistent"
    MISS = "miss"
    DEGRADED = "degraded"  # persistent tier failed; reported to callers as a miss


@dataclass
class CacheLookup:
    status: LookupStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def hit(self) -> bool:
        return self.status in (LookupStatus.HIT_MEMORY, LookupStatus.HIT_PERSISTENT)


@dataclass
class CacheStats:
    memory_count: int
    memory_expired_count: int
    persistent_count: int
    persistent_expired_count: int
    last_access: Optional[datetime]
    hits: int
    misses: int
    degraded: int
    persistent_available: bool

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round((self.hits / total) * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["hit_rate"] = self.hit_rate
        return data


Producer = Callable[[], Union[Awaitable[T], T]]


class CacheService:
    def __init__(
        self,
        store: Optional[CacheStorePort] = None,
        *,
        ttl_policy: Optional[TtlPolicy] = None,
        ttl_overrides_source: Optional[TtlOverrideSourcePort] = None,
        max_keys: int = 10_000,
        sweep_interval_seconds: float = 300,
        purge_interval_seconds: float = 1800,
        coalesce: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._ttl_policy = ttl_policy or TtlPolicy()
        self._ttl_overrides_source = ttl_overrides_source
        self._memory = MemoryTier(max_keys=max_keys)
        self._sweep_interval_seconds = sweep_interval_seconds
        self._purge_interval_seconds = purge_interval_seconds
        self._coalesce = coalesce
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._inflight: Dict[str, asyncio.Task] = {}
        self._hits = 0
        self._misses = 0
        self._degraded = 0
        self._last_access: Optional[datetime] = None

    @property
    def memory(self) -> MemoryTier:
        return self._memory

    @property
    def ttl_policy(self) -> TtlPolicy:
        return self._ttl_policy

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load TTL overrides and schedule the memory sweep and persistent purge."""
        if self.running:
            logger.warning("Cache scheduler is already running")
            return

        await self.reload_ttl_overrides()

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self._sweep_job,
            IntervalTrigger(seconds=self._sweep_interval_seconds),
            id="cache_memory_sweep",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if self._store is not None:
            scheduler.add_job(
                self.purge_expired,
                IntervalTrigger(seconds=self._purge_interval_seconds),
                id="cache_persistent_purge",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Cache scheduler started successfully")

    async def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Cache scheduler stopped successfully")
        self._scheduler = None

    async def reload_ttl_overrides(self) -> int:
        if self._ttl_overrides_source is None:
            return 0
        try:
            overrides = await self._ttl_overrides_source.load_ttl_overrides()
        except Exception as exc:
            self._log_degraded("load_ttl_overrides", exc)
            return 0
        self._ttl_policy.replace_overrides(overrides)
        logger.info(f"Cache TTL overrides loaded: {len(overrides)} entries")
        return len(overrides)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def lookup(self, key: str, *, model: Optional[Type[T]] = None) -> CacheLookup:
        validate_key(key)
        now = self._clock()
        self._last_access = now

        entry = self._memory.get(key, now=now)
        if entry is not None:
            value = self._decode(key, entry.payload, model)
            if value is not _UNDECODABLE:
                self._hits += 1
                return CacheLookup(LookupStatus.HIT_MEMORY, value)
            # Model mismatch: the entry stays cached.
            self._misses += 1
            return CacheLookup(LookupStatus.MISS)

        if self._store is None:
            self._misses += 1
            return CacheLookup(LookupStatus.MISS)

        try:
            stored = await self._store.get(key, now=now)
        except Exception as exc:
            self._misses += 1
            self._log_degraded("get", exc, key=key)
            return CacheLookup(LookupStatus.DEGRADED, error=exc)

        if stored is None:
            self._misses += 1
            return CacheLookup(LookupStatus.MISS)

        value = self._decode(key, stored.payload, model)
        if value is _UNDECODABLE:
            self._misses += 1
            return CacheLookup(LookupStatus.MISS)

        # Promote with the persistent expiry and tags.
        self._memory.set(
            key,
            stored.payload,
            expires_at=stored.expires_at,
            dependencies=stored.dependencies,
            now=now,
        )
        self._hits += 1
        return CacheLookup(LookupStatus.HIT_PERSISTENT, value)

    async def get(self, key: str, *, model: Optional[Type[T]] = None) -> Optional[T]:
        lookup = await self.lookup(key, model=model)
        return lookup.value if lookup.hit else None

    async def exists(self, key: str) -> bool:
        validate_key(key)
        now = self._clock()
        if self._memory.get(key, now=now) is not None:
            return True
        if self._store is None:
            return False
        try:
            return await self._store.get(key, now=now) is not None
        except Exception as exc:
            self._log_degraded("exists", exc, key=key)
            return False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        *,
        ttl_minutes: Optional[float] = None,
        dependencies: Optional[Iterable[DependencyLike]] = None,
    ) -> None:
        validate_key(key)
        tags = normalize_dependencies(dependencies)
        ttl = self._ttl_policy.resolve(key, ttl_minutes)
        payload = self._serialize(key, value)

        now = self._clock()
        expires_at = now + timedelta(minutes=ttl)
        self._last_access = now

        self._memory.set(key, payload, expires_at=expires_at, dependencies=tags, now=now)

        if self._store is None:
            return
        try:
            await self._store.set(key, payload, expires_at=expires_at, dependencies=tags, now=now)
        except Exception as exc:
            self._log_degraded("set", exc, key=key)

    async def get_or_set(
        self,
        key: str,
        producer: Producer,
        *,
        ttl_minutes: Optional[float] = None,
        dependencies: Optional[Iterable[DependencyLike]] = None,
        model: Optional[Type[T]] = None,
    ) -> T:
        """Return the cached value, computing and storing it on a miss.

        Without ``coalesce`` concurrent callers missing the same key each run
        ``producer``. With it, callers inside this process share one in-flight
        computation per key.
        """
        value, _ = await self.get_or_set_with_status(
            key, producer, ttl_minutes=ttl_minutes, dependencies=dependencies, model=model
        )
        return value

    async def get_or_set_with_status(
        self,
        key: str,
        producer: Producer,
        *,
        ttl_minutes: Optional[float] = None,
        dependencies: Optional[Iterable[DependencyLike]] = None,
        model: Optional[Type[T]] = None,
    ) -> Tuple[T, bool]:
        """Like ``get_or_set`` but also reports whether the value came from cache."""
        lookup = await self.lookup(key, model=model)
        if lookup.hit:
            return lookup.value, True

        if not self._coalesce:
            return await self._compute_and_store(key, producer, ttl_minutes, dependencies), False

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute_and_store(key, producer, ttl_minutes, dependencies))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget_inflight(key, done))
        return await asyncio.shield(task), False

    async def delete(self, key: str) -> None:
        validate_key(key)
        self._memory.delete(key)
        if self._store is None:
            return
        try:
            await self._store.delete(key)
        except Exception as exc:
            self._log_degraded("delete", exc, key=key)

    async def clear_by_pattern(self, pattern: str) -> int:
        if not pattern:
            raise InvalidCacheKeyError("pattern must not be empty")
        removed = self._memory.delete_by_pattern(pattern)
        removed_persistent = await self._persistent_delete("clear_by_pattern", pattern=pattern)
        log_with_context(
            logger,
            logging.INFO,
            "CACHE_CLEAR",
            pattern=pattern,
            memory=removed,
            persistent=removed_persistent,
        )
        return removed + removed_persistent

    async def clear_by_prefix(self, prefix: str) -> int:
        if not prefix:
            raise InvalidCacheKeyError("prefix must not be empty")
        removed = self._memory.delete_by_prefix(prefix)
        removed_persistent = await self._persistent_delete("clear_by_prefix", prefix=prefix)
        log_with_context(
            logger,
            logging.INFO,
            "CACHE_CLEAR_PREFIX",
            prefix=prefix,
            memory=removed,
            persistent=removed_persistent,
        )
        return removed + removed_persistent

    async def clear_all(self) -> int:
        removed = self._memory.clear()
        removed_persistent = await self._persistent_delete("clear_all")
        log_with_context(logger, logging.INFO, "CACHE_CLEAR_ALL", memory=removed, persistent=removed_persistent)
        return removed + removed_persistent

    async def invalidate(self, dependency: DependencyLike) -> int:
        (tag,) = normalize_dependencies([dependency])
        removed = self._memory.delete_by_dependency(tag)
        removed_persistent = await self._persistent_delete("invalidate", dependency=tag)
        log_with_context(
            logger,
            logging.INFO,
            "CACHE_INVALIDATE",
            dependency=tag.tag,
            memory=removed,
            persistent=removed_persistent,
        )
        return removed + removed_persistent

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def sweep_memory(self) -> int:
        expired = self._memory.sweep(now=self._clock())
        if expired:
            logger.debug(f"Memory cache swept: {len(expired)} expired keys removed")
        return len(expired)

    async def purge_expired(self) -> int:
        if self._store is None:
            return 0
        try:
            removed = await self._store.delete_expired(now=self._clock())
        except Exception as exc:
            self._log_degraded("purge_expired", exc)
            return 0
        if removed:
            logger.info(f"Cache purge: {removed} expired persistent entries removed")
        return removed

    async def get_statistics(self) -> CacheStats:
        now = self._clock()
        persistent_count = 0
        persistent_expired = 0
        last_access = self._last_access
        persistent_available = False

        if self._store is not None:
            try:
                store_stats = await self._store.statistics(now=now)
            except Exception as exc:
                self._log_degraded("statistics", exc)
            else:
                persistent_available = True
                persistent_count = store_stats.total
                persistent_expired = store_stats.expired
                if store_stats.last_updated_at is not None:
                    last_access = store_stats.last_updated_at

        return CacheStats(
            memory_count=len(self._memory),
            memory_expired_count=self._memory.count_expired(now=now),
            persistent_count=persistent_count,
            persistent_expired_count=persistent_expired,
            last_access=last_access,
            hits=self._hits,
            misses=self._misses,
            degraded=self._degraded,
            persistent_available=persistent_available,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _sweep_job(self) -> None:
        # Async wrapper keeps the sweep on the event loop thread.
        self.sweep_memory()

    def _forget_inflight(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _compute_and_store(self, key, producer, ttl_minutes, dependencies):
        value = producer()
        if inspect.isawaitable(value):
            value = await value
        await self.set(key, value, ttl_minutes=ttl_minutes, dependencies=dependencies)
        return value

    async def _persistent_delete(self, operation: str, **criteria) -> int:
        if self._store is None:
            return 0
        try:
            if operation == "clear_by_pattern":
                return await self._store.delete_by_pattern(criteria["pattern"])
            if operation == "clear_by_prefix":
                return await self._store.delete_by_prefix(criteria["prefix"])
            if operation == "invalidate":
                return await self._store.delete_by_dependency(criteria["dependency"])
            return await self._store.delete_all()
        except Exception as exc:
            self._log_degraded(operation, exc, **{k: str(v) for k, v in criteria.items()})
            return 0

    def _serialize(self, key: str, value: Any) -> str:
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        try:
            return to_json(value).decode("utf-8")
        except (PydanticSerializationError, TypeError, ValueError) as exc:
            log_with_context(logger, logging.ERROR, "CACHE_SERIALIZATION_FAILED", key=key, error=exc)
            raise CacheSerializationError(f"value for cache key {key!r} is not JSON serializable") from exc

    def _decode(self, key: str, payload: str, model):
        try:
            data = json.loads(payload)
            if model is not None:
                return _adapter(model).validate_python(data)
            return data
        except (ValueError, TypeError, ValidationError) as exc:
            log_with_context(logger, logging.WARNING, "CACHE_DECODE_FAILED", key=key, error=exc)
            return _UNDECODABLE

    def _log_degraded(self, operation: str, exc: BaseException, **context) -> None:
        self._degraded += 1
        log_with_context(
            logger,
            logging.WARNING,
            "CACHE_DEGRADED",
            op=operation,
            error=f"{type(exc).__name__}: {exc}",
            **context,
        )
