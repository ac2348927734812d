from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, Optional, Protocol

if TYPE_CHECKING:
    from core.cache.dependencies import CacheDependency


@dataclass
class StoredEntry:
    key: str
    payload: str
    expires_at: datetime
    dependencies: FrozenSet[CacheDependency] = field(default_factory=frozenset)


@dataclass
class StoreStatistics:
    total: int
    expired: int
    last_updated_at: Optional[datetime]


class CacheStorePort(Protocol):
    async def get(self, key: str, *, now: datetime) -> Optional[StoredEntry]: ...

    async def set(
        self,
        key: str,
        payload: str,
        *,
        expires_at: datetime,
        dependencies: Iterable[CacheDependency],
        now: datetime,
    ) -> None: ...

    async def delete(self, key: str) -> int: ...

    async def delete_expired(self, *, now: datetime) -> int: ...

    async def delete_by_pattern(self, pattern: str) -> int: ...

    async def delete_by_prefix(self, prefix: str) -> int: ...

    async def delete_by_dependency(self, dependency: CacheDependency) -> int: ...

    async def delete_all(self) -> int: ...

    async def statistics(self, *, now: datetime) -> StoreStatistics: ...


class TtlOverrideSourcePort(Protocol):
    async def load_ttl_overrides(self) -> Dict[str, int]: ...
