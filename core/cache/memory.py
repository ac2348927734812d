"""Process-local cache tier.

Single event-loop access only: no locking. ``get`` always rechecks the expiry,
so correctness never depends on ``sweep`` having run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, Iterator, List, Optional, Set

from core.cache.dependencies import CacheDependency


@dataclass
class MemoryEntry:
    payload: str
    expires_at: datetime
    dependencies: FrozenSet[CacheDependency] = field(default_factory=frozenset)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class MemoryTier:
    def __init__(self, *, max_keys: int = 10_000):
        self._max_keys = max(1, int(max_keys))
        self._data: Dict[str, MemoryEntry] = {}
        self._by_dependency: Dict[CacheDependency, Set[str]] = {}

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def get(self, key: str, *, now: datetime) -> Optional[MemoryEntry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            self._remove(key)
            return None
        return entry

    def set(
        self,
        key: str,
        payload: str,
        *,
        expires_at: datetime,
        dependencies: FrozenSet[CacheDependency] = frozenset(),
        now: datetime,
    ) -> None:
        if key in self._data:
            self._remove(key)
        elif len(self._data) >= self._max_keys:
            self._evict(now)

        self._data[key] = MemoryEntry(payload=payload, expires_at=expires_at, dependencies=dependencies)
        for dependency in dependencies:
            self._by_dependency.setdefault(dependency, set()).add(key)

    def delete(self, key: str) -> bool:
        return self._remove(key)

    def delete_matching(self, predicate) -> int:
        doomed = [key for key in self._data if predicate(key)]
        for key in doomed:
            self._remove(key)
        return len(doomed)

    def delete_by_pattern(self, pattern: str) -> int:
        return self.delete_matching(lambda key: pattern in key)

    def delete_by_prefix(self, prefix: str) -> int:
        return self.delete_matching(lambda key: key.startswith(prefix))

    def delete_by_dependency(self, dependency: CacheDependency) -> int:
        keys = self._by_dependency.pop(dependency, set())
        removed = 0
        for key in list(keys):
            if self._remove(key):
                removed += 1
        return removed

    def clear(self) -> int:
        count = len(self._data)
        self._data.clear()
        self._by_dependency.clear()
        return count

    def sweep(self, *, now: datetime) -> List[str]:
        """Physically drop expired entries; returns the removed keys."""
        expired = [key for key, entry in self._data.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)
        return expired

    def count_expired(self, *, now: datetime) -> int:
        return sum(1 for entry in self._data.values() if entry.is_expired(now))

    def _evict(self, now: datetime) -> None:
        if self.sweep(now=now):
            return
        # Oldest insertion first (dicts keep insertion order).
        self._remove(next(iter(self._data)))

    def _remove(self, key: str) -> bool:
        entry = self._data.pop(key, None)
        if entry is None:
            return False
        for dependency in entry.dependencies:
            keys = self._by_dependency.get(dependency)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._by_dependency[dependency]
        return True
