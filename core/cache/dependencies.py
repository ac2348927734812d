"""Dependency tags and entity-level invalidation.

A cached entry can be tagged with any number of ``(type, id)`` dependencies.
Invalidating a dependency removes every entry carrying that tag from both tiers,
so an event such as "user 42 changed" purges every aggregate derived from user
42's data without the caller knowing the individual keys.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional, Tuple, Union

from core.cache.errors import InvalidCacheKeyError
from core.cache.keys import build_key
from core.logging import log_with_context

if TYPE_CHECKING:
    from core.cache.service import CacheService

logger = logging.getLogger(__name__)


class DependencyType(str, Enum):
    USER = "user"
    CONCURSO = "concurso"
    SIMULADO = "simulado"
    QUESTAO = "questao"
    APOSTILA = "apostila"
    CATEGORIA = "categoria"
    PLANO = "plano"
    GLOBAL = "global"


@dataclass(frozen=True)
class CacheDependency:
    type: DependencyType
    id: str

    def __post_init__(self):
        # Accept plain strings for both fields; store canonical forms.
        try:
            dep_type = DependencyType(self.type)
        except ValueError:
            raise InvalidCacheKeyError(f"unknown dependency type: {self.type!r}") from None
        dep_id = "" if self.id is None else str(self.id)
        if not dep_id.strip():
            raise InvalidCacheKeyError("dependency id must not be empty")
        object.__setattr__(self, "type", dep_type)
        object.__setattr__(self, "id", dep_id)

    @property
    def tag(self) -> str:
        return f"{self.type.value}:{self.id}"

    @classmethod
    def from_tag(cls, tag: str) -> "CacheDependency":
        dep_type, sep, dep_id = tag.partition(":")
        if not sep:
            raise InvalidCacheKeyError(f"malformed dependency tag: {tag!r}")
        return cls(dep_type, dep_id)


DependencyLike = Union[CacheDependency, Tuple[str, str]]


def normalize_dependencies(
    dependencies: Optional[Iterable[DependencyLike]],
) -> frozenset:
    """Coerce ``(type, id)`` tuples and ``CacheDependency`` values into a frozenset."""
    if not dependencies:
        return frozenset()
    normalized = set()
    for dependency in dependencies:
        if isinstance(dependency, CacheDependency):
            normalized.add(dependency)
        else:
            dep_type, dep_id = dependency
            normalized.add(CacheDependency(dep_type, dep_id))
    return frozenset(normalized)


def user(usuario_id) -> CacheDependency:
    return CacheDependency(DependencyType.USER, usuario_id)


def concurso(concurso_id) -> CacheDependency:
    return CacheDependency(DependencyType.CONCURSO, concurso_id)


def simulado(simulado_id) -> CacheDependency:
    return CacheDependency(DependencyType.SIMULADO, simulado_id)


def apostila(apostila_id) -> CacheDependency:
    return CacheDependency(DependencyType.APOSTILA, apostila_id)


def plano(plano_id) -> CacheDependency:
    return CacheDependency(DependencyType.PLANO, plano_id)


class CacheInvalidationStrategy:
    """Entity-level invalidation on top of ``CacheService.invalidate``.

    Each helper drops the dependency tag and then clears the legacy key pattern
    (``user_<id>``, ``concurso_<id>``...) for keys that were written without
    tags. Failures are logged and never raised: a stale cache entry is
    preferable to failing the write that triggered the invalidation.
    """

    def __init__(self, cache: "CacheService"):
        self._cache = cache

    async def invalidate_by_dependency(self, dependency: CacheDependency) -> None:
        try:
            await self._cache.invalidate(dependency)
        except Exception as exc:
            log_with_context(
                logger,
                logging.ERROR,
                "CACHE_INVALIDATE_FAILED",
                dependency=dependency.tag,
                error=exc,
            )

    async def invalidate_by_pattern(self, pattern: str) -> None:
        try:
            await self._cache.clear_by_pattern(pattern)
        except Exception as exc:
            log_with_context(
                logger,
                logging.ERROR,
                "CACHE_INVALIDATE_FAILED",
                pattern=pattern,
                error=exc,
            )

    async def invalidate_user_cache(self, usuario_id) -> None:
        await self.invalidate_by_dependency(user(usuario_id))
        await self.invalidate_by_pattern(f"user_{usuario_id}")

    async def invalidate_concurso_cache(self, concurso_id) -> None:
        await self.invalidate_by_dependency(concurso(concurso_id))
        await self.invalidate_by_pattern(f"concurso_{concurso_id}")

    async def invalidate_simulado_cache(self, simulado_id) -> None:
        await self.invalidate_by_dependency(simulado(simulado_id))
        await self.invalidate_by_pattern(f"simulado_{simulado_id}")

    async def invalidate_apostila_cache(self, apostila_id) -> None:
        await self.invalidate_by_dependency(apostila(apostila_id))
        await self.invalidate_by_pattern(f"apostila_{apostila_id}")
        try:
            await self._cache.delete(build_key("conteudo_apostila", apostila_id))
        except Exception as exc:
            log_with_context(
                logger,
                logging.ERROR,
                "CACHE_INVALIDATE_FAILED",
                apostila_id=apostila_id,
                error=exc,
            )
