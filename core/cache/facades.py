"""Named cache wrappers for the study features.

Each facade fixes the key shape, the TTL and the dependency tags of one use
case so callers never build keys by hand.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from core.cache import dependencies as deps
from core.cache.dependencies import CacheDependency, DependencyType
from core.cache.keys import KEY_SEPARATOR, build_key
from core.cache.service import CacheService

logger = logging.getLogger(__name__)


class _Facade:
    def __init__(self, cache: CacheService):
        self._cache = cache


class UserProgressCache(_Facade):
    NAMESPACE = "progresso_usuario"
    TTL_MINUTES = 60

    def key(self, usuario_id) -> str:
        return build_key(self.NAMESPACE, usuario_id)

    async def get(self, usuario_id) -> Any:
        return await self._cache.get(self.key(usuario_id))

    async def set(self, usuario_id, progresso: Any) -> None:
        await self._cache.set(
            self.key(usuario_id),
            progresso,
            ttl_minutes=self.TTL_MINUTES,
            dependencies=[deps.user(usuario_id)],
        )


class ExamResultCache(_Facade):
    NAMESPACE = "resultado_simulado"
    TTL_MINUTES = 120

    def key(self, usuario_id, simulado_id) -> str:
        return build_key(self.NAMESPACE, usuario_id, simulado_id)

    async def get(self, usuario_id, simulado_id) -> Any:
        return await self._cache.get(self.key(usuario_id, simulado_id))

    async def set(self, usuario_id, simulado_id, resultado: Any) -> None:
        await self._cache.set(
            self.key(usuario_id, simulado_id),
            resultado,
            ttl_minutes=self.TTL_MINUTES,
            dependencies=[deps.user(usuario_id), deps.simulado(simulado_id)],
        )


class WeeklyQuestionsCache(_Facade):
    NAMESPACE = "questoes_semana"
    TTL_MINUTES = 1440
    DEPENDENCY = CacheDependency(DependencyType.GLOBAL, "questoes_semana")

    def key(self, ano: int, semana: int) -> str:
        return build_key(self.NAMESPACE, ano, semana)

    async def get(self, ano: int, semana: int) -> Any:
        return await self._cache.get(self.key(ano, semana))

    async def set(self, ano: int, semana: int, questoes: Any) -> None:
        await self._cache.set(
            self.key(ano, semana),
            questoes,
            ttl_minutes=self.TTL_MINUTES,
            dependencies=[self.DEPENDENCY],
        )

    async def invalidate_all(self) -> int:
        return await self._cache.invalidate(self.DEPENDENCY)


class ApostilaContentCache(_Facade):
    NAMESPACE = "conteudo_apostila"
    TTL_MINUTES = 2880

    def key(self, apostila_id) -> str:
        return build_key(self.NAMESPACE, apostila_id)

    async def get(self, apostila_id) -> Any:
        return await self._cache.get(self.key(apostila_id))

    async def set(self, apostila_id, conteudo: Any) -> None:
        await self._cache.set(
            self.key(apostila_id),
            conteudo,
            ttl_minutes=self.TTL_MINUTES,
            dependencies=[deps.apostila(apostila_id)],
        )


class StudyPlanCache(_Facade):
    NAMESPACE = "plano_estudo"
    TTL_MINUTES = 60

    def key(self, usuario_id) -> str:
        return build_key(self.NAMESPACE, usuario_id)

    async def get(self, usuario_id) -> Any:
        return await self._cache.get(self.key(usuario_id))

    async def set(self, usuario_id, plano: Any, *, plano_id=None) -> None:
        tags = [deps.user(usuario_id)]
        if plano_id is not None:
            tags.append(deps.plano(plano_id))
        await self._cache.set(
            self.key(usuario_id),
            plano,
            ttl_minutes=self.TTL_MINUTES,
            dependencies=tags,
        )


class ConcursoCache(_Facade):
    """Per-concurso data lists (apostilas, simulados, flashcards...).

    Keys: ``concurso_active:<concurso_id>:<data_type>[:<filters json>]``.
    """

    NAMESPACE = "concurso_active"
    TTL_MINUTES = 5
    BASIC_TTL_MINUTES = 10

    def key(self, concurso_id, data_type: str, filters: Optional[Mapping[str, Any]] = None) -> str:
        return build_key(self.NAMESPACE, concurso_id, data_type, params=filters)

    async def get(self, concurso_id, data_type: str, filters: Optional[Mapping[str, Any]] = None) -> Any:
        return await self._cache.get(self.key(concurso_id, data_type, filters))

    async def set(
        self,
        concurso_id,
        data_type: str,
        data: Any,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        usuario_id=None,
    ) -> None:
        tags = [deps.concurso(concurso_id)]
        if usuario_id is not None:
            tags.append(deps.user(usuario_id))
        ttl = self.BASIC_TTL_MINUTES if data_type == "basic" else self.TTL_MINUTES
        await self._cache.set(
            self.key(concurso_id, data_type, filters),
            data,
            ttl_minutes=ttl,
            dependencies=tags,
        )

    async def get_concurso_data(self, concurso_id) -> Any:
        return await self.get(concurso_id, "basic")

    async def set_concurso_data(self, concurso_id, data: Any) -> None:
        await self.set(concurso_id, "basic", data)

    async def get_user_scoped(self, concurso_id, data_type: str, usuario_id=None) -> Any:
        return await self.get(concurso_id, data_type, self._user_filters(usuario_id))

    async def set_user_scoped(self, concurso_id, data_type: str, data: Any, usuario_id=None) -> None:
        """Statistics and dashboards are cached per user when one is given."""
        await self.set(
            concurso_id,
            data_type,
            data,
            self._user_filters(usuario_id),
            usuario_id=usuario_id,
        )

    async def invalidate_concurso(self, concurso_id) -> int:
        removed = await self._cache.invalidate(deps.concurso(concurso_id))
        removed += await self._cache.clear_by_prefix(build_key(self.NAMESPACE, concurso_id) + KEY_SEPARATOR)
        logger.info(f"Concurso cache invalidated: {concurso_id}")
        return removed

    async def invalidate_data_type(self, concurso_id, data_type: str) -> int:
        key = build_key(self.NAMESPACE, concurso_id, data_type)
        removed = int(await self._cache.exists(key))
        await self._cache.delete(key)
        removed += await self._cache.clear_by_prefix(key + KEY_SEPARATOR)
        logger.info(f"Concurso cache invalidated: {concurso_id} ({data_type})")
        return removed

    async def clear_all(self) -> int:
        return await self._cache.clear_by_prefix(self.NAMESPACE + KEY_SEPARATOR)

    @staticmethod
    def _user_filters(usuario_id) -> Optional[Dict[str, Any]]:
        if usuario_id is None:
            return None
        return {"usuario_id": str(usuario_id)}


class DashboardCache(_Facade):
    """Guru dashboard aggregates.

    ``get_or_compute_*`` return ``(value, cache_hit)`` so the endpoint can
    report the hit in an ``x-cache-hit`` header.
    """

    STATS_TTL_MINUTES = 5
    ACTIVITIES_TTL_MINUTES = 2

    def enhanced_stats_key(self, usuario_id, concurso_id=None) -> str:
        return build_key("guru", "enhanced-stats", *self._scope(usuario_id, concurso_id))

    def activities_key(self, usuario_id, *, concurso_id=None, kind: Optional[str] = None, limit: int = 10) -> str:
        return build_key(
            "guru",
            "activities",
            kind,
            *self._scope(usuario_id, concurso_id),
            "limit",
            int(limit),
        )

    async def get_or_compute_enhanced_stats(
        self,
        usuario_id,
        compute: Callable[[], Any],
        *,
        concurso_id=None,
    ) -> Tuple[Any, bool]:
        return await self._cache.get_or_set_with_status(
            self.enhanced_stats_key(usuario_id, concurso_id),
            compute,
            ttl_minutes=self.STATS_TTL_MINUTES,
            dependencies=self._tags(usuario_id, concurso_id),
        )

    async def get_or_compute_activities(
        self,
        usuario_id,
        compute: Callable[[], Any],
        *,
        concurso_id=None,
        kind: Optional[str] = None,
        limit: int = 10,
    ) -> Tuple[Any, bool]:
        return await self._cache.get_or_set_with_status(
            self.activities_key(usuario_id, concurso_id=concurso_id, kind=kind, limit=limit),
            compute,
            ttl_minutes=self.ACTIVITIES_TTL_MINUTES,
            dependencies=self._tags(usuario_id, concurso_id),
        )

    @staticmethod
    def _scope(usuario_id, concurso_id):
        parts = ["user", usuario_id]
        if concurso_id is not None:
            parts.extend(["concurso", concurso_id])
        return parts

    @staticmethod
    def _tags(usuario_id, concurso_id):
        tags = [deps.user(usuario_id)]
        if concurso_id is not None:
            tags.append(deps.concurso(concurso_id))
        return tags
