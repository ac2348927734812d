"""Default TTLs by key prefix.

Resolution order: explicit TTL argument, override from ``cache_config`` (exact
key, then the key namespace before the first colon), longest matching prefix
below, then the global default.
All values are minutes.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from core.cache.errors import InvalidCacheKeyError

PREFIX_TTL_MINUTES: Dict[str, float] = {
    "progresso_usuario:": 60,
    "resultado_simulado:": 120,
    "questoes_semana:": 1440,
    "conteudo_apostila:": 2880,
    "plano_estudo:": 1440,
    "concurso_active:": 5,
    "guru:activities:": 2,
    "guru:enhanced-stats:": 5,
}


class TtlPolicy:
    def __init__(
        self,
        *,
        default_minutes: float = 30,
        prefixes: Optional[Mapping[str, float]] = None,
        overrides: Optional[Mapping[str, float]] = None,
    ):
        if default_minutes <= 0:
            raise ValueError("default TTL must be positive")
        self.default_minutes = float(default_minutes)
        source = PREFIX_TTL_MINUTES if prefixes is None else prefixes
        # Longest prefix wins.
        self._prefixes = sorted(source.items(), key=lambda item: len(item[0]), reverse=True)
        self._overrides: Dict[str, float] = dict(overrides or {})

    @property
    def overrides(self) -> Dict[str, float]:
        return dict(self._overrides)

    def replace_overrides(self, overrides: Mapping[str, float]) -> None:
        self._overrides = {key: float(ttl) for key, ttl in overrides.items() if ttl and ttl > 0}

    def resolve(self, key: str, ttl_minutes: Optional[float] = None) -> float:
        if ttl_minutes is not None:
            if ttl_minutes <= 0:
                raise InvalidCacheKeyError(f"ttl_minutes must be positive, got {ttl_minutes!r}")
            return float(ttl_minutes)

        override = self._overrides.get(key)
        if override is None:
            # An override registered for the namespace covers every key in it.
            override = self._overrides.get(key.split(":", 1)[0])
        if override is not None:
            return override

        for prefix, minutes in self._prefixes:
            if key.startswith(prefix):
                return float(minutes)

        return self.default_minutes
