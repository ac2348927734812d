"""Cache key construction.

Every key is ``namespace:part1:part2...`` optionally followed by ``:`` and the
parameter bag encoded as compact, sorted-key JSON, so the same logical request
always yields the same key regardless of argument order.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from core.cache.errors import InvalidCacheKeyError

KEY_SEPARATOR = ":"


def encode_params(params: Mapping[str, Any]) -> str:
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


def build_key(namespace: str, *parts: Any, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build a deterministic cache key.

    >>> build_key("resultado_simulado", 42, 7)
    'resultado_simulado:42:7'
    >>> build_key("concurso_active", "c1", "apostilas", params={"page": 2, "area": "ti"})
    'concurso_active:c1:apostilas:{"area":"ti","page":2}'

    ``None`` parts are skipped. Empty parameter bags add nothing.
    """
    if not namespace or not str(namespace).strip():
        raise InvalidCacheKeyError("cache key namespace must not be empty")

    segments = [str(namespace)]
    for part in parts:
        if part is None:
            continue
        text = str(part)
        if not text:
            raise InvalidCacheKeyError(f"empty key segment for namespace {namespace!r}")
        segments.append(text)

    if params:
        segments.append(encode_params(params))

    return KEY_SEPARATOR.join(segments)


def validate_key(key: str) -> str:
    if not isinstance(key, str) or not key.strip():
        raise InvalidCacheKeyError("cache key must be a non-empty string")
    return key
