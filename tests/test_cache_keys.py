import pytest

from core.cache.errors import InvalidCacheKeyError
from core.cache.keys import build_key, encode_params, validate_key


def test_build_key_joins_parts():
    assert build_key("resultado_simulado", 42, "s-7") == "resultado_simulado:42:s-7"


def test_build_key_skips_none_parts():
    assert build_key("guru", "activities", None, "user", 7) == "guru:activities:user:7"


def test_params_are_order_independent():
    first = build_key("concurso_active", "c1", "apostilas", params={"page": 2, "area": "ti"})
    second = build_key("concurso_active", "c1", "apostilas", params={"area": "ti", "page": 2})
    assert first == second
    assert first == 'concurso_active:c1:apostilas:{"area":"ti","page":2}'


def test_empty_params_add_nothing():
    assert build_key("concurso_active", "c1", "basic", params={}) == "concurso_active:c1:basic"


def test_encode_params_stringifies_unknown_types():
    from datetime import date

    assert encode_params({"dia": date(2026, 1, 5)}) == '{"dia":"2026-01-05"}'


@pytest.mark.parametrize("namespace", ["", "   ", None])
def test_empty_namespace_is_rejected(namespace):
    with pytest.raises(InvalidCacheKeyError):
        build_key(namespace, 1)


def test_empty_segment_is_rejected():
    with pytest.raises(InvalidCacheKeyError):
        build_key("progresso_usuario", "")


def test_invalid_key_error_is_value_error():
    with pytest.raises(ValueError):
        validate_key("")
    assert validate_key("plano_estudo:1") == "plano_estudo:1"
