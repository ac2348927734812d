import pytest

from core.cache.errors import InvalidCacheKeyError
from core.cache.ttl import TtlPolicy


@pytest.mark.parametrize(
    "key,expected",
    [
        ("progresso_usuario:1", 60),
        ("resultado_simulado:1:2", 120),
        ("questoes_semana:2026:2", 1440),
        ("conteudo_apostila:9", 2880),
        ("plano_estudo:1", 1440),
        ("concurso_active:c1:apostilas", 5),
        ("guru:activities:user:1:limit:10", 2),
        ("guru:enhanced-stats:user:1", 5),
        ("something_else:1", 30),
    ],
)
def test_prefix_defaults(key, expected):
    assert TtlPolicy().resolve(key) == expected


def test_explicit_ttl_wins():
    policy = TtlPolicy(overrides={"progresso_usuario:1": 15})
    assert policy.resolve("progresso_usuario:1", 3) == 3


def test_longest_prefix_wins():
    policy = TtlPolicy(prefixes={"guru:": 10, "guru:activities:": 2})
    assert policy.resolve("guru:activities:user:1") == 2
    assert policy.resolve("guru:other") == 10


def test_exact_override_beats_prefix():
    policy = TtlPolicy(overrides={"progresso_usuario:1": 15})
    assert policy.resolve("progresso_usuario:1") == 15
    assert policy.resolve("progresso_usuario:2") == 60


def test_namespace_override_covers_every_key():
    policy = TtlPolicy(overrides={"progresso_usuario": 7})
    assert policy.resolve("progresso_usuario:1") == 7
    assert policy.resolve("progresso_usuario:2") == 7


def test_configured_default():
    assert TtlPolicy(default_minutes=45).resolve("unknown:1") == 45


def test_replace_overrides_drops_non_positive_values():
    policy = TtlPolicy()
    policy.replace_overrides({"a": 10, "b": 0})
    assert policy.overrides == {"a": 10.0}


@pytest.mark.parametrize("ttl", [0, -1])
def test_non_positive_ttl_is_rejected(ttl):
    with pytest.raises(InvalidCacheKeyError):
        TtlPolicy().resolve("progresso_usuario:1", ttl)


def test_non_positive_default_is_rejected():
    with pytest.raises(ValueError):
        TtlPolicy(default_minutes=0)
