import pytest

import config
from core.cache.factory import create_cache_service
from core.cache.redis_store import RedisCacheStore
from core.cache.store import SqlAlchemyCacheStore, SqlAlchemyTtlOverrideSource


def test_memory_provider_uses_cache_table():
    cache = create_cache_service("memory")

    assert isinstance(cache._store, SqlAlchemyCacheStore)
    assert isinstance(cache._ttl_overrides_source, SqlAlchemyTtlOverrideSource)


def test_redis_provider(monkeypatch):
    monkeypatch.setattr(config, "REDIS_URL", "redis://localhost:6379/5")
    monkeypatch.setattr(config, "REDIS_KEY_PREFIX", "teste:")

    cache = create_cache_service("redis")

    assert isinstance(cache._store, RedisCacheStore)
    assert cache._store._entry_key("a:1") == "teste:entry:a:1"
    assert isinstance(cache._ttl_overrides_source, SqlAlchemyTtlOverrideSource)


def test_none_provider_is_memory_only():
    cache = create_cache_service("none")

    assert cache._store is None
    assert cache._ttl_overrides_source is None


def test_settings_come_from_config(monkeypatch):
    monkeypatch.setattr(config, "CACHE_PROVIDER", "none")
    monkeypatch.setattr(config, "CACHE_DEFAULT_TTL", 45)
    monkeypatch.setattr(config, "CACHE_COALESCE_COMPUTE", True)

    cache = create_cache_service()

    assert cache._store is None
    assert cache._ttl_overrides_source is None
    assert cache.ttl_policy.default_minutes == 45
    assert cache._coalesce is True


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        create_cache_service("memcached")
