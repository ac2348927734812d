from datetime import timedelta

import pytest

from core.cache.service import utcnow
from core.cache.store import SqlAlchemyCacheStore
from scripts.clear_cache import clear_cache


@pytest.mark.asyncio
async def test_clear_cache_removes_only_expired_rows(async_session_maker):
    store = SqlAlchemyCacheStore(async_session_maker)
    now = utcnow()
    await store.set("short:1", "1", expires_at=now - timedelta(minutes=1), dependencies=[], now=now)
    await store.set("long:1", "2", expires_at=now + timedelta(hours=1), dependencies=[], now=now)

    assert await clear_cache(async_session_maker) == 1
    assert await store.get("long:1", now=now) is not None


@pytest.mark.asyncio
async def test_clear_cache_all(async_session_maker):
    store = SqlAlchemyCacheStore(async_session_maker)
    now = utcnow()
    await store.set("long:1", "2", expires_at=now + timedelta(hours=1), dependencies=[], now=now)

    assert await clear_cache(async_session_maker, purge_all=True) == 1
    assert await store.get("long:1", now=now) is None
