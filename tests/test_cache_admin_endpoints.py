import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.db import get_async_db
from core.cache import CacheService
from core.cache.store import SqlAlchemyCacheStore
from routers.cache_admin.api import router

SECRET = "cache-admin-secret"
HEADERS = {"X-Admin-Secret": SECRET}


@pytest_asyncio.fixture
async def cache(async_session_maker, clock):
    return CacheService(SqlAlchemyCacheStore(async_session_maker), clock=clock)


@pytest_asyncio.fixture
async def client(async_session_maker, cache, monkeypatch):
    monkeypatch.setenv("CACHE_ADMIN_SECRET", SECRET)

    app = FastAPI()
    app.include_router(router)
    app.state.cache_service = cache

    async def override_get_async_db():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"X-Admin-Secret": "wrong"}])
async def test_requires_admin_secret(client, headers):
    response = await client.get("/admin/cache/stats", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unset_secret_disables_admin_api(client, monkeypatch):
    monkeypatch.setenv("CACHE_ADMIN_SECRET", "")

    response = await client.get("/admin/cache/stats", headers={"X-Admin-Secret": ""})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_stats(client, cache):
    await cache.set("progresso_usuario:1", {"v": 1})
    await cache.get("progresso_usuario:1")

    response = await client.get("/admin/cache/stats", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["memory_count"] == 1
    assert body["persistent_count"] == 1
    assert body["hits"] == 1
    assert body["hit_rate"] == 100.0
    assert body["persistent_available"] is True


@pytest.mark.asyncio
async def test_clear_by_prefix(client, cache):
    await cache.set("progresso_usuario:1", 1)
    await cache.set("progresso_usuario:2", 2)
    await cache.set("resultado_simulado:1", 3)

    response = await client.post("/admin/cache/clear", json={"prefix": "progresso_usuario"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["removed"] == 4
    assert list(cache.memory.keys()) == ["resultado_simulado:1"]


@pytest.mark.asyncio
async def test_clear_by_pattern(client, cache):
    await cache.set("guru:enhanced-stats:user:7", {})
    await cache.set("guru:enhanced-stats:user:8", {})

    response = await client.post("/admin/cache/clear", json={"pattern": "user:7"}, headers=HEADERS)

    assert response.status_code == 200
    assert list(cache.memory.keys()) == ["guru:enhanced-stats:user:8"]


@pytest.mark.asyncio
async def test_clear_without_criteria_clears_everything(client, cache):
    await cache.set("a:1", 1)
    await cache.set("b:1", 2)

    response = await client.post("/admin/cache/clear", json={}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["message"] == "All cache entries cleared"
    assert len(cache.memory) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"pattern": ""}, {"prefix": ""}, {"pattern": "a", "prefix": "b"}],
)
async def test_clear_rejects_invalid_criteria(client, cache, payload):
    await cache.set("a:1", 1)

    response = await client.post("/admin/cache/clear", json=payload, headers=HEADERS)

    assert response.status_code == 400
    assert "a:1" in cache.memory


@pytest.mark.asyncio
async def test_invalidate_by_entity(client, cache):
    await cache.set("progresso_usuario:1", 1, dependencies=[("user", "1")])
    await cache.set("progresso_usuario:2", 2, dependencies=[("user", "2")])

    response = await client.post("/admin/cache/invalidate", json={"type": "user", "id": "1"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["removed"] == 2
    assert list(cache.memory.keys()) == ["progresso_usuario:2"]


@pytest.mark.asyncio
async def test_invalidate_rejects_unknown_type(client):
    response = await client.post("/admin/cache/invalidate", json={"type": "aluno", "id": "1"}, headers=HEADERS)

    assert response.status_code == 400
    assert "aluno" in response.json()["detail"]


@pytest.mark.asyncio
async def test_purge_expired(client, cache, clock):
    await cache.set("short:1", 1, ttl_minutes=1)
    await cache.set("long:1", 2, ttl_minutes=60)
    clock.advance(minutes=5)

    response = await client.post("/admin/cache/purge-expired", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["removed"] == 1


@pytest.mark.asyncio
async def test_settings(client):
    response = await client.get("/admin/cache/settings", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["default_ttl_minutes"] == 30
    assert body["prefix_ttl_minutes"]["conteudo_apostila:"] == 2880
    assert body["ttl_overrides"] == {}


@pytest.mark.asyncio
async def test_config_crud_reloads_overrides(client, cache):
    created = await client.post(
        "/admin/cache/config",
        json={"cache_key": "progresso_usuario", "ttl_minutes": 15, "description": "menor TTL"},
        headers=HEADERS,
    )
    assert created.status_code == 201
    config_id = created.json()["id"]
    assert cache.ttl_policy.resolve("progresso_usuario:1") == 15

    duplicate = await client.post(
        "/admin/cache/config",
        json={"cache_key": "progresso_usuario", "ttl_minutes": 20},
        headers=HEADERS,
    )
    assert duplicate.status_code == 409

    listed = await client.get("/admin/cache/config", headers=HEADERS)
    assert [row["cache_key"] for row in listed.json()] == ["progresso_usuario"]

    updated = await client.put(f"/admin/cache/config/{config_id}", json={"ttl_minutes": 25}, headers=HEADERS)
    assert updated.status_code == 200
    assert updated.json()["ttl_minutes"] == 25
    assert updated.json()["description"] == "menor TTL"
    assert cache.ttl_policy.resolve("progresso_usuario:1") == 25

    deleted = await client.delete(f"/admin/cache/config/{config_id}", headers=HEADERS)
    assert deleted.status_code == 200
    assert cache.ttl_policy.resolve("progresso_usuario:1") == 60

    missing = await client.delete(f"/admin/cache/config/{config_id}", headers=HEADERS)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_config_rejects_non_positive_ttl(client):
    response = await client.post(
        "/admin/cache/config",
        json={"cache_key": "progresso_usuario", "ttl_minutes": 0},
        headers=HEADERS,
    )

    assert response.status_code == 422
