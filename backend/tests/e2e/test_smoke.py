import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.headers["content-type"] == "application/json; charset=utf-8"


@pytest.mark.asyncio
async def test_schema_endpoint(client: AsyncClient):
    r = await client.get("/health/schema")
    assert r.status_code == 200
    assert r.json()["missing_tables"] == []


@pytest.mark.asyncio
async def test_favicon_and_root(client: AsyncClient):
    assert (await client.get("/favicon.ico")).status_code == 204
    assert (await client.get("/", follow_redirects=False)).status_code == 307
