import pytest
from httpx import ASGITransport, AsyncClient


@pytest.fixture
async def root(app, database):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as ac:
        yield ac


@pytest.mark.anyio
async def test_create_tenant_then_resolve_it(app, root):
    r = await root.post("/tenants/", json={"subdomain": "initech", "name": "Initech", "emoji": "📎"})
    assert r.status_code == 201, r.text
    assert r.json()["active"] is True

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://initech.localhost") as ac:
        r = await ac.get("/tenants/current")
    assert r.status_code == 200
    assert r.json()["name"] == "Initech"


@pytest.mark.anyio
async def test_subdomain_taken(root):
    body = {"subdomain": "initech", "name": "Initech"}
    assert (await root.post("/tenants/", json=body)).status_code == 201
    r = await root.post("/tenants/", json=body)
    assert r.status_code == 409
    assert r.json()["code"] == "SUBDOMAIN_TAKEN"


@pytest.mark.anyio
async def test_subdomain_must_be_a_dns_label(root):
    r = await root.post("/tenants/", json={"subdomain": "Not Valid", "name": "x"})
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_current_tenant_without_subdomain(root):
    r = await root.get("/tenants/current")
    assert r.status_code == 404
    assert r.json()["code"] == "TENANT_NOT_FOUND"


@pytest.mark.anyio
async def test_health(root):
    r = await root.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
