from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from invoicing import models
from invoicing.config import Settings
from invoicing.db import create_schema
from invoicing.deps import get_current_user
from invoicing.main import create_app
from invoicing.tenancy import TenantScope


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'invoicing.db'}",
        secret_key="test-secret",
        auto_create_schema=False,
        log_format="text",
    )


@pytest.fixture
def app(settings):
    create_schema(settings.database_url)
    application = create_app(settings)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def database(app):
    db = app.state.database
    await db.connect()
    try:
        yield db
    finally:
        await db.disconnect()


async def insert_tenant(database, subdomain, active=True):
    ttbl = models.Tenant.__table__
    return await database.execute(ttbl.insert().values(
        subdomain=subdomain, name=subdomain.title(), active=active, invoice_sequence=0,
    ))


async def insert_user(database, tenant_id, email):
    utbl = models.User.__table__
    return await database.execute(utbl.insert().values(
        tenant_id=tenant_id, email=email, name="Test User", role="ADMIN",
        hashed_password="not-a-real-hash", active=True,
    ))


async def insert_company(database, tenant_id, name="Acme Consulting", tax_rate=0):
    ctbl = models.Company.__table__
    return await database.execute(ctbl.insert().values(
        tenant_id=tenant_id, name=name, email="billing@acme.io", tax_rate=tax_rate,
    ))


async def insert_client(database, tenant_id, company_id, name="Globex Corp"):
    ctbl = models.Client.__table__
    return await database.execute(ctbl.insert().values(
        tenant_id=tenant_id, company_id=company_id, name=name,
        email=f"{name.lower().replace(' ', '.')}@client.io", active=True,
    ))


async def insert_invoice(
    database, seed, *, number, total_cents, amount_paid_cents=0, status="SENT",
    due_date=None, client_id=None,
):
    itbl = models.Invoice.__table__
    return await database.execute(itbl.insert().values(
        tenant_id=seed["tenant_id"],
        number=number,
        company_id=seed["company_id"],
        client_id=client_id or seed["client_id"],
        user_id=seed["user_id"],
        status=status,
        currency="USD",
        issue_date=date.today() - timedelta(days=30),
        due_date=due_date or date.today() + timedelta(days=30),
        subtotal_cents=total_cents,
        tax_rate=0,
        tax_cents=0,
        discount_cents=0,
        total_cents=total_cents,
        amount_paid_cents=amount_paid_cents,
    ))


@pytest.fixture
async def seed(database):
    tenant_id = await insert_tenant(database, "acme")
    user_id = await insert_user(database, tenant_id, "owner@acme.io")
    company_id = await insert_company(database, tenant_id)
    client_id = await insert_client(database, tenant_id, company_id)
    return {
        "tenant_id": tenant_id,
        "user_id": user_id,
        "company_id": company_id,
        "client_id": client_id,
    }


@pytest.fixture
async def other_seed(database):
    tenant_id = await insert_tenant(database, "globex")
    user_id = await insert_user(database, tenant_id, "owner@globex.io")
    company_id = await insert_company(database, tenant_id, name="Globex Holdings")
    client_id = await insert_client(database, tenant_id, company_id, name="Initech")
    return {
        "tenant_id": tenant_id,
        "user_id": user_id,
        "company_id": company_id,
        "client_id": client_id,
    }


@pytest.fixture
def scope(database, seed):
    return TenantScope(database, seed["tenant_id"])


@pytest.fixture
async def client(app, seed):
    async def _fake_user():
        return {
            "id": seed["user_id"],
            "email": "owner@acme.io",
            "name": "Test User",
            "role": "ADMIN",
            "tenant_id": seed["tenant_id"],
        }

    app.dependency_overrides[get_current_user] = _fake_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://acme.localhost") as ac:
        yield ac
