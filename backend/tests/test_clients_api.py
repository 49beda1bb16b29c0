import pytest
from sqlalchemy import select

from invoicing import models

from conftest import insert_client, insert_invoice


@pytest.mark.anyio
async def test_client_crud(client, seed):
    r = await client.post(
        "/clients/",
        json={"company_id": seed["company_id"], "name": "Umbrella", "email": "ap@umbrella.io", "city": "Raccoon City"},
    )
    assert r.status_code == 201, r.text
    cid = r.json()["id"]
    assert r.json()["active"] is True

    r = await client.patch(f"/clients/{cid}", json={"phone": "+1 555 0100", "active": False})
    assert r.status_code == 200
    assert r.json()["phone"] == "+1 555 0100"
    assert r.json()["active"] is False

    r = await client.get("/clients/", params={"active": "false"})
    assert [c["name"] for c in r.json()] == ["Umbrella"]

    r = await client.get("/clients/", params={"q": "glob"})
    assert [c["name"] for c in r.json()] == ["Globex Corp"]

    assert (await client.delete(f"/clients/{cid}")).status_code == 204
    r = await client.get(f"/clients/{cid}")
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_client_name_unique_per_company(client, seed):
    r = await client.post(
        "/clients/", json={"company_id": seed["company_id"], "name": "Globex Corp", "email": "x@globex.io"},
    )
    assert r.status_code == 409
    assert r.json()["code"] == "CLIENT_NAME_TAKEN"

    r = await client.post(
        "/clients/", json={"company_id": seed["company_id"], "name": "Initrode", "email": "x@initrode.io"},
    )
    r = await client.patch(f"/clients/{r.json()['id']}", json={"name": "Globex Corp"})
    assert r.status_code == 409


@pytest.mark.anyio
async def test_patch_rejects_null_required_fields(client, seed):
    r = await client.patch(f"/clients/{seed['client_id']}", json={"name": None})
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_client_in_foreign_company(client, seed, other_seed):
    r = await client.post(
        "/clients/", json={"company_id": other_seed["company_id"], "name": "Sneaky", "email": "s@sneaky.io"},
    )
    assert r.status_code == 400
    assert (await client.get(f"/clients/{other_seed['client_id']}")).status_code == 404


@pytest.mark.anyio
async def test_client_detail_has_stats(client, database, seed):
    await insert_invoice(database, seed, number="C-1", total_cents=10_000, amount_paid_cents=10_000, status="PAID")
    await insert_invoice(database, seed, number="C-2", total_cents=5_000, amount_paid_cents=1_000, status="PARTIAL")

    r = await client.get(f"/clients/{seed['client_id']}")
    assert r.status_code == 200
    body = r.json()
    assert body["stats"] == {"total_invoiced_cents": 15_000, "total_paid_cents": 11_000, "invoice_count": 2}
    assert sorted(i["number"] for i in body["recent_invoices"]) == ["C-1", "C-2"]


@pytest.mark.anyio
async def test_companies(client, seed):
    r = await client.post("/companies/", json={"name": "Acme Labs", "email": "labs@acme.io", "tax_rate": "20"})
    assert r.status_code == 201
    cid = r.json()["id"]
    r = await client.get(f"/companies/{cid}")
    assert r.json()["name"] == "Acme Labs"
    r = await client.get("/companies/")
    assert [c["name"] for c in r.json()] == ["Acme Consulting", "Acme Labs"]

    r = await client.post("/companies/", json={"name": "Bad", "email": "b@bad.io", "tax_rate": "120"})
    assert r.status_code == 400


@pytest.mark.anyio
async def test_deleting_client_removes_its_invoices(client, database, seed):
    umbrella = await insert_client(database, seed["tenant_id"], seed["company_id"], name="Umbrella")
    iid = await insert_invoice(database, seed, number="C-9", total_cents=10_000, client_id=umbrella)
    await insert_invoice(database, seed, number="C-10", total_cents=2_000)
    assert (await client.post(f"/payments/{iid}", json={"amount_cents": 1_000})).status_code == 201

    assert (await client.delete(f"/clients/{umbrella}")).status_code == 204

    assert (await client.get(f"/invoices/{iid}")).status_code == 404
    listing = (await client.get("/invoices/")).json()
    assert [i["number"] for i in listing["invoices"]] == ["C-10"]
    assert (await client.get("/dashboard/")).json()["overview"]["invoice_count"] == 1
    ptbl = models.Payment.__table__
    assert await database.fetch_all(select(ptbl).where(ptbl.c.invoice_id == iid)) == []


@pytest.mark.anyio
async def test_name_claimed_between_check_and_insert(client, seed, monkeypatch):
    from invoicing.routers import clients as clients_router

    async def _no_check(*args, **kwargs):
        return None

    monkeypatch.setattr(clients_router, "_ensure_unique_name", _no_check)
    r = await client.post(
        "/clients/", json={"company_id": seed["company_id"], "name": "Globex Corp", "email": "x@globex.io"},
    )
    assert r.status_code == 409
    assert r.json()["code"] == "CLIENT_NAME_TAKEN"
