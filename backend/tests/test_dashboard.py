from datetime import date, timedelta

import pytest

from invoicing import reporting

from conftest import insert_client, insert_company, insert_invoice


@pytest.fixture
async def book(database, seed):
    """A small ledger: one overdue, one paid, one draft, one partial."""
    past = date.today() - timedelta(days=10)
    umbrella = await insert_client(database, seed["tenant_id"], seed["company_id"], name="Umbrella")
    ids = {
        "overdue": await insert_invoice(database, seed, number="D-1", total_cents=50_000, due_date=past),
        "paid": await insert_invoice(
            database, seed, number="D-2", total_cents=20_000, amount_paid_cents=20_000, status="PAID", due_date=past,
        ),
        "draft": await insert_invoice(database, seed, number="D-3", total_cents=7_000, status="DRAFT", due_date=past),
        "partial": await insert_invoice(
            database, seed, number="D-4", total_cents=100_000, amount_paid_cents=40_000, status="PARTIAL",
            client_id=umbrella,
        ),
    }
    return {**ids, "umbrella": umbrella}


@pytest.mark.anyio
async def test_overview(scope, book):
    overview = await reporting.invoice_overview(scope)
    assert overview["total_revenue_cents"] == 177_000
    assert overview["total_paid_cents"] == 60_000
    assert overview["total_outstanding_cents"] == 117_000
    assert overview["invoice_count"] == 4
    assert overview["expense_count"] == 0


@pytest.mark.anyio
async def test_revenue_by_status(scope, book):
    rows = await reporting.revenue_by_status(scope)
    assert {r["status"]: (r["total_cents"], r["count"]) for r in rows} == {
        "DRAFT": (7_000, 1),
        "PAID": (20_000, 1),
        "PARTIAL": (100_000, 1),
        "SENT": (50_000, 1),
    }


@pytest.mark.anyio
async def test_overdue_excludes_paid_and_draft(scope, book):
    rows = await reporting.overdue_invoices(scope)
    assert [r["number"] for r in rows] == ["D-1"]
    assert rows[0]["client_name"] == "Globex Corp"

    # the partial invoice falls due later
    later = await reporting.overdue_invoices(scope, today=date.today() + timedelta(days=60))
    assert sorted(r["number"] for r in later) == ["D-1", "D-4"]


@pytest.mark.anyio
async def test_top_clients(scope, book, seed):
    rows = await reporting.top_clients(scope)
    assert [r["client"]["id"] for r in rows] == [book["umbrella"], seed["client_id"]]
    assert rows[0]["total_cents"] == 100_000
    assert rows[1]["invoice_count"] == 3


@pytest.mark.anyio
async def test_company_filter(database, scope, seed, book):
    labs = await insert_company(database, seed["tenant_id"], name="Acme Labs")
    overview = await reporting.invoice_overview(scope, company_id=labs)
    assert overview["invoice_count"] == 0
    assert overview["total_revenue_cents"] == 0
    assert await reporting.recent_invoices(scope, company_id=labs) == []


@pytest.mark.anyio
async def test_aggregates_ignore_other_tenants(database, scope, book, other_seed):
    await insert_invoice(database, other_seed, number="G-1", total_cents=999_999, due_date=date(2020, 1, 1))
    overview = await reporting.invoice_overview(scope)
    assert overview["total_revenue_cents"] == 177_000
    assert "G-1" not in [r["number"] for r in await reporting.overdue_invoices(scope)]


@pytest.mark.anyio
async def test_dashboard_endpoint(client, book):
    r = await client.get("/dashboard/")
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"overview", "revenue_by_status", "recent_invoices", "overdue_invoices", "top_clients"}
    assert body["overview"]["invoice_count"] == 4
    assert len(body["recent_invoices"]) == 4
    assert [i["number"] for i in body["overdue_invoices"]] == ["D-1"]
