from datetime import date
from typing import Optional

from sqlalchemy import desc, func, select

from invoicing import models
from invoicing.models import InvoiceStatus
from invoicing.tenancy import TenantScope

OVERDUE_STATUSES = (
    InvoiceStatus.SENT.value,
    InvoiceStatus.VIEWED.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.OVERDUE.value,
)


def _invoice_filter(company_id: Optional[int]):
    itbl = models.Invoice.__table__
    return [itbl.c.company_id == company_id] if company_id is not None else []


async def invoice_overview(scope: TenantScope, company_id: Optional[int] = None) -> dict:
    itbl = models.Invoice.__table__
    etbl = models.Expense.__table__
    inv = await scope.fetch_one(
        scope.select(
            itbl,
            func.coalesce(func.sum(itbl.c.total_cents), 0).label("total"),
            func.coalesce(func.sum(itbl.c.amount_paid_cents), 0).label("paid"),
            func.count(itbl.c.id).label("count"),
        ).where(*_invoice_filter(company_id))
    )
    exp_where = [etbl.c.company_id == company_id] if company_id is not None else []
    exp = await scope.fetch_one(
        scope.select(
            etbl,
            func.coalesce(func.sum(etbl.c.amount_cents), 0).label("total"),
            func.count(etbl.c.id).label("count"),
        ).where(*exp_where)
    )
    total, paid = int(inv["total"]), int(inv["paid"])
    return {
        "total_revenue_cents": total,
        "total_paid_cents": paid,
        "total_outstanding_cents": total - paid,
        "invoice_count": int(inv["count"]),
        "total_expenses_cents": int(exp["total"]),
        "expense_count": int(exp["count"]),
    }


async def revenue_by_status(scope: TenantScope, company_id: Optional[int] = None) -> list[dict]:
    itbl = models.Invoice.__table__
    rows = await scope.fetch_all(
        scope.select(
            itbl,
            itbl.c.status,
            func.coalesce(func.sum(itbl.c.total_cents), 0).label("total_cents"),
            func.coalesce(func.sum(itbl.c.amount_paid_cents), 0).label("paid_cents"),
            func.count(itbl.c.id).label("count"),
        )
        .where(*_invoice_filter(company_id))
        .group_by(itbl.c.status)
        .order_by(itbl.c.status)
    )
    return [
        {
            "status": r["status"],
            "total_cents": int(r["total_cents"]),
            "paid_cents": int(r["paid_cents"]),
            "count": int(r["count"]),
        }
        for r in rows
    ]


def _with_client(scope: TenantScope, company_id: Optional[int]):
    itbl = models.Invoice.__table__
    ctbl = models.Client.__table__
    return (
        scope.select(
            itbl,
            *itbl.c,
            ctbl.c.name.label("client_name"),
            ctbl.c.email.label("client_email"),
        )
        .join_from(itbl, ctbl, itbl.c.client_id == ctbl.c.id)
        .where(*_invoice_filter(company_id))
    )


async def recent_invoices(scope: TenantScope, company_id: Optional[int] = None, limit: int = 10) -> list[dict]:
    itbl = models.Invoice.__table__
    stmt = _with_client(scope, company_id).order_by(desc(itbl.c.created_at), desc(itbl.c.id)).limit(limit)
    return await scope.fetch_all(stmt)


async def overdue_invoices(
    scope: TenantScope, company_id: Optional[int] = None, today: Optional[date] = None,
) -> list[dict]:
    itbl = models.Invoice.__table__
    stmt = (
        _with_client(scope, company_id)
        .where(itbl.c.status.in_(OVERDUE_STATUSES), itbl.c.due_date < (today or date.today()))
        .order_by(itbl.c.due_date.asc(), itbl.c.id.asc())
    )
    return await scope.fetch_all(stmt)


async def top_clients(scope: TenantScope, company_id: Optional[int] = None, limit: int = 5) -> list[dict]:
    itbl = models.Invoice.__table__
    ctbl = models.Client.__table__
    total = func.coalesce(func.sum(itbl.c.total_cents), 0)
    rows = await scope.fetch_all(
        scope.select(
            itbl,
            itbl.c.client_id,
            ctbl.c.name.label("client_name"),
            ctbl.c.email.label("client_email"),
            total.label("total_cents"),
            func.coalesce(func.sum(itbl.c.amount_paid_cents), 0).label("paid_cents"),
            func.count(itbl.c.id).label("invoice_count"),
        )
        .join_from(itbl, ctbl, itbl.c.client_id == ctbl.c.id)
        .where(*_invoice_filter(company_id))
        .group_by(itbl.c.client_id, ctbl.c.name, ctbl.c.email)
        .order_by(desc(total), itbl.c.client_id)
        .limit(limit)
    )
    return [
        {
            "client": {"id": r["client_id"], "name": r["client_name"], "email": r["client_email"]},
            "total_cents": int(r["total_cents"]),
            "paid_cents": int(r["paid_cents"]),
            "invoice_count": int(r["invoice_count"]),
        }
        for r in rows
    ]


async def client_stats(scope: TenantScope, client_id: int) -> dict:
    itbl = models.Invoice.__table__
    row = await scope.fetch_one(
        scope.select(
            itbl,
            func.coalesce(func.sum(itbl.c.total_cents), 0).label("total"),
            func.coalesce(func.sum(itbl.c.amount_paid_cents), 0).label("paid"),
            func.count(itbl.c.id).label("count"),
        ).where(itbl.c.client_id == client_id)
    )
    return {
        "total_invoiced_cents": int(row["total"]),
        "total_paid_cents": int(row["paid"]),
        "invoice_count": int(row["count"]),
    }


async def dashboard(scope: TenantScope, company_id: Optional[int] = None) -> dict:
    return {
        "overview": await invoice_overview(scope, company_id),
        "revenue_by_status": await revenue_by_status(scope, company_id),
        "recent_invoices": await recent_invoices(scope, company_id),
        "overdue_invoices": await overdue_invoices(scope, company_id),
        "top_clients": await top_clients(scope, company_id),
    }
