from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from invoicing import billing, models, schemas
from invoicing.config import Settings
from invoicing.deps import get_current_user, get_scope, get_settings
from invoicing.errors import InvoiceNotFound
from invoicing.models import InvoiceStatus
from invoicing.tenancy import TenantScope

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("/", response_model=schemas.InvoiceDetailOut, status_code=201)
async def create_invoice(
    payload: schemas.InvoiceCreate,
    scope: TenantScope = Depends(get_scope),
    settings: Settings = Depends(get_settings),
    user: dict = Depends(get_current_user),
):
    invoice = await billing.create_invoice(scope, user["id"], payload, currency=settings.default_currency)
    return await _detail(scope, invoice)


@router.get("/", response_model=schemas.InvoiceListOut)
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    client_id: Optional[int] = None,
    project_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    scope: TenantScope = Depends(get_scope),
    user: dict = Depends(get_current_user),
):
    itbl = models.Invoice.__table__
    filters = []
    if status is not None:
        filters.append(itbl.c.status == status.value)
    if client_id is not None:
        filters.append(itbl.c.client_id == client_id)
    if project_id is not None:
        filters.append(itbl.c.project_id == project_id)

    rows = await scope.fetch_all(
        scope.select(itbl)
        .where(*filters)
        .order_by(itbl.c.created_at.desc(), itbl.c.id.desc())
        .limit(limit)
        .offset(offset)
    )
    total = await scope.fetch_val(scope.count(itbl, *filters))
    return {"invoices": rows, "total": int(total or 0), "limit": limit, "offset": offset}


async def _detail(scope: TenantScope, invoice: dict) -> dict:
    ltbl = models.InvoiceLineItem.__table__
    ptbl = models.Payment.__table__
    lines = await scope.fetch_all(
        scope.select(ltbl).where(ltbl.c.invoice_id == invoice["id"]).order_by(ltbl.c.position.asc())
    )
    payments = await scope.fetch_all(
        scope.select(ptbl)
        .where(ptbl.c.invoice_id == invoice["id"])
        .order_by(ptbl.c.payment_date.desc(), ptbl.c.id.desc())
    )
    return {**invoice, "line_items": lines, "payments": payments}


@router.get("/{invoice_id:int}", response_model=schemas.InvoiceDetailOut)
async def get_invoice(invoice_id: int, scope: TenantScope = Depends(get_scope), user: dict = Depends(get_current_user)):
    invoice = await scope.get(models.Invoice.__table__, invoice_id)
    if not invoice:
        raise InvoiceNotFound(invoice_id)
    return await _detail(scope, invoice)


@router.patch("/{invoice_id:int}", response_model=schemas.InvoiceDetailOut)
async def update_invoice(
    invoice_id: int,
    payload: schemas.InvoiceUpdate,
    scope: TenantScope = Depends(get_scope),
    user: dict = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    invoice = await billing.update_invoice(scope, invoice_id, changes)
    return await _detail(scope, invoice)


@router.delete("/{invoice_id:int}", status_code=204)
async def delete_invoice(invoice_id: int, scope: TenantScope = Depends(get_scope), user: dict = Depends(get_current_user)):
    # line items and payments are removed by FK cascade
    if not await scope.delete(models.Invoice.__table__, invoice_id):
        raise InvoiceNotFound(invoice_id)
    return Response(status_code=204)
