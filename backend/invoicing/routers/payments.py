from fastapi import APIRouter, Depends

from invoicing import billing, models, schemas
from invoicing.deps import get_current_user, get_scope
from invoicing.errors import InvoiceNotFound
from invoicing.tenancy import TenantScope

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/{invoice_id:int}", response_model=schemas.PaymentResult, status_code=201)
async def add_payment(
    invoice_id: int,
    payload: schemas.PaymentCreate,
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    payment, invoice = await billing.record_payment(
        scope,
        invoice_id,
        payload.amount_cents,
        payment_date=payload.payment_date,
        method=payload.method.value,
        reference=payload.reference,
        notes=payload.notes,
    )
    return {"payment": payment, "invoice": invoice}


@router.get("/{invoice_id:int}", response_model=list[schemas.PaymentOut])
async def list_payments(invoice_id: int, scope: TenantScope = Depends(get_scope), user=Depends(get_current_user)):
    if not await scope.get(models.Invoice.__table__, invoice_id):
        raise InvoiceNotFound(invoice_id)
    ptbl = models.Payment.__table__
    return await scope.fetch_all(
        scope.select(ptbl)
        .where(ptbl.c.invoice_id == invoice_id)
        .order_by(ptbl.c.payment_date.desc(), ptbl.c.id.desc())
    )
