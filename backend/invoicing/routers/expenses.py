from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from invoicing import models, schemas
from invoicing.deps import get_current_user, get_scope
from invoicing.errors import ValidationError
from invoicing.models import ExpenseCategory
from invoicing.tenancy import TenantScope

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("/", response_model=schemas.ExpenseOut, status_code=201)
async def create_expense(
    payload: schemas.ExpenseCreate,
    scope: TenantScope = Depends(get_scope),
    user: dict = Depends(get_current_user),
):
    tbl = models.Expense.__table__
    if not await scope.get(models.Company.__table__, payload.company_id):
        raise ValidationError("Company not in your tenant", field="company_id")
    if payload.project_id is not None and not await scope.get(models.Project.__table__, payload.project_id):
        raise ValidationError("Project not in your tenant", field="project_id")
    data = payload.model_dump()
    data.update(
        category=payload.category.value,
        status=payload.status.value,
        expense_date=payload.expense_date or date.today(),
        user_id=user["id"],
    )
    eid = await scope.insert(tbl, **data)
    return await scope.get(tbl, eid)


@router.get("/", response_model=list[schemas.ExpenseOut])
async def list_expenses(
    company_id: Optional[int] = None,
    category: Optional[ExpenseCategory] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    scope: TenantScope = Depends(get_scope),
    user: dict = Depends(get_current_user),
):
    tbl = models.Expense.__table__
    stmt = scope.select(tbl)
    if company_id is not None:
        stmt = stmt.where(tbl.c.company_id == company_id)
    if category is not None:
        stmt = stmt.where(tbl.c.category == category.value)
    stmt = stmt.order_by(tbl.c.expense_date.desc(), tbl.c.id.desc()).limit(limit).offset(offset)
    return await scope.fetch_all(stmt)
