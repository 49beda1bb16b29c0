from fastapi import APIRouter, Depends

from invoicing import models, schemas
from invoicing.deps import get_current_user, get_scope
from invoicing.tenancy import TenantScope

router = APIRouter(prefix="/companies", tags=["companies"])


@router.post("/", response_model=schemas.CompanyOut, status_code=201)
async def create_company(
    payload: schemas.CompanyCreate,
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    tbl = models.Company.__table__
    cid = await scope.insert(tbl, **payload.model_dump())
    return await scope.get(tbl, cid)


@router.get("/", response_model=list[schemas.CompanyOut])
async def list_companies(scope: TenantScope = Depends(get_scope), user=Depends(get_current_user)):
    tbl = models.Company.__table__
    return await scope.fetch_all(scope.select(tbl).order_by(tbl.c.name))


@router.get("/{company_id:int}", response_model=schemas.CompanyOut)
async def get_company(company_id: int, scope: TenantScope = Depends(get_scope), user=Depends(get_current_user)):
    return await scope.require(models.Company.__table__, company_id, "Company")
