from typing import Optional

from fastapi import APIRouter, Depends, Query

from invoicing import models, schemas
from invoicing.deps import get_current_user, get_scope
from invoicing.errors import ValidationError
from invoicing.models import ProjectStatus
from invoicing.tenancy import TenantScope

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("/", response_model=schemas.ProjectOut, status_code=201)
async def create_project(
    payload: schemas.ProjectCreate,
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    tbl = models.Project.__table__
    client = await scope.get(models.Client.__table__, payload.client_id)
    if not client or client["company_id"] != payload.company_id:
        raise ValidationError("Client not in this company", field="client_id")
    if payload.start_date and payload.end_date and payload.end_date < payload.start_date:
        raise ValidationError("end_date is before start_date", field="end_date")
    data = payload.model_dump()
    data["status"] = payload.status.value
    pid = await scope.insert(tbl, **data)
    return await scope.get(tbl, pid)


@router.get("/", response_model=list[schemas.ProjectOut])
async def list_projects(
    client_id: Optional[int] = None,
    status: Optional[ProjectStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    tbl = models.Project.__table__
    stmt = scope.select(tbl)
    if client_id is not None:
        stmt = stmt.where(tbl.c.client_id == client_id)
    if status is not None:
        stmt = stmt.where(tbl.c.status == status.value)
    return await scope.fetch_all(stmt.order_by(tbl.c.id.desc()).limit(limit).offset(offset))


@router.get("/{project_id:int}", response_model=schemas.ProjectOut)
async def get_project(project_id: int, scope: TenantScope = Depends(get_scope), user=Depends(get_current_user)):
    return await scope.require(models.Project.__table__, project_id, "Project")
