from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import and_

from invoicing import models, schemas
from invoicing.db import is_unique_violation
from invoicing.deps import get_current_user, get_scope
from invoicing.errors import Conflict, NotFound, ValidationError
from invoicing.reporting import client_stats
from invoicing.tenancy import TenantScope

router = APIRouter(prefix="/clients", tags=["clients"])


def _name_taken() -> Conflict:
    return Conflict("Client name already exists in this company", code="CLIENT_NAME_TAKEN")


async def _ensure_unique_name(scope: TenantScope, company_id: int, name: str, exclude_id: Optional[int] = None):
    tbl = models.Client.__table__
    stmt = scope.select(tbl, tbl.c.id).where(and_(tbl.c.company_id == company_id, tbl.c.name == name))
    if exclude_id is not None:
        stmt = stmt.where(tbl.c.id != exclude_id)
    if await scope.fetch_one(stmt):
        raise _name_taken()


@router.post("/", response_model=schemas.ClientOut, status_code=201)
async def create_client(
    payload: schemas.ClientCreate,
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    tbl = models.Client.__table__
    if not await scope.get(models.Company.__table__, payload.company_id):
        raise ValidationError("Company not in your tenant", field="company_id")
    await _ensure_unique_name(scope, payload.company_id, payload.name)
    try:
        cid = await scope.insert(tbl, **payload.model_dump())
    except Exception as exc:
        if is_unique_violation(exc):
            raise _name_taken() from exc
        raise
    return await scope.get(tbl, cid)


@router.get("/", response_model=list[schemas.ClientOut])
async def list_clients(
    q: Optional[str] = Query(default=None, description="Filter by name contains"),
    active: Optional[bool] = None,
    company_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    tbl = models.Client.__table__
    stmt = scope.select(tbl)
    if q:
        stmt = stmt.where(tbl.c.name.ilike(f"%{q}%"))
    if active is not None:
        stmt = stmt.where(tbl.c.active == active)
    if company_id is not None:
        stmt = stmt.where(tbl.c.company_id == company_id)
    stmt = stmt.order_by(tbl.c.name).limit(limit).offset(offset)
    return await scope.fetch_all(stmt)


@router.get("/{client_id:int}", response_model=schemas.ClientDetailOut)
async def get_client(client_id: int, scope: TenantScope = Depends(get_scope), user=Depends(get_current_user)):
    itbl = models.Invoice.__table__
    client = await scope.require(models.Client.__table__, client_id, "Client")
    recent = await scope.fetch_all(
        scope.select(itbl)
        .where(itbl.c.client_id == client_id)
        .order_by(itbl.c.created_at.desc(), itbl.c.id.desc())
        .limit(10)
    )
    return {**client, "stats": await client_stats(scope, client_id), "recent_invoices": recent}


@router.patch("/{client_id:int}", response_model=schemas.ClientOut)
async def update_client(
    client_id: int,
    payload: schemas.ClientUpdate,
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    tbl = models.Client.__table__
    existing = await scope.require(tbl, client_id, "Client")
    update = payload.model_dump(exclude_unset=True)
    for key in ("name", "email", "active"):
        if key in update and update[key] is None:
            raise ValidationError(f"{key} cannot be null", field=key)
    if "name" in update and update["name"] != existing["name"]:
        await _ensure_unique_name(scope, existing["company_id"], update["name"], exclude_id=client_id)
    if update:
        try:
            await scope.update(tbl, client_id, **update)
        except Exception as exc:
            if is_unique_violation(exc):
                raise _name_taken() from exc
            raise
    return await scope.get(tbl, client_id)


@router.delete("/{client_id:int}", status_code=204)
async def delete_client(client_id: int, scope: TenantScope = Depends(get_scope), user=Depends(get_current_user)):
    # invoices, projects and their children go with it (FK cascade)
    if not await scope.delete(models.Client.__table__, client_id):
        raise NotFound("Client", client_id)
    return Response(status_code=204)
