from databases import Database
from fastapi import APIRouter, Depends
from sqlalchemy import select

from invoicing import models, schemas
from invoicing.db import is_unique_violation, rec_to_dict
from invoicing.deps import get_database, get_tenant
from invoicing.errors import Conflict

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("/", response_model=schemas.TenantOut, status_code=201)
async def create_tenant(payload: schemas.TenantCreate, database: Database = Depends(get_database)):
    ttbl = models.Tenant.__table__
    taken = Conflict(f"Subdomain {payload.subdomain} is taken", code="SUBDOMAIN_TAKEN")
    if await database.fetch_one(select(ttbl.c.id).where(ttbl.c.subdomain == payload.subdomain)):
        raise taken
    try:
        tid = await database.execute(
            ttbl.insert().values(
                subdomain=payload.subdomain,
                name=payload.name,
                description=payload.description,
                emoji=payload.emoji,
                active=True,
                invoice_sequence=0,
            )
        )
    except Exception as exc:
        if is_unique_violation(exc):
            raise taken from exc
        raise
    row = await database.fetch_one(select(ttbl).where(ttbl.c.id == tid))
    return rec_to_dict(row)


@router.get("/current", response_model=schemas.TenantOut)
async def current_tenant(tenant: dict = Depends(get_tenant)):
    return tenant
