from typing import Optional

from fastapi import APIRouter, Depends

from invoicing import reporting
from invoicing.deps import get_current_user, get_scope
from invoicing.tenancy import TenantScope

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/")
async def dashboard(
    company_id: Optional[int] = None,
    scope: TenantScope = Depends(get_scope),
    user=Depends(get_current_user),
):
    return await reporting.dashboard(scope, company_id)
