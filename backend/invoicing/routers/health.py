from fastapi import APIRouter, Depends
from sqlalchemy import text

from invoicing.deps import get_database

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(database=Depends(get_database)):
    await database.fetch_val(text("SELECT 1"))
    return {"status": "ok"}
