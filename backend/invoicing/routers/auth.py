import logging

from databases import Database
from fastapi import APIRouter, Depends
from sqlalchemy import and_, select

from invoicing import models, schemas
from invoicing.auth_utils import create_access_token, get_password_hash, verify_password
from invoicing.config import Settings
from invoicing.db import is_unique_violation, rec_to_dict
from invoicing.deps import get_current_user, get_database, get_settings, get_tenant
from invoicing.errors import AuthenticationError, Conflict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def _email_taken(database: Database, email: str) -> bool:
    utbl = models.User.__table__
    return await database.fetch_one(select(utbl.c.id).where(utbl.c.email == email)) is not None


def _email_conflict() -> Conflict:
    return Conflict("Email already registered", code="EMAIL_TAKEN")


def _token_for(user: dict, settings: Settings) -> dict:
    token = create_access_token(
        settings.secret_key,
        sub=user["email"],
        user_id=user["id"],
        tenant_id=user["tenant_id"],
        ttl_seconds=settings.access_token_ttl_seconds,
    )
    return {"access_token": token}


@router.post("/register", response_model=schemas.Token, status_code=201)
async def register(
    payload: schemas.UserCreate,
    tenant: dict = Depends(get_tenant),
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    utbl = models.User.__table__
    if await _email_taken(database, payload.email):
        raise _email_conflict()

    try:
        uid = await database.execute(
            utbl.insert().values(
                tenant_id=tenant["id"],
                email=payload.email,
                name=payload.name,
                role=payload.role.value,
                hashed_password=get_password_hash(payload.password),
                active=True,
            )
        )
    except Exception as exc:
        if is_unique_violation(exc):
            raise _email_conflict() from exc
        raise
    logger.info("user registered", extra={"tenant_id": tenant["id"], "user_id": uid})
    user = rec_to_dict(await database.fetch_one(select(utbl).where(utbl.c.id == uid)))
    return _token_for(user, settings)


@router.post("/login", response_model=schemas.Token)
async def login(
    payload: schemas.UserLogin,
    tenant: dict = Depends(get_tenant),
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    utbl = models.User.__table__
    row = await database.fetch_one(
        select(utbl).where(and_(utbl.c.email == payload.email, utbl.c.tenant_id == tenant["id"]))
    )
    if not row or not verify_password(payload.password, row["hashed_password"]):
        raise AuthenticationError("Invalid credentials")
    user = rec_to_dict(row)
    if not user["active"]:
        raise AuthenticationError("Invalid credentials")
    return _token_for(user, settings)


@router.get("/me", response_model=schemas.MeOut)
async def me(user=Depends(get_current_user)):
    return user
