from typing import Optional

from databases import Database
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import and_, select

from invoicing import models
from invoicing.auth_utils import decode_access_token
from invoicing.config import Settings
from invoicing.db import rec_to_dict
from invoicing.errors import AuthenticationError
from invoicing.tenancy import TenantScope, resolve_tenant

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_tenant(
    request: Request,
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> dict:
    return await resolve_tenant(database, request.headers.get("host"), settings)


async def get_scope(
    tenant: dict = Depends(get_tenant),
    database: Database = Depends(get_database),
) -> TenantScope:
    return TenantScope(database, tenant["id"])


async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    tenant: dict = Depends(get_tenant),
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> dict:
    if creds is None:
        raise AuthenticationError()
    payload = decode_access_token(settings.secret_key, creds.credentials)
    if int(payload["tenant_id"]) != tenant["id"]:
        raise AuthenticationError("Token not valid for this tenant")

    utbl = models.User.__table__
    row = await database.fetch_one(
        select(utbl).where(and_(
            utbl.c.id == int(payload["user_id"]),
            utbl.c.tenant_id == tenant["id"],
            utbl.c.active.is_(True),
        ))
    )
    if not row:
        raise AuthenticationError("Unknown or inactive user")
    user = rec_to_dict(row)
    return {
        "id": int(user["id"]),
        "email": user["email"],
        "name": user["name"],
        "role": user["role"],
        "tenant_id": int(user["tenant_id"]),
    }
