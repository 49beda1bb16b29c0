"""Tenant resolution and the tenant-scoped query accessor.

Routers never build a query against tenant data directly: they go through a
TenantScope, which adds the tenant predicate to every select, update and
delete and stamps tenant_id on every insert.
"""

import logging
from typing import Optional

from databases import Database
from sqlalchemy import Table, and_, func, select, text

from invoicing import models
from invoicing.config import Settings
from invoicing.db import rec_to_dict
from invoicing.errors import NotFound, TenantInactive, TenantNotFound

logger = logging.getLogger(__name__)

# child tables carry no tenant_id; they belong to the tenant of their parent row
_SCOPED_THROUGH = {
    "payments": ("invoice_id", models.Invoice.__table__),
    "invoice_line_items": ("invoice_id", models.Invoice.__table__),
}


def parse_subdomain(host: Optional[str]) -> Optional[str]:
    """acme.localhost:3000 -> acme, acme.example.com -> acme, example.com -> None."""
    if not host:
        return None
    host = host.strip().lower()
    if ".localhost" in host:
        sub = host.split(".localhost")[0].split(":")[0]
        return sub or None
    parts = host.split(".")
    if len(parts) >= 3:
        return parts[0].split(":")[0] or None
    return None


async def resolve_tenant(database: Database, host: Optional[str], settings: Settings) -> dict:
    subdomain = parse_subdomain(host) if settings.multi_tenant else settings.default_tenant
    if not subdomain:
        raise TenantNotFound(None)
    ttbl = models.Tenant.__table__
    row = await database.fetch_one(select(ttbl).where(ttbl.c.subdomain == subdomain))
    if not row:
        raise TenantNotFound(subdomain)
    tenant = rec_to_dict(row)
    if not tenant["active"]:
        raise TenantInactive(subdomain)
    return tenant


class TenantScope:
    def __init__(self, database: Database, tenant_id: int):
        self.database = database
        self.tenant_id = int(tenant_id)

    # --- query building ---

    def _predicate(self, table: Table):
        if "tenant_id" in table.c:
            return table.c.tenant_id == self.tenant_id
        if table.name in _SCOPED_THROUGH:
            fk, parent = _SCOPED_THROUGH[table.name]
            return table.c[fk].in_(
                select(parent.c.id).where(parent.c.tenant_id == self.tenant_id)
            )
        raise ValueError(f"table {table.name!r} is not tenant-scoped")

    def select(self, table: Table, *columns):
        stmt = select(*columns) if columns else select(table)
        return stmt.where(self._predicate(table))

    def count(self, table: Table, *where):
        return select(func.count()).select_from(table).where(self._predicate(table), *where)

    # --- execution ---

    def transaction(self):
        return self.database.transaction()

    async def fetch_one(self, stmt) -> Optional[dict]:
        row = await self.database.fetch_one(stmt)
        return rec_to_dict(row) if row else None

    async def fetch_all(self, stmt) -> list[dict]:
        return [rec_to_dict(r) for r in await self.database.fetch_all(stmt)]

    async def fetch_val(self, stmt):
        return await self.database.fetch_val(stmt)

    async def get(self, table: Table, row_id: int, *, for_update: bool = False) -> Optional[dict]:
        stmt = self.select(table).where(table.c.id == row_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.fetch_one(stmt)

    async def require(self, table: Table, row_id: int, label: str) -> dict:
        row = await self.get(table, row_id)
        if not row:
            raise NotFound(label, row_id)
        return row

    async def insert(self, table: Table, **values) -> int:
        if "tenant_id" in table.c:
            values["tenant_id"] = self.tenant_id
        elif table.name in _SCOPED_THROUGH:
            fk, parent = _SCOPED_THROUGH[table.name]
            if not await self.get(parent, values[fk]):
                raise NotFound(parent.name.rstrip("s").capitalize(), values[fk])
        else:
            raise ValueError(f"table {table.name!r} is not tenant-scoped")
        return await self.database.execute(table.insert().values(**values))

    async def update(self, table: Table, row_id: int, **values) -> None:
        await self.database.execute(
            table.update()
            .where(and_(table.c.id == row_id, self._predicate(table)))
            .values(**values)
        )

    async def delete(self, table: Table, row_id: int) -> bool:
        """Delete one row; dependent rows go through the FK cascade."""
        if not await self.get(table, row_id):
            return False
        stmt = table.delete().where(and_(table.c.id == row_id, self._predicate(table)))
        async with self.database.connection() as conn:
            if self.database.url.dialect == "sqlite":
                # off by default and per connection; a no-op inside a transaction
                await conn.execute(text("PRAGMA foreign_keys=ON"))
            await conn.execute(stmt)
        return True

    async def next_invoice_sequence(self) -> int:
        """Atomically bump the tenant counter; call inside a transaction."""
        ttbl = models.Tenant.__table__
        row = await self.database.fetch_one(
            ttbl.update()
            .where(ttbl.c.id == self.tenant_id)
            .values(invoice_sequence=ttbl.c.invoice_sequence + 1)
            .returning(ttbl.c.invoice_sequence)
        )
        if row is None:
            raise NotFound("Tenant", self.tenant_id)
        return int(rec_to_dict(row)["invoice_sequence"])
