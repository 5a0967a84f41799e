"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from statement_recon.deps import CurrentTenantId, DbSession

    async def my_endpoint(db: DbSession, tenant_id: CurrentTenantId):
        # db is AsyncSession with get_db dependency injected
        # tenant_id is the UUID taken from the X-Tenant-ID header
        ...
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from statement_recon.database import get_db
from statement_recon.utils.exceptions import raise_bad_request, raise_unauthorized


async def get_current_tenant_id(
    x_tenant_id: Annotated[str | None, Header(alias="X-Tenant-ID")] = None,
) -> UUID:
    """Resolve the tenant (workshop) the request acts for."""
    if not x_tenant_id:
        raise_unauthorized("Missing X-Tenant-ID header")
    try:
        return UUID(x_tenant_id)
    except ValueError as exc:
        raise_bad_request("Invalid X-Tenant-ID header", cause=exc)


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentTenantId = Annotated[UUID, Depends(get_current_tenant_id)]

__all__ = ["CurrentTenantId", "DbSession", "get_current_tenant_id"]
