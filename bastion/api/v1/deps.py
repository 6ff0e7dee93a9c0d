"""Shared route dependencies: database session and tenant scoping."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from bastion.core.database import get_db

MAX_TENANT_ID_LENGTH = 64


def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header(description="Tenant the request acts for.")] = None,
) -> str:
    """Require the X-Tenant-ID header; 400 when missing or blank."""
    if x_tenant_id is None or not x_tenant_id.strip():
        raise HTTPException(status_code=400, detail="X-Tenant-ID header is required")
    tenant_id = x_tenant_id.strip()
    if len(tenant_id) > MAX_TENANT_ID_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"X-Tenant-ID must be at most {MAX_TENANT_ID_LENGTH} characters",
        )
    return tenant_id


DbSession = Annotated[Session, Depends(get_db)]
TenantId = Annotated[str, Depends(get_tenant_id)]
