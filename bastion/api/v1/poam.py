"""POA&M endpoints: list, stats, exports, status workflow, generation and auto-close."""

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse

from bastion.api.v1.deps import DbSession, TenantId
from bastion.core.config import settings
from bastion.core.enums import PoamStatus, RiskLevel
from bastion.schemas.poam import (
    PoamAutoCloseRequest,
    PoamGenerateRequest,
    PoamItemRead,
    PoamStats,
    PoamStatusUpdate,
    PoamSummary,
)
from bastion.services import poam as poam_service
from bastion.services.oscal_export import export_to_csv, generate_oscal_poam, generate_poam_summary

router = APIRouter()


@router.get("", response_model=list[PoamItemRead])
def list_items(
    db: DbSession,
    tenant_id: TenantId,
    status: Annotated[list[PoamStatus] | None, Query()] = None,
    risk_level: Annotated[list[RiskLevel] | None, Query()] = None,
    assigned_to: str | None = None,
    overdue: bool = False,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> list[PoamItemRead]:
    """Tenant POA&M items, most severe risk first, then earliest due."""
    items = poam_service.list_poam_items(
        db,
        tenant_id,
        status=status,
        risk_level=risk_level,
        assigned_to=assigned_to,
        overdue=overdue,
        limit=limit,
    )
    return [PoamItemRead.model_validate(i) for i in items]


@router.get("/stats", response_model=PoamStats)
def get_stats(db: DbSession, tenant_id: TenantId) -> PoamStats:
    return poam_service.get_poam_stats(db, tenant_id)


@router.get("/summary", response_model=PoamSummary)
def get_summary(db: DbSession, tenant_id: TenantId) -> PoamSummary:
    return generate_poam_summary(poam_service.list_poam_items(db, tenant_id))


@router.get("/export/oscal")
def export_oscal(
    db: DbSession,
    tenant_id: TenantId,
    tenant_name: str | None = None,
    system_id: str | None = None,
) -> dict[str, Any]:
    """OSCAL 1.0.4 POA&M document for all tenant items."""
    items = poam_service.list_poam_items(db, tenant_id)
    return generate_oscal_poam(
        items,
        tenant_name or tenant_id,
        system_id=system_id or settings.OSCAL_SYSTEM_ID,
    )


@router.get("/export/csv", response_class=PlainTextResponse)
def export_csv(db: DbSession, tenant_id: TenantId) -> PlainTextResponse:
    items = poam_service.list_poam_items(db, tenant_id)
    return PlainTextResponse(
        export_to_csv(items),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="poam.csv"'},
    )


@router.post("/generate", response_model=list[PoamItemRead], status_code=201)
def generate(body: PoamGenerateRequest, db: DbSession, tenant_id: TenantId) -> list[PoamItemRead]:
    """Create items for the evidence's Critical/High findings; CVEs that already have one are skipped."""
    items = poam_service.generate_from_vulnerabilities(db, tenant_id, body.evidence_id)
    return [PoamItemRead.model_validate(i) for i in items]


@router.post("/auto-close", response_model=list[PoamItemRead])
def auto_close(body: PoamAutoCloseRequest, db: DbSession, tenant_id: TenantId) -> list[PoamItemRead]:
    """Close open items for a CVE that no tenant scan reports anymore."""
    items = poam_service.auto_close_if_remediated(db, tenant_id, body.cve_id)
    return [PoamItemRead.model_validate(i) for i in items]


@router.get("/{poam_id}", response_model=PoamItemRead)
def get_item(poam_id: uuid.UUID, db: DbSession, tenant_id: TenantId) -> PoamItemRead:
    return PoamItemRead.model_validate(poam_service.get_poam_item(db, tenant_id, poam_id))


@router.patch("/{poam_id}/status", response_model=PoamItemRead)
def patch_status(
    poam_id: uuid.UUID,
    body: PoamStatusUpdate,
    db: DbSession,
    tenant_id: TenantId,
) -> PoamItemRead:
    """
    Transition an item. 409 for a transition the workflow does not allow (closed is terminal);
    422 when risk acceptance or closure lacks actor or rationale.
    """
    item = poam_service.update_poam_status(
        db, tenant_id, poam_id, body.status, actor=body.actor, rationale=body.rationale
    )
    return PoamItemRead.model_validate(item)
