"""Incident endpoints: list, stats, clusters, status workflow and generation."""

import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query

from bastion.api.v1.deps import DbSession, TenantId
from bastion.core.enums import IncidentSeverity, IncidentStatus, IncidentType
from bastion.schemas.incident import (
    IncidentCluster,
    IncidentGenerateRequest,
    IncidentRead,
    IncidentStats,
    IncidentStatusUpdate,
)
from bastion.services import incidents as incident_service

router = APIRouter()


@router.get("", response_model=list[IncidentRead])
def list_items(
    db: DbSession,
    tenant_id: TenantId,
    status: Annotated[list[IncidentStatus] | None, Query()] = None,
    severity: Annotated[list[IncidentSeverity] | None, Query()] = None,
    type: Annotated[list[IncidentType] | None, Query()] = None,
    project_name: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> list[IncidentRead]:
    """Tenant incidents, newest first."""
    items = incident_service.list_incidents(
        db,
        tenant_id,
        status=status,
        severity=severity,
        incident_type=type,
        project_name=project_name,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
    )
    return [IncidentRead.model_validate(i) for i in items]


@router.get("/stats", response_model=IncidentStats)
def get_stats(db: DbSession, tenant_id: TenantId) -> IncidentStats:
    return incident_service.get_incident_stats(db, tenant_id)


@router.get("/clusters", response_model=list[IncidentCluster])
def get_clusters(db: DbSession, tenant_id: TenantId) -> list[IncidentCluster]:
    """
    Open (ACTIVE/ACKNOWLEDGED) incidents grouped by project, type and severity.

    Most severe clusters first, larger clusters first within a severity. Recomputed per request.
    """
    return incident_service.cluster_incidents(db, tenant_id)


@router.post("/generate", response_model=list[IncidentRead], status_code=201)
def generate(body: IncidentGenerateRequest, db: DbSession, tenant_id: TenantId) -> list[IncidentRead]:
    """Raise incidents for the evidence's Critical/High findings and/or its failed policies."""
    raised = []
    if body.include_vulnerabilities:
        raised += incident_service.generate_from_vulnerabilities(db, tenant_id, body.evidence_id)
    if body.include_policy_violations:
        raised += incident_service.generate_from_policy_violations(db, tenant_id, body.evidence_id)
    return [IncidentRead.model_validate(i) for i in raised]


@router.get("/{incident_id}", response_model=IncidentRead)
def get_item(incident_id: uuid.UUID, db: DbSession, tenant_id: TenantId) -> IncidentRead:
    return IncidentRead.model_validate(incident_service.get_incident(db, tenant_id, incident_id))


@router.patch("/{incident_id}/status", response_model=IncidentRead)
def patch_status(
    incident_id: uuid.UUID,
    body: IncidentStatusUpdate,
    db: DbSession,
    tenant_id: TenantId,
) -> IncidentRead:
    """Set the status; the first acknowledgement and first resolution stamp TTA and TTR."""
    incident = incident_service.update_incident_status(
        db, tenant_id, incident_id, body.status, actor=body.actor
    )
    return IncidentRead.model_validate(incident)
