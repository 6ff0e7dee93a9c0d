"""Pydantic schemas for incidents, clusters and incident statistics."""

import uuid
from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from bastion.core.enums import IncidentSeverity, IncidentStatus, IncidentType


class IncidentCreate(BaseModel):
    """Input for creating an incident. New incidents always start ACTIVE."""

    tenant_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    type: IncidentType
    severity: IncidentSeverity
    project_name: str | None = None
    impacted_service: str | None = None
    evidence_ids: list[str] = Field(default_factory=list)
    vulnerability_ids: list[str] = Field(default_factory=list)
    policy_evaluation_ids: list[str] = Field(default_factory=list)
    metadata: dict = Field(default_factory=dict)


class IncidentRead(BaseModel):
    """Stored incident."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    tenant_id: str
    title: str
    description: str | None = None
    type: IncidentType
    severity: IncidentSeverity
    status: IncidentStatus
    project_name: str | None = None
    impacted_service: str | None = None
    evidence_ids: list[str] = Field(default_factory=list)
    vulnerability_ids: list[str] = Field(default_factory=list)
    policy_evaluation_ids: list[str] = Field(default_factory=list)
    alert_count: int
    affected_assets: int
    assigned_to: str | None = None
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None
    tta_minutes: int | None = Field(default=None, description="Minutes from creation to first acknowledgement.")
    ttr_minutes: int | None = Field(default=None, description="Minutes from creation to first resolution.")
    metadata: dict = Field(
        default_factory=dict,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    created_at: datetime
    updated_at: datetime


class IncidentStatusUpdate(BaseModel):
    status: IncidentStatus
    actor: str | None = Field(default=None, description="When set, the incident is assigned to this user.")


class IncidentGenerateRequest(BaseModel):
    """Request to raise incidents for one evidence snapshot."""

    evidence_id: uuid.UUID
    include_vulnerabilities: bool = True
    include_policy_violations: bool = True


class IncidentCluster(BaseModel):
    """Computed-on-read group of open incidents sharing (project, type, severity). Never persisted."""

    cluster_id: str = Field(..., description="Positional id, e.g. cluster-0.")
    cluster_name: str = Field(..., description="'{project} - {type}'.")
    severity: IncidentSeverity
    project_name: str
    type: IncidentType
    incident_count: int = Field(..., ge=1)
    total_alerts: int = Field(..., ge=0, description="Sum of alert_count over members.")
    affected_services: list[str] = Field(
        default_factory=list, description="Distinct impacted services, first-seen order."
    )
    incident_ids: list[uuid.UUID] = Field(default_factory=list)


class IncidentStats(BaseModel):
    """Counts and SLA averages over a tenant's incidents."""

    total: int = 0
    active: int = 0
    acknowledged: int = 0
    resolved: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    avg_tta_minutes: float = 0.0
    avg_ttr_minutes: float = 0.0
