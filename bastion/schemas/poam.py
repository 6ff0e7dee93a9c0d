"""Pydantic schemas for POA&M items: creation input, reads, status updates and statistics."""

import uuid
from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from bastion.core.enums import Impact, Likelihood, PoamStatus, RiskLevel


class RemediationStep(BaseModel):
    """One checklist entry in a POA&M item's remediation plan."""

    uuid: str = Field(..., description="Stable step identifier (used as OSCAL tracking-entry uuid).")
    title: str
    description: str
    completed_date: str | None = Field(
        default=None, description="ISO-8601 completion time; None while pending."
    )


class ControlReference(BaseModel):
    """NIST 800-53 control the item maps to."""

    catalog_name: str
    control_id: str
    control_name: str


class RelatedObservation(BaseModel):
    """Scan observation that produced the item."""

    observation_uuid: str
    type: str = "vulnerability-scan"
    description: str = ""


class PoamItemCreate(BaseModel):
    """Input for creating a POA&M item; scheduling, checklist and controls are derived."""

    tenant_id: str = Field(..., min_length=1)
    vulnerability_id: uuid.UUID | None = None
    cve_id: str | None = None
    title: str = Field(..., min_length=1, max_length=512)
    description: str = ""
    risk_level: RiskLevel
    likelihood: Likelihood
    impact: Impact
    cvss_score: float | None = Field(default=None, ge=0, le=10)
    remediation_plan: str = ""
    affected_systems: list[str] = Field(default_factory=list)
    assigned_to: str | None = None
    metadata: dict = Field(default_factory=dict)


class PoamItemRead(BaseModel):
    """Stored POA&M item."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    tenant_id: str
    oscal_uuid: uuid.UUID
    vulnerability_id: uuid.UUID | None = None
    cve_id: str | None = None
    title: str
    description: str
    status: PoamStatus
    risk_level: RiskLevel
    likelihood: Likelihood
    impact: Impact
    cvss_score: float | None = None
    remediation_plan: str
    remediation_steps: list[RemediationStep] = Field(default_factory=list)
    affected_controls: list[ControlReference] = Field(default_factory=list)
    related_observations: list[RelatedObservation] = Field(default_factory=list)
    affected_systems: list[str] = Field(default_factory=list)
    scheduled_completion_date: datetime
    actual_completion_date: datetime | None = None
    assigned_to: str | None = None
    deviation_rationale: str | None = None
    approved_by: str | None = None
    approved_date: datetime | None = None
    closure_rationale: str | None = None
    closed_by: str | None = None
    closed_date: datetime | None = None
    metadata: dict = Field(
        default_factory=dict,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    created_at: datetime
    updated_at: datetime


class PoamStatusUpdate(BaseModel):
    """Request body for a status transition. Risk acceptance and closure need actor and rationale."""

    status: PoamStatus
    actor: str | None = Field(default=None, description="User performing the transition.")
    rationale: str | None = Field(
        default=None, description="Deviation rationale (risk-accepted) or closure rationale (closed)."
    )


class PoamGenerateRequest(BaseModel):
    evidence_id: uuid.UUID


class PoamAutoCloseRequest(BaseModel):
    cve_id: str = Field(..., min_length=1)


class PoamStats(BaseModel):
    """Counts over a tenant's POA&M items."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_risk_level: dict[str, int] = Field(default_factory=dict)
    overdue: int = 0
    due_this_week: int = 0
    due_this_month: int = 0


class PoamSummary(BaseModel):
    """Report summary over a set of POA&M items."""

    total_items: int = 0
    by_risk_level: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    overdue_items: int = 0
    average_days_to_completion: int = 0
