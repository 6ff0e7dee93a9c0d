"""Pydantic schemas for policies, rule outcomes, and evaluation results."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from bastion.core.enums import EnforcementLevel, PolicyType, Severity


class PolicyViolation(BaseModel):
    """One reason a policy failed."""

    severity: Severity = Field(..., description="Severity of the violation.")
    message: str = Field(..., min_length=1, description="Human-readable violation message.")
    metadata: dict | None = Field(
        default=None,
        description="Structured details (counts, thresholds, registry, ...).",
    )


class RuleOutcome(BaseModel):
    """Outcome of one rule evaluator. passed is always equivalent to 'no violations'."""

    passed: bool
    violations: list[PolicyViolation] = Field(default_factory=list)

    @model_validator(mode="after")
    def passed_matches_violations(self) -> "RuleOutcome":
        if self.passed != (len(self.violations) == 0):
            raise ValueError("passed must be True exactly when there are no violations")
        return self

    @classmethod
    def from_violations(cls, violations: list[PolicyViolation]) -> "RuleOutcome":
        return cls(passed=not violations, violations=violations)


class PolicyCreate(BaseModel):
    """Request body to create a tenant policy."""

    name: str = Field(..., min_length=1, max_length=255, description="Unique name within the tenant.")
    description: str = Field(default="", description="What the policy checks.")
    type: PolicyType = Field(..., description="Rule type; selects the evaluator.")
    enforcement_level: EnforcementLevel = Field(
        default=EnforcementLevel.WARNING,
        description="Informational only; evaluation does not enforce it.",
    )
    enabled: bool = Field(default=True, description="Disabled policies are never evaluated.")
    priority: int = Field(default=0, description="Higher values evaluate first.")
    parameters: dict = Field(
        default_factory=dict,
        description="Type-specific parameters, e.g. {'maxCritical': 0} for CVE_SEVERITY.",
    )


class PolicyUpdate(BaseModel):
    """Partial update; only fields that are set are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    type: PolicyType | None = None
    enforcement_level: EnforcementLevel | None = None
    enabled: bool | None = None
    priority: int | None = None
    parameters: dict | None = None


class PolicyRead(BaseModel):
    """Stored policy."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    tenant_id: str
    name: str
    description: str
    type: PolicyType
    enforcement_level: EnforcementLevel
    enabled: bool
    priority: int
    parameters: dict
    created_at: datetime
    updated_at: datetime


class EvaluateRequest(BaseModel):
    """Request to evaluate policies against one evidence snapshot."""

    evidence_id: uuid.UUID = Field(..., description="Evidence to evaluate.")
    policy_ids: list[uuid.UUID] | None = Field(
        default=None,
        description="Restrict to these policies (enabled ones only); all enabled tenant policies when omitted.",
    )


class PolicyEvaluationResult(BaseModel):
    """Result of evaluating one policy against one evidence snapshot."""

    evaluation_id: uuid.UUID | None = Field(
        default=None, description="Identifier of the stored evaluation row."
    )
    policy_id: uuid.UUID
    policy_name: str
    policy_type: str = Field(..., description="Policy type as stored.")
    passed: bool
    violations: list[PolicyViolation] = Field(default_factory=list)
    message: str
    evaluated_at: datetime


class PolicyEvaluationRead(BaseModel):
    """Stored evaluation history row."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    policy_id: uuid.UUID
    evidence_id: uuid.UUID | None = None
    tenant_id: str
    passed: bool
    violations: list[PolicyViolation] = Field(default_factory=list)
    evaluated_at: datetime
