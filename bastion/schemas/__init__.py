"""Pydantic request/response schemas."""

from bastion.schemas.evidence import (
    EvidenceFacts,
    EvidenceResponse,
    EvidenceSnapshot,
    EvidenceUpload,
    PackageIn,
    SeverityCounts,
    VulnerabilityFindingIn,
)
from bastion.schemas.health import HealthResponse
from bastion.schemas.incident import (
    IncidentCluster,
    IncidentCreate,
    IncidentGenerateRequest,
    IncidentRead,
    IncidentStats,
    IncidentStatusUpdate,
)
from bastion.schemas.pipeline import PipelineSummary
from bastion.schemas.poam import (
    ControlReference,
    PoamAutoCloseRequest,
    PoamGenerateRequest,
    PoamItemCreate,
    PoamItemRead,
    PoamStats,
    PoamStatusUpdate,
    PoamSummary,
    RelatedObservation,
    RemediationStep,
)
from bastion.schemas.policy import (
    EvaluateRequest,
    PolicyCreate,
    PolicyEvaluationRead,
    PolicyEvaluationResult,
    PolicyRead,
    PolicyUpdate,
    PolicyViolation,
    RuleOutcome,
)
from bastion.schemas.risk import RiskClassification

__all__ = [
    "ControlReference",
    "EvaluateRequest",
    "EvidenceFacts",
    "EvidenceResponse",
    "EvidenceSnapshot",
    "EvidenceUpload",
    "HealthResponse",
    "IncidentCluster",
    "IncidentCreate",
    "IncidentGenerateRequest",
    "IncidentRead",
    "IncidentStats",
    "IncidentStatusUpdate",
    "PackageIn",
    "PipelineSummary",
    "PoamAutoCloseRequest",
    "PoamGenerateRequest",
    "PoamItemCreate",
    "PoamItemRead",
    "PoamStats",
    "PoamStatusUpdate",
    "PoamSummary",
    "PolicyCreate",
    "PolicyEvaluationRead",
    "PolicyEvaluationResult",
    "PolicyRead",
    "PolicyUpdate",
    "PolicyViolation",
    "RelatedObservation",
    "RemediationStep",
    "RiskClassification",
    "RuleOutcome",
    "SeverityCounts",
    "VulnerabilityFindingIn",
]
