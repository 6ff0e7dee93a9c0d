"""Evidence endpoints: accept a parsed SBOM/scan snapshot, read it back, run the pipeline on it."""

import uuid

from fastapi import APIRouter

from bastion.api.v1.deps import DbSession, TenantId
from bastion.core.config import get_settings
from bastion.schemas.evidence import EvidenceResponse, EvidenceSnapshot, EvidenceUpload
from bastion.schemas.pipeline import PipelineSummary
from bastion.services.evidence import evidence_to_response, get_evidence, ingest_evidence
from bastion.services.pipeline import process_evidence

router = APIRouter()


@router.post("", response_model=EvidenceResponse, status_code=201)
def upload_evidence(
    body: EvidenceUpload,
    db: DbSession,
    tenant_id: TenantId,
) -> EvidenceResponse:
    """
    Store an evidence snapshot (header, SBOM packages, vulnerability findings).

    Packages and findings keep their input order. Severities are normalized on ingest
    (aliases such as 'crit' or 'moderate', CVSS fallback when missing).
    """
    snapshot = EvidenceSnapshot(tenant_id=tenant_id, **body.model_dump())
    evidence = ingest_evidence(db, snapshot)
    return evidence_to_response(evidence)


@router.get("/{evidence_id}", response_model=EvidenceResponse)
def read_evidence(evidence_id: uuid.UUID, db: DbSession, tenant_id: TenantId) -> EvidenceResponse:
    return evidence_to_response(get_evidence(db, evidence_id, tenant_id))


@router.post("/{evidence_id}/process", response_model=PipelineSummary)
def process_evidence_now(
    evidence_id: uuid.UUID,
    db: DbSession,
    tenant_id: TenantId,
) -> PipelineSummary:
    """Run policy evaluation, POA&M generation and incident generation for the evidence."""
    return process_evidence(db, tenant_id, evidence_id, get_settings())
