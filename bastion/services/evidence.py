"""Evidence store: persist parsed SBOM/scan snapshots and derive the facts rule evaluators consume."""

import logging
import uuid

from sqlalchemy.orm import Session

from bastion.core.enums import Severity
from bastion.core.exceptions import EvidenceNotFoundError
from bastion.models import Evidence, Package, Vulnerability
from bastion.schemas.evidence import (
    EvidenceFacts,
    EvidenceResponse,
    EvidenceSnapshot,
    PackageIn,
    SeverityCounts,
)
from bastion.services.normalize import normalize_severity, normalize_vulnerability_id

logger = logging.getLogger(__name__)


def ingest_evidence(session: Session, snapshot: EvidenceSnapshot) -> Evidence:
    """
    Persist one evidence snapshot with its packages and findings in input order.

    Severity strings are normalized (aliases, case, CVSS fallback) before storage.
    Commits; the stored Evidence is never mutated afterwards.
    """
    evidence = Evidence(
        id=snapshot.evidence_id or uuid.uuid4(),
        tenant_id=snapshot.tenant_id,
        project_name=snapshot.project_name,
        build_id=snapshot.build_id,
        build_entity_id=snapshot.build_entity_id,
        image_digest=snapshot.image_digest,
        image_name=snapshot.image_name,
        image_registry=snapshot.image_registry,
        metadata_=dict(snapshot.metadata),
    )
    for position, pkg in enumerate(snapshot.packages):
        evidence.packages.append(
            Package(
                position=position,
                name=pkg.name,
                version=pkg.version,
                purl=pkg.purl,
                cpe=pkg.cpe,
                license_concluded=pkg.license_concluded,
                license_declared=pkg.license_declared,
            )
        )
    for position, finding in enumerate(snapshot.vulnerabilities):
        evidence.vulnerabilities.append(
            Vulnerability(
                position=position,
                cve_id=normalize_vulnerability_id(finding.cve_id),
                severity=normalize_severity(finding.severity, finding.cvss_score).value,
                cvss_score=finding.cvss_score,
                cvss_vector=finding.cvss_vector,
                package_name=finding.package_name,
                package_version=finding.package_version,
                fixed_version=finding.fixed_version,
                description=finding.description,
            )
        )
    session.add(evidence)
    session.commit()
    logger.info(
        "Evidence ingested: evidence_id=%s tenant_id=%s packages=%s vulnerabilities=%s",
        evidence.id,
        evidence.tenant_id,
        len(snapshot.packages),
        len(snapshot.vulnerabilities),
    )
    return evidence


def get_evidence(session: Session, evidence_id: uuid.UUID, tenant_id: str) -> Evidence:
    """Return the tenant's evidence or raise EvidenceNotFoundError (also for another tenant's id)."""
    evidence = session.get(Evidence, evidence_id)
    if evidence is None or evidence.tenant_id != tenant_id:
        raise EvidenceNotFoundError(str(evidence_id))
    return evidence


def count_severities(vulnerabilities: list[Vulnerability]) -> SeverityCounts:
    """Per-severity counts; stored values outside the enum count as unknown."""
    counts = SeverityCounts()
    for vuln in vulnerabilities:
        try:
            severity = Severity(vuln.severity)
        except ValueError:
            severity = Severity.UNKNOWN
        field = severity.name.lower()
        setattr(counts, field, getattr(counts, field) + 1)
    return counts


def _metadata_str(metadata: dict, key: str) -> str | None:
    value = metadata.get(key)
    return value if isinstance(value, str) else None


def build_evidence_facts(evidence: Evidence) -> EvidenceFacts:
    """Derive the evaluation facts (counts, packages, header fields) from a stored snapshot."""
    metadata = evidence.metadata_ or {}
    return EvidenceFacts(
        evidence_id=evidence.id,
        tenant_id=evidence.tenant_id,
        project_name=evidence.project_name,
        image_digest=evidence.image_digest or "",
        build_entity_id=evidence.build_entity_id,
        image_name=evidence.image_name or _metadata_str(metadata, "imageName"),
        image_registry=evidence.image_registry or _metadata_str(metadata, "imageRegistry"),
        metadata=metadata,
        packages=[
            PackageIn(
                name=p.name,
                version=p.version or "",
                purl=p.purl,
                cpe=p.cpe,
                license_concluded=p.license_concluded,
                license_declared=p.license_declared,
            )
            for p in evidence.packages
        ],
        severity_counts=count_severities(evidence.vulnerabilities),
    )


def load_evidence_facts(session: Session, evidence_id: uuid.UUID, tenant_id: str) -> EvidenceFacts:
    """Load the tenant's evidence and derive its facts once for an evaluation run."""
    return build_evidence_facts(get_evidence(session, evidence_id, tenant_id))


def evidence_to_response(evidence: Evidence) -> EvidenceResponse:
    return EvidenceResponse(
        id=evidence.id,
        tenant_id=evidence.tenant_id,
        project_name=evidence.project_name,
        build_id=evidence.build_id or "",
        build_entity_id=evidence.build_entity_id,
        image_digest=evidence.image_digest or "",
        image_name=evidence.image_name,
        image_registry=evidence.image_registry,
        created_at=evidence.created_at,
        package_count=len(evidence.packages),
        vulnerability_count=len(evidence.vulnerabilities),
        severity_counts=count_severities(evidence.vulnerabilities),
    )
