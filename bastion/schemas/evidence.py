"""Pydantic schemas for evidence snapshots: upload input, derived facts, and read responses."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from bastion.core.enums import Severity

MAX_PACKAGES_PER_SNAPSHOT = 50_000
MAX_FINDINGS_PER_SNAPSHOT = 50_000


def _strip_or_none(value: str | None) -> str | None:
    """Treat blank strings as missing."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class PackageIn(BaseModel):
    """One SBOM package, already parsed by the upstream SBOM collaborator."""

    model_config = {"extra": "ignore"}

    name: str = Field(..., min_length=1, max_length=255, description="Package name.")
    version: str = Field(default="", max_length=128, description="Package version.")
    purl: str | None = Field(default=None, description="Package URL (purl).")
    cpe: str | None = Field(default=None, description="CPE identifier.")
    license_concluded: str | None = Field(
        default=None, description="SPDX concluded license."
    )
    license_declared: str | None = Field(
        default=None, description="SPDX declared license."
    )

    @field_validator("purl", "cpe", "license_concluded", "license_declared")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class VulnerabilityFindingIn(BaseModel):
    """One vulnerability finding from the scan. Severity is normalized on ingest."""

    model_config = {"extra": "ignore"}

    cve_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Vulnerability identifier (CVE, GHSA, ...).",
    )
    severity: str | None = Field(
        default=None,
        description="Scanner severity; aliases and case variants accepted (e.g. 'crit', 'moderate').",
    )
    cvss_score: float | None = Field(
        default=None,
        ge=0,
        le=10,
        description="CVSS base score in range 0.0–10.0.",
    )
    cvss_vector: str | None = Field(default=None, description="CVSS vector string.")
    package_name: str = Field(default="", description="Affected package name.")
    package_version: str = Field(default="", description="Affected package version.")
    fixed_version: str | None = Field(
        default=None, description="First version that fixes the vulnerability, when known."
    )
    description: str = Field(default="", description="Vulnerability description.")

    @field_validator("cve_id")
    @classmethod
    def strip_cve_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cve_id must be non-empty")
        return v

    @field_validator("fixed_version", "cvss_vector")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class EvidenceUpload(BaseModel):
    """Evidence body as received over HTTP; the tenant comes from the request header."""

    model_config = {"extra": "ignore"}

    project_name: str = Field(..., min_length=1, max_length=255, description="Project name.")
    build_id: str = Field(default="", max_length=255, description="CI build identifier.")
    build_entity_id: str | None = Field(
        default=None,
        description="Recorded build the evidence is linked to (build provenance).",
    )
    image_digest: str = Field(default="", description="Container image digest; may be empty.")
    image_name: str | None = Field(
        default=None, description="Full image name, e.g. gcr.io/project/image:tag."
    )
    image_registry: str | None = Field(
        default=None, description="Explicit image registry, e.g. gcr.io."
    )
    metadata: dict = Field(default_factory=dict, description="Free-form evidence metadata.")
    packages: list[PackageIn] = Field(
        default_factory=list,
        max_length=MAX_PACKAGES_PER_SNAPSHOT,
        description="SBOM packages in document order.",
    )
    vulnerabilities: list[VulnerabilityFindingIn] = Field(
        default_factory=list,
        max_length=MAX_FINDINGS_PER_SNAPSHOT,
        description="Vulnerability findings in scan order.",
    )

    @field_validator("build_entity_id", "image_name", "image_registry")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return _strip_or_none(v)

    @field_validator("image_digest")
    @classmethod
    def strip_digest(cls, v: str) -> str:
        return (v or "").strip()


class EvidenceSnapshot(EvidenceUpload):
    """Immutable evidence input for one tenant, as delivered after SBOM/scan parsing."""

    tenant_id: str = Field(..., min_length=1, max_length=64, description="Owning tenant.")
    evidence_id: uuid.UUID | None = Field(
        default=None,
        description="Identifier to store the snapshot under; generated when omitted.",
    )


class SeverityCounts(BaseModel):
    """Vulnerability counts per canonical severity."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    negligible: int = 0
    unknown: int = 0

    def count(self, severity: Severity) -> int:
        return getattr(self, severity.name.lower())


class EvidenceFacts(BaseModel):
    """Facts derived once per evaluation run and shared by every rule evaluator."""

    evidence_id: uuid.UUID
    tenant_id: str
    project_name: str
    image_digest: str = ""
    build_entity_id: str | None = None
    image_name: str | None = None
    image_registry: str | None = None
    metadata: dict = Field(default_factory=dict)
    packages: list[PackageIn] = Field(default_factory=list)
    severity_counts: SeverityCounts = Field(default_factory=SeverityCounts)


class EvidenceResponse(BaseModel):
    """Stored evidence header with package and finding counts."""

    id: uuid.UUID
    tenant_id: str
    project_name: str
    build_id: str
    build_entity_id: str | None = None
    image_digest: str
    image_name: str | None = None
    image_registry: str | None = None
    created_at: datetime
    package_count: int = Field(..., ge=0)
    vulnerability_count: int = Field(..., ge=0)
    severity_counts: SeverityCounts
