"""ORM models for an uploaded evidence snapshot: header, SBOM packages, vulnerability findings."""

import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import relationship

from bastion.models.base import Base, JSONType, utcnow


class Evidence(Base):
    """
    One evidence upload (SBOM + vulnerability scan) for a tenant project.

    Created once per upload and never mutated afterwards.
    """

    __tablename__ = "evidence"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    project_name = Column(String(255), nullable=False)
    build_id = Column(String(255), nullable=False, default="")
    # Link to a recorded build; "build info" for provenance policies.
    build_entity_id = Column(String(255), nullable=True)
    image_digest = Column(String(255), nullable=False, default="", index=True)
    image_name = Column(String(512), nullable=True)
    image_registry = Column(String(255), nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    packages = relationship(
        "Package",
        back_populates="evidence",
        order_by="Package.position",
        cascade="all, delete-orphan",
    )
    vulnerabilities = relationship(
        "Vulnerability",
        back_populates="evidence",
        order_by="Vulnerability.position",
        cascade="all, delete-orphan",
    )


class Package(Base):
    """Software package listed in the evidence SBOM."""

    __tablename__ = "packages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    evidence_id = Column(
        Uuid, ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    version = Column(String(128), nullable=False, default="")
    purl = Column(String(512), nullable=True, index=True)
    cpe = Column(String(512), nullable=True)
    license_concluded = Column(String(255), nullable=True)
    license_declared = Column(String(255), nullable=True)

    evidence = relationship("Evidence", back_populates="packages")


class Vulnerability(Base):
    """Vulnerability finding reported by the scan for one package."""

    __tablename__ = "vulnerabilities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    evidence_id = Column(
        Uuid, ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)
    cve_id = Column(String(64), nullable=False, index=True)
    severity = Column(String(32), nullable=False, index=True)
    cvss_score = Column(Float, nullable=True)
    cvss_vector = Column(String(255), nullable=True)
    package_name = Column(String(255), nullable=False, default="")
    package_version = Column(String(128), nullable=False, default="")
    fixed_version = Column(String(128), nullable=True)
    description = Column(Text, nullable=False, default="")

    evidence = relationship("Evidence", back_populates="vulnerabilities")
