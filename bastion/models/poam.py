"""ORM model for POA&M (Plan of Action and Milestones) remediation items."""

import uuid

from sqlalchemy import Column, DateTime, Float, Index, String, Text, Uuid, func, text

from bastion.core.enums import PoamStatus
from bastion.models.base import Base, JSONType, utcnow

# At most one non-closed item per (tenant, CVE); enforced by the database.
OPEN_ITEM_PREDICATE = text("status <> 'closed'")


class PoamItem(Base):
    """
    Remediation tracking unit for one vulnerability (OSCAL poam-item).

    Closed items are terminal: only audit metadata may change after closure.
    """

    __tablename__ = "poam_items"
    __table_args__ = (
        Index("ix_poam_items_tenant_status", "tenant_id", "status"),
        Index("ix_poam_items_tenant_risk_level", "tenant_id", "risk_level"),
        Index(
            "ix_poam_items_tenant_scheduled_completion",
            "tenant_id",
            "scheduled_completion_date",
        ),
        Index(
            "uq_poam_items_open_cve",
            "tenant_id",
            "cve_id",
            unique=True,
            postgresql_where=OPEN_ITEM_PREDICATE,
            sqlite_where=OPEN_ITEM_PREDICATE,
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False)
    oscal_uuid = Column(Uuid, nullable=False, unique=True, default=uuid.uuid4)
    vulnerability_id = Column(Uuid, nullable=True, index=True)
    cve_id = Column(String(64), nullable=True, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default=PoamStatus.OPEN.value)

    # NIST 800-30 triple
    risk_level = Column(String(32), nullable=False)
    likelihood = Column(String(16), nullable=False)
    impact = Column(String(16), nullable=False)
    cvss_score = Column(Float, nullable=True)

    remediation_plan = Column(Text, nullable=False, default="")
    remediation_steps = Column(JSONType, nullable=False, default=list)
    affected_controls = Column(JSONType, nullable=False, default=list)
    related_observations = Column(JSONType, nullable=False, default=list)
    affected_systems = Column(JSONType, nullable=False, default=list)

    scheduled_completion_date = Column(DateTime(timezone=True), nullable=False)
    actual_completion_date = Column(DateTime(timezone=True), nullable=True)
    assigned_to = Column(String(255), nullable=True)

    # Risk acceptance
    deviation_rationale = Column(Text, nullable=True)
    approved_by = Column(String(255), nullable=True)
    approved_date = Column(DateTime(timezone=True), nullable=True)

    # Closure
    closure_rationale = Column(Text, nullable=True)
    closed_by = Column(String(255), nullable=True)
    closed_date = Column(DateTime(timezone=True), nullable=True)

    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
