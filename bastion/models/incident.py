"""ORM model for incidents raised from vulnerabilities and policy violations."""

import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, Uuid, func

from bastion.core.enums import IncidentStatus
from bastion.models.base import Base, JSONType, utcnow


class Incident(Base):
    """
    Aggregation of a detected problem for one tenant.

    tta_minutes / ttr_minutes are computed once, at the first transition into
    ACKNOWLEDGED / RESOLVED, and never recalculated.
    """

    __tablename__ = "incidents"
    __table_args__ = (
        Index("ix_incidents_tenant_status", "tenant_id", "status"),
        Index("ix_incidents_severity_created_at", "severity", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(32), nullable=False)
    severity = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default=IncidentStatus.ACTIVE.value)

    project_name = Column(String(255), nullable=True)
    impacted_service = Column(String(255), nullable=True, index=True)

    evidence_ids = Column(JSONType, nullable=False, default=list)
    vulnerability_ids = Column(JSONType, nullable=False, default=list)
    policy_evaluation_ids = Column(JSONType, nullable=False, default=list)

    alert_count = Column(Integer, nullable=False, default=0)
    affected_assets = Column(Integer, nullable=False, default=0)

    assigned_to = Column(String(255), nullable=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    tta_minutes = Column(Integer, nullable=True)
    ttr_minutes = Column(Integer, nullable=True)

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
