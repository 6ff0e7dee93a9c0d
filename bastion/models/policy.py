"""ORM models for tenant policies and their append-only evaluation history."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)

from bastion.core.enums import EnforcementLevel
from bastion.models.base import Base, JSONType, utcnow


class Policy(Base):
    """Tenant-scoped rule definition. Evaluation never mutates it."""

    __tablename__ = "policies"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_policies_tenant_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    type = Column(String(64), nullable=False, index=True)
    enforcement_level = Column(
        String(32), nullable=False, default=EnforcementLevel.WARNING.value
    )
    enabled = Column(Boolean, nullable=False, default=True, index=True)
    # Higher priority evaluates (and displays) first.
    priority = Column(Integer, nullable=False, default=0)
    parameters = Column(JSONType, nullable=False, default=dict)
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


class PolicyEvaluation(Base):
    """
    Stored outcome of one policy evaluated against one evidence snapshot.

    Insert-only: a new row per evaluation run; rows are never updated.
    """

    __tablename__ = "policy_evaluations"
    __table_args__ = (
        Index("ix_policy_evaluations_policy_evaluated_at", "policy_id", "evaluated_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    policy_id = Column(Uuid, nullable=False)
    evidence_id = Column(Uuid, nullable=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    passed = Column(Boolean, nullable=False)
    violations = Column(JSONType, nullable=False, default=list)
    evaluated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
