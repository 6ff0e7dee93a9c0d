"""Initial schema: evidence, packages, vulnerabilities, policies, evaluations, POA&M items, incidents.

Revision ID: 20261019000000
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _jsonb() -> postgresql.JSONB:
    return postgresql.JSONB(astext_type=sa.Text())


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "evidence",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("project_name", sa.String(length=255), nullable=False),
        sa.Column("build_id", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("build_entity_id", sa.String(length=255), nullable=True),
        sa.Column("image_digest", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("image_name", sa.String(length=512), nullable=True),
        sa.Column("image_registry", sa.String(length=255), nullable=True),
        sa.Column("metadata", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_evidence_tenant_id"), "evidence", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_evidence_image_digest"), "evidence", ["image_digest"], unique=False)

    op.create_table(
        "packages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("evidence_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("version", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("purl", sa.String(length=512), nullable=True),
        sa.Column("cpe", sa.String(length=512), nullable=True),
        sa.Column("license_concluded", sa.String(length=255), nullable=True),
        sa.Column("license_declared", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["evidence_id"], ["evidence.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_packages_evidence_id"), "packages", ["evidence_id"], unique=False)
    op.create_index(op.f("ix_packages_purl"), "packages", ["purl"], unique=False)

    op.create_table(
        "vulnerabilities",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("evidence_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cve_id", sa.String(length=64), nullable=False),
        sa.Column("severity", sa.String(length=32), nullable=False),
        sa.Column("cvss_score", sa.Float(), nullable=True),
        sa.Column("cvss_vector", sa.String(length=255), nullable=True),
        sa.Column("package_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("package_version", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("fixed_version", sa.String(length=128), nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.ForeignKeyConstraint(["evidence_id"], ["evidence.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_vulnerabilities_evidence_id"), "vulnerabilities", ["evidence_id"], unique=False)
    op.create_index(op.f("ix_vulnerabilities_cve_id"), "vulnerabilities", ["cve_id"], unique=False)
    op.create_index(op.f("ix_vulnerabilities_severity"), "vulnerabilities", ["severity"], unique=False)

    op.create_table(
        "policies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("enforcement_level", sa.String(length=32), nullable=False, server_default="WARNING"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("parameters", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "name", name="uq_policies_tenant_name"),
    )
    op.create_index(op.f("ix_policies_tenant_id"), "policies", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_policies_type"), "policies", ["type"], unique=False)
    op.create_index(op.f("ix_policies_enabled"), "policies", ["enabled"], unique=False)

    op.create_table(
        "policy_evaluations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("policy_id", sa.Uuid(), nullable=False),
        sa.Column("evidence_id", sa.Uuid(), nullable=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("violations", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        _timestamp("evaluated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_policy_evaluations_evidence_id"), "policy_evaluations", ["evidence_id"], unique=False)
    op.create_index(op.f("ix_policy_evaluations_tenant_id"), "policy_evaluations", ["tenant_id"], unique=False)
    op.create_index(
        "ix_policy_evaluations_policy_evaluated_at",
        "policy_evaluations",
        ["policy_id", "evaluated_at"],
        unique=False,
    )

    op.create_table(
        "poam_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("oscal_uuid", sa.Uuid(), nullable=False),
        sa.Column("vulnerability_id", sa.Uuid(), nullable=True),
        sa.Column("cve_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="open"),
        sa.Column("risk_level", sa.String(length=32), nullable=False),
        sa.Column("likelihood", sa.String(length=16), nullable=False),
        sa.Column("impact", sa.String(length=16), nullable=False),
        sa.Column("cvss_score", sa.Float(), nullable=True),
        sa.Column("remediation_plan", sa.Text(), nullable=False, server_default=""),
        sa.Column("remediation_steps", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("affected_controls", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("related_observations", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("affected_systems", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("scheduled_completion_date", sa.DateTime(timezone=True), nullable=False),
        _timestamp("actual_completion_date", nullable=True),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        sa.Column("deviation_rationale", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        _timestamp("approved_date", nullable=True),
        sa.Column("closure_rationale", sa.Text(), nullable=True),
        sa.Column("closed_by", sa.String(length=255), nullable=True),
        _timestamp("closed_date", nullable=True),
        sa.Column("metadata", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("oscal_uuid"),
    )
    op.create_index(op.f("ix_poam_items_vulnerability_id"), "poam_items", ["vulnerability_id"], unique=False)
    op.create_index(op.f("ix_poam_items_cve_id"), "poam_items", ["cve_id"], unique=False)
    op.create_index("ix_poam_items_tenant_status", "poam_items", ["tenant_id", "status"], unique=False)
    op.create_index("ix_poam_items_tenant_risk_level", "poam_items", ["tenant_id", "risk_level"], unique=False)
    op.create_index(
        "ix_poam_items_tenant_scheduled_completion",
        "poam_items",
        ["tenant_id", "scheduled_completion_date"],
        unique=False,
    )
    op.create_index(
        "uq_poam_items_open_cve",
        "poam_items",
        ["tenant_id", "cve_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'closed'"),
    )

    op.create_table(
        "incidents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("project_name", sa.String(length=255), nullable=True),
        sa.Column("impacted_service", sa.String(length=255), nullable=True),
        sa.Column("evidence_ids", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("vulnerability_ids", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("policy_evaluation_ids", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("alert_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("affected_assets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        _timestamp("acknowledged_at", nullable=True),
        _timestamp("resolved_at", nullable=True),
        sa.Column("tta_minutes", sa.Integer(), nullable=True),
        sa.Column("ttr_minutes", sa.Integer(), nullable=True),
        sa.Column("metadata", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_incidents_impacted_service"), "incidents", ["impacted_service"], unique=False)
    op.create_index("ix_incidents_tenant_status", "incidents", ["tenant_id", "status"], unique=False)
    op.create_index("ix_incidents_severity_created_at", "incidents", ["severity", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("incidents")
    op.drop_index("uq_poam_items_open_cve", table_name="poam_items")
    op.drop_table("poam_items")
    op.drop_table("policy_evaluations")
    op.drop_table("policies")
    op.drop_table("vulnerabilities")
    op.drop_table("packages")
    op.drop_table("evidence")
