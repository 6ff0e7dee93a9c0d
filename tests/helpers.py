"""Shared test helpers: in-memory SQLite database and evidence/policy builders."""

import uuid

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bastion.core.enums import PolicyType
from bastion.models import Base, Evidence
from bastion.schemas.evidence import EvidenceSnapshot, PackageIn, VulnerabilityFindingIn
from bastion.schemas.policy import PolicyCreate
from bastion.services.evidence import ingest_evidence
from bastion.services.policies import create_policy

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


def make_engine() -> Engine:
    """
    Fresh in-memory SQLite database with every table created.

    pysqlite's own transaction handling breaks SAVEPOINT; the listeners hand BEGIN
    back to SQLAlchemy so session.begin_nested() works as it does on PostgreSQL.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


def make_session(engine: Engine) -> Session:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def finding(
    cve_id: str = "CVE-2024-0001",
    severity: str | None = "Critical",
    cvss_score: float | None = 9.8,
    **kwargs: object,
) -> VulnerabilityFindingIn:
    """Build one scan finding with sensible package defaults."""
    defaults = {
        "package_name": "openssl",
        "package_version": "1.1.1",
        "fixed_version": "1.1.1w",
        "description": "Test vulnerability",
    }
    defaults.update(kwargs)
    return VulnerabilityFindingIn(
        cve_id=cve_id,
        severity=severity,
        cvss_score=cvss_score,
        **defaults,
    )


def package(name: str = "openssl", **kwargs: object) -> PackageIn:
    defaults = {
        "version": "1.1.1",
        "purl": f"pkg:generic/{name}@1.1.1",
        "license_declared": "Apache-2.0",
    }
    defaults.update(kwargs)
    return PackageIn(name=name, **defaults)


def snapshot(
    tenant_id: str = TENANT,
    vulnerabilities: list[VulnerabilityFindingIn] | None = None,
    packages: list[PackageIn] | None = None,
    **kwargs: object,
) -> EvidenceSnapshot:
    """Build an evidence snapshot; defaults to one package and no findings."""
    defaults = {
        "project_name": "payments-api",
        "build_id": "build-42",
        "image_digest": "sha256:abc123",
        "image_name": "gcr.io/acme/payments-api:1.0",
    }
    defaults.update(kwargs)
    return EvidenceSnapshot(
        tenant_id=tenant_id,
        packages=packages if packages is not None else [package()],
        vulnerabilities=vulnerabilities or [],
        **defaults,
    )


def ingest(session: Session, **kwargs: object) -> Evidence:
    """Store a snapshot built by snapshot(**kwargs)."""
    return ingest_evidence(session, snapshot(**kwargs))


def add_policy(
    session: Session,
    name: str,
    policy_type: PolicyType = PolicyType.CVE_SEVERITY,
    parameters: dict | None = None,
    tenant_id: str = TENANT,
    **kwargs: object,
):
    return create_policy(
        session,
        tenant_id,
        PolicyCreate(name=name, type=policy_type, parameters=parameters or {}, **kwargs),
    )


def random_id() -> uuid.UUID:
    return uuid.uuid4()
