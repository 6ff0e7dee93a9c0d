"""Incident generation from findings and failed policies, clustering, status workflow and stats."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from bastion.core.config import get_settings
from bastion.core.enums import IncidentSeverity, IncidentStatus, IncidentType, Severity
from bastion.core.exceptions import IncidentNotFoundError
from bastion.models import Evidence, Incident, PolicyEvaluation
from bastion.models.base import as_utc
from bastion.schemas.incident import IncidentCluster, IncidentCreate, IncidentStats
from bastion.services.evidence import get_evidence

logger = logging.getLogger(__name__)

# Lower rank sorts first.
SEVERITY_RANK: dict[str, int] = {
    IncidentSeverity.CRITICAL.value: 0,
    IncidentSeverity.HIGH.value: 1,
    IncidentSeverity.MEDIUM.value: 2,
    IncidentSeverity.LOW.value: 3,
    IncidentSeverity.INFO.value: 4,
}

CLUSTERED_STATUSES = (IncidentStatus.ACTIVE.value, IncidentStatus.ACKNOWLEDGED.value)

UNKNOWN_PROJECT = "unknown"


def create_incident(session: Session, data: IncidentCreate, now: datetime | None = None) -> Incident:
    """Insert a new ACTIVE incident with one alert and one affected asset. Does not commit."""
    now = now or datetime.now(timezone.utc)
    incident = Incident(
        tenant_id=data.tenant_id,
        title=data.title,
        description=data.description,
        type=data.type.value,
        severity=data.severity.value,
        status=IncidentStatus.ACTIVE.value,
        project_name=data.project_name,
        impacted_service=data.impacted_service,
        evidence_ids=list(data.evidence_ids),
        vulnerability_ids=list(data.vulnerability_ids),
        policy_evaluation_ids=list(data.policy_evaluation_ids),
        alert_count=1,
        affected_assets=1,
        metadata_=dict(data.metadata),
        created_at=now,
        updated_at=now,
    )
    session.add(incident)
    session.flush()
    logger.info(
        "Incident created: incident_id=%s severity=%s type=%s",
        incident.id,
        incident.severity,
        incident.type,
    )
    return incident


def _vulnerability_incident(
    tenant_id: str,
    evidence: Evidence,
    severity: Severity,
    cve_ids: list[str],
    vulnerability_ids: list[str],
    preview_limit: int | None,
) -> IncidentCreate:
    shown = cve_ids if preview_limit is None else cve_ids[:preview_limit]
    description = f"{severity.value} vulnerabilities detected: {', '.join(shown)}"
    if len(shown) < len(cve_ids):
        description += "..."
    return IncidentCreate(
        tenant_id=tenant_id,
        title=f"{len(cve_ids)} {severity.value} Vulnerabilities in {evidence.project_name}",
        description=description,
        type=IncidentType.VULNERABILITY,
        severity=IncidentSeverity(severity.value.upper()),
        project_name=evidence.project_name,
        impacted_service=evidence.project_name,
        evidence_ids=[str(evidence.id)],
        vulnerability_ids=vulnerability_ids,
        metadata={"vulnerability_count": len(cve_ids), "image_digest": evidence.image_digest},
    )


def generate_from_vulnerabilities(
    session: Session,
    tenant_id: str,
    evidence_id: uuid.UUID,
    preview_limit: int | None = None,
    now: datetime | None = None,
) -> list[Incident]:
    """
    At most one incident per bucket (Critical, High) for the evidence, never one per CVE.

    The Critical description lists every CVE id; the High description previews the first
    preview_limit ids (INCIDENT_HIGH_PREVIEW_LIMIT by default) followed by '...'.
    """
    evidence = get_evidence(session, evidence_id, tenant_id)
    if preview_limit is None:
        preview_limit = get_settings().INCIDENT_HIGH_PREVIEW_LIMIT

    buckets: list[tuple[Severity, int | None]] = [
        (Severity.CRITICAL, None),
        (Severity.HIGH, preview_limit),
    ]
    incidents: list[Incident] = []
    for severity, limit in buckets:
        vulns = [v for v in evidence.vulnerabilities if v.severity == severity.value]
        if not vulns:
            continue
        data = _vulnerability_incident(
            tenant_id,
            evidence,
            severity,
            [v.cve_id for v in vulns],
            [str(v.id) for v in vulns],
            limit,
        )
        incidents.append(create_incident(session, data, now=now))
    session.commit()
    return incidents


def latest_failed_evaluations(
    session: Session, tenant_id: str, evidence_id: uuid.UUID
) -> list[PolicyEvaluation]:
    """The most recent evaluation of each policy for the evidence, kept only where it failed."""
    rows = (
        session.query(PolicyEvaluation)
        .filter(
            PolicyEvaluation.evidence_id == evidence_id,
            PolicyEvaluation.tenant_id == tenant_id,
        )
        .order_by(PolicyEvaluation.evaluated_at.desc())
        .all()
    )
    latest: dict[uuid.UUID, PolicyEvaluation] = {}
    for row in rows:
        latest.setdefault(row.policy_id, row)
    return [row for row in latest.values() if not row.passed]


def generate_from_policy_violations(
    session: Session,
    tenant_id: str,
    evidence_id: uuid.UUID,
    now: datetime | None = None,
) -> list[Incident]:
    """One HIGH incident aggregating every failed policy for the evidence; none when all passed."""
    evidence = get_evidence(session, evidence_id, tenant_id)
    failed = latest_failed_evaluations(session, tenant_id, evidence_id)
    if not failed:
        return []

    incident = create_incident(
        session,
        IncidentCreate(
            tenant_id=tenant_id,
            title=f"{len(failed)} Policy Violations in {evidence.project_name}",
            description=f"Policy violations detected for {evidence.project_name}",
            type=IncidentType.POLICY_VIOLATION,
            severity=IncidentSeverity.HIGH,
            project_name=evidence.project_name,
            impacted_service=evidence.project_name,
            evidence_ids=[str(evidence.id)],
            policy_evaluation_ids=[str(row.id) for row in failed],
            metadata={
                "violation_count": len(failed),
                "policies": [str(row.policy_id) for row in failed],
            },
        ),
        now=now,
    )
    session.commit()
    return [incident]


def cluster_incidents(session: Session, tenant_id: str) -> list[IncidentCluster]:
    """
    Group the tenant's ACTIVE and ACKNOWLEDGED incidents by (project, type, severity).

    Sorted by severity (CRITICAL first), then by incident count descending. Computed on
    every call and never stored.
    """
    incidents = (
        session.query(Incident)
        .filter(Incident.tenant_id == tenant_id, Incident.status.in_(CLUSTERED_STATUSES))
        .order_by(Incident.created_at.desc())
        .all()
    )

    groups: dict[tuple[str, str, str], list[Incident]] = {}
    for incident in incidents:
        key = (incident.project_name or UNKNOWN_PROJECT, incident.type, incident.severity)
        groups.setdefault(key, []).append(incident)

    clusters: list[IncidentCluster] = []
    for index, ((project, incident_type, severity), members) in enumerate(groups.items()):
        services = list(dict.fromkeys(i.impacted_service for i in members if i.impacted_service))
        clusters.append(
            IncidentCluster(
                cluster_id=f"cluster-{index}",
                cluster_name=f"{project} - {incident_type}",
                severity=severity,
                project_name=project,
                type=incident_type,
                incident_count=len(members),
                total_alerts=sum(i.alert_count or 0 for i in members),
                affected_services=services,
                incident_ids=[i.id for i in members],
            )
        )

    clusters.sort(key=lambda c: (SEVERITY_RANK.get(c.severity.value, len(SEVERITY_RANK)), -c.incident_count))
    return clusters


def get_incident(session: Session, tenant_id: str, incident_id: uuid.UUID) -> Incident:
    incident = session.get(Incident, incident_id)
    if incident is None or incident.tenant_id != tenant_id:
        raise IncidentNotFoundError(str(incident_id))
    return incident


def _minutes_since(start: datetime, now: datetime) -> int:
    return int((now - as_utc(start)).total_seconds() // 60)


def update_incident_status(
    session: Session,
    tenant_id: str,
    incident_id: uuid.UUID,
    status: IncidentStatus | str,
    actor: str | None = None,
    now: datetime | None = None,
) -> Incident:
    """
    Set the status and commit.

    The first move into ACKNOWLEDGED stamps acknowledged_at and tta_minutes; the first move
    into RESOLVED stamps resolved_at and ttr_minutes. Neither is recomputed later.
    """
    status = IncidentStatus(status)
    incident = get_incident(session, tenant_id, incident_id)
    now = now or datetime.now(timezone.utc)

    incident.status = status.value
    incident.updated_at = now
    if status is IncidentStatus.ACKNOWLEDGED and incident.acknowledged_at is None:
        incident.acknowledged_at = now
        incident.tta_minutes = _minutes_since(incident.created_at, now)
    if status is IncidentStatus.RESOLVED and incident.resolved_at is None:
        incident.resolved_at = now
        incident.ttr_minutes = _minutes_since(incident.created_at, now)
    if actor:
        incident.assigned_to = actor

    session.commit()
    logger.info(
        "Incident status updated: incident_id=%s status=%s tta_minutes=%s ttr_minutes=%s",
        incident_id,
        status.value,
        incident.tta_minutes,
        incident.ttr_minutes,
    )
    return incident


def _average(values: list[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def get_incident_stats(session: Session, tenant_id: str) -> IncidentStats:
    incidents = session.query(Incident).filter(Incident.tenant_id == tenant_id).all()
    stats = IncidentStats(
        total=len(incidents),
        by_severity={s.value: 0 for s in IncidentSeverity},
        avg_tta_minutes=_average([i.tta_minutes for i in incidents if i.tta_minutes is not None]),
        avg_ttr_minutes=_average([i.ttr_minutes for i in incidents if i.ttr_minutes is not None]),
    )
    for incident in incidents:
        if incident.status == IncidentStatus.ACTIVE.value:
            stats.active += 1
        elif incident.status == IncidentStatus.ACKNOWLEDGED.value:
            stats.acknowledged += 1
        elif incident.status == IncidentStatus.RESOLVED.value:
            stats.resolved += 1
        stats.by_severity[incident.severity] = stats.by_severity.get(incident.severity, 0) + 1
        stats.by_type[incident.type] = stats.by_type.get(incident.type, 0) + 1
    return stats


def list_incidents(
    session: Session,
    tenant_id: str,
    status: list[IncidentStatus] | None = None,
    severity: list[IncidentSeverity] | None = None,
    incident_type: list[IncidentType] | None = None,
    project_name: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int | None = None,
) -> list[Incident]:
    """Tenant incidents matching the filters, newest first."""
    query = session.query(Incident).filter(Incident.tenant_id == tenant_id)
    if status:
        query = query.filter(Incident.status.in_([IncidentStatus(s).value for s in status]))
    if severity:
        query = query.filter(Incident.severity.in_([IncidentSeverity(s).value for s in severity]))
    if incident_type:
        query = query.filter(Incident.type.in_([IncidentType(t).value for t in incident_type]))
    if project_name:
        query = query.filter(Incident.project_name == project_name)
    if from_date is not None:
        query = query.filter(Incident.created_at >= from_date)
    if to_date is not None:
        query = query.filter(Incident.created_at <= to_date)
    query = query.order_by(Incident.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()
