"""POA&M generator: idempotent remediation items for Critical/High findings, status workflow and stats.

At most one non-closed item exists per (tenant, CVE). Generation pre-checks for an existing
item and inserts inside a savepoint; the partial unique index on poam_items turns a lost
race between concurrent generators into a skipped insert instead of a duplicate.
"""

import calendar
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bastion.core.config import get_settings
from bastion.core.enums import PoamStatus, RiskLevel, Severity
from bastion.core.exceptions import (
    InvalidInputError,
    InvalidStatusTransitionError,
    PoamItemNotFoundError,
)
from bastion.models import Evidence, PoamItem, Vulnerability
from bastion.models.base import as_utc
from bastion.schemas.poam import (
    ControlReference,
    PoamItemCreate,
    PoamStats,
    RelatedObservation,
    RemediationStep,
)
from bastion.services.evidence import get_evidence
from bastion.services.risk_model import classify_risk, due_date

logger = logging.getLogger(__name__)

POAM_SEVERITIES = (Severity.CRITICAL.value, Severity.HIGH.value)

AUTO_CLOSE_RATIONALE = "CVE no longer detected in latest vulnerability scans"

NIST_CATALOG = "NIST 800-53 Rev 5"
DEFAULT_CONTROLS: tuple[tuple[str, str], ...] = (
    ("RA-5", "Vulnerability Monitoring and Scanning"),
    ("SI-2", "Flaw Remediation"),
    ("CM-2", "Baseline Configuration"),
)

_INTERMEDIATE_STATUSES = frozenset(
    {
        PoamStatus.RISK_ACCEPTED,
        PoamStatus.INVESTIGATING,
        PoamStatus.REMEDIATION_PLANNED,
        PoamStatus.REMEDIATION_IN_PROGRESS,
        PoamStatus.DEVIATION_REQUESTED,
    }
)

# Open may go anywhere; working states move between themselves or close; closed is terminal.
ALLOWED_TRANSITIONS: dict[PoamStatus, frozenset[PoamStatus]] = {
    PoamStatus.OPEN: _INTERMEDIATE_STATUSES | {PoamStatus.CLOSED},
    **{
        status: (_INTERMEDIATE_STATUSES - {status}) | {PoamStatus.CLOSED}
        for status in _INTERMEDIATE_STATUSES
    },
    PoamStatus.CLOSED: frozenset(),
}

# Most severe first; used for list ordering.
RISK_LEVEL_RANK: dict[str, int] = {
    RiskLevel.VERY_HIGH.value: 0,
    RiskLevel.HIGH.value: 1,
    RiskLevel.MODERATE.value: 2,
    RiskLevel.LOW.value: 3,
}


def build_remediation_plan(vuln: Vulnerability) -> str:
    if vuln.fixed_version:
        return (
            f"Upgrade {vuln.package_name} from version {vuln.package_version} "
            f"to {vuln.fixed_version} to remediate {vuln.cve_id}."
        )
    return (
        f"Review and apply security patches for {vuln.package_name} to address {vuln.cve_id}. "
        "Monitor vendor advisories for fix availability."
    )


def build_remediation_steps(package_name: str | None, fixed_version: str | None) -> list[RemediationStep]:
    """Standard checklist: update (only when a fix exists), test, deploy with approval, verify."""
    steps: list[RemediationStep] = []
    if fixed_version:
        steps.append(
            RemediationStep(
                uuid=str(uuid.uuid4()),
                title=f"Update {package_name} to {fixed_version}",
                description="Upgrade package in dependency manifest and rebuild container image.",
            )
        )
    steps.append(
        RemediationStep(
            uuid=str(uuid.uuid4()),
            title="Test changes in non-production environment",
            description="Verify application functionality after dependency upgrade.",
        )
    )
    steps.append(
        RemediationStep(
            uuid=str(uuid.uuid4()),
            title="Deploy to production with approval",
            description="Follow change management process for production deployment.",
        )
    )
    steps.append(
        RemediationStep(
            uuid=str(uuid.uuid4()),
            title="Verify remediation",
            description="Run vulnerability scan to confirm CVE is no longer present.",
        )
    )
    return steps


def default_control_references() -> list[ControlReference]:
    """Fixed vulnerability-management controls; not CVE-specific."""
    return [
        ControlReference(catalog_name=NIST_CATALOG, control_id=control_id, control_name=name)
        for control_id, name in DEFAULT_CONTROLS
    ]


def create_poam_item(
    session: Session, data: PoamItemCreate, now: datetime | None = None
) -> PoamItem | None:
    """
    Insert one open POA&M item inside a savepoint. Does not commit.

    Returns None when the insert conflicts with an existing open item for the same
    (tenant, CVE).
    """
    now = now or datetime.now(timezone.utc)
    metadata = dict(data.metadata)
    observations = []
    if data.vulnerability_id is not None:
        observations.append(
            RelatedObservation(
                observation_uuid=str(data.vulnerability_id),
                description=f"Vulnerability scan detected {data.cve_id}",
            )
        )
    item = PoamItem(
        tenant_id=data.tenant_id,
        oscal_uuid=uuid.uuid4(),
        vulnerability_id=data.vulnerability_id,
        cve_id=data.cve_id,
        title=data.title,
        description=data.description,
        status=PoamStatus.OPEN.value,
        risk_level=data.risk_level.value,
        likelihood=data.likelihood.value,
        impact=data.impact.value,
        cvss_score=data.cvss_score,
        remediation_plan=data.remediation_plan,
        remediation_steps=[
            s.model_dump(mode="json")
            for s in build_remediation_steps(metadata.get("package_name"), metadata.get("fixed_version"))
        ],
        affected_controls=[c.model_dump(mode="json") for c in default_control_references()],
        related_observations=[o.model_dump(mode="json") for o in observations],
        affected_systems=list(data.affected_systems),
        scheduled_completion_date=due_date(data.risk_level, now=now),
        assigned_to=data.assigned_to,
        metadata_=metadata,
        created_at=now,
        updated_at=now,
    )
    try:
        with session.begin_nested():
            session.add(item)
    except IntegrityError:
        logger.info(
            "POA&M item already open for CVE; skipping: tenant_id=%s cve_id=%s",
            data.tenant_id,
            data.cve_id,
        )
        return None
    logger.info(
        "POA&M item created: poam_id=%s oscal_uuid=%s cve_id=%s risk_level=%s",
        item.id,
        item.oscal_uuid,
        item.cve_id,
        item.risk_level,
    )
    return item


def _existing_item_id(session: Session, tenant_id: str, cve_id: str) -> uuid.UUID | None:
    row = (
        session.query(PoamItem.id)
        .filter(PoamItem.tenant_id == tenant_id, PoamItem.cve_id == cve_id)
        .first()
    )
    return row[0] if row else None


def generate_from_vulnerabilities(
    session: Session,
    tenant_id: str,
    evidence_id: uuid.UUID,
    now: datetime | None = None,
) -> list[PoamItem]:
    """
    Create POA&M items for the evidence's Critical and High findings.

    Skips any CVE that already has an item for the tenant, so repeated runs over the
    same evidence create nothing new. Medium and lower never spawn items.
    """
    evidence = get_evidence(session, evidence_id, tenant_id)
    findings = [v for v in evidence.vulnerabilities if v.severity in POAM_SEVERITIES]

    created: list[PoamItem] = []
    for vuln in findings:
        if _existing_item_id(session, tenant_id, vuln.cve_id) is not None:
            logger.info("POA&M already exists for CVE: tenant_id=%s cve_id=%s", tenant_id, vuln.cve_id)
            continue
        risk = classify_risk(vuln.cvss_score or 0.0, vuln.severity)
        item = create_poam_item(
            session,
            PoamItemCreate(
                tenant_id=tenant_id,
                vulnerability_id=vuln.id,
                cve_id=vuln.cve_id,
                title=f"{vuln.cve_id} in {vuln.package_name}@{vuln.package_version}",
                description=vuln.description or "",
                risk_level=risk.risk_level,
                likelihood=risk.likelihood,
                impact=risk.impact,
                cvss_score=vuln.cvss_score,
                remediation_plan=build_remediation_plan(vuln),
                affected_systems=[evidence.project_name],
                metadata={
                    "package_name": vuln.package_name,
                    "package_version": vuln.package_version,
                    "fixed_version": vuln.fixed_version,
                    "cvss_vector": vuln.cvss_vector,
                    "evidence_id": str(evidence.id),
                },
            ),
            now=now,
        )
        if item is not None:
            created.append(item)
    session.commit()

    logger.info(
        "POA&M items generated from vulnerabilities: tenant_id=%s evidence_id=%s poam_count=%s",
        tenant_id,
        evidence_id,
        len(created),
    )
    return created


def get_poam_item(session: Session, tenant_id: str, poam_id: uuid.UUID) -> PoamItem:
    item = session.get(PoamItem, poam_id)
    if item is None or item.tenant_id != tenant_id:
        raise PoamItemNotFoundError(str(poam_id))
    return item


def _require(value: str | None, field: str, status: PoamStatus) -> str:
    if not value or not value.strip():
        raise InvalidInputError(f"{field} is required to move a POA&M item to {status.value}")
    return value.strip()


def update_poam_status(
    session: Session,
    tenant_id: str,
    poam_id: uuid.UUID,
    status: PoamStatus | str,
    actor: str | None = None,
    rationale: str | None = None,
    now: datetime | None = None,
) -> PoamItem:
    """
    Move an item through the status workflow and commit.

    Risk acceptance records approver, date and deviation rationale; closure records
    closer, date, rationale and the actual completion date. Closed items are terminal.
    """
    status = PoamStatus(status)
    item = get_poam_item(session, tenant_id, poam_id)
    current = PoamStatus(item.status)
    if status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, status.value)

    now = now or datetime.now(timezone.utc)
    if status in (PoamStatus.RISK_ACCEPTED, PoamStatus.CLOSED):
        actor = _require(actor, "actor", status)
        rationale = _require(rationale, "rationale", status)
    if status is PoamStatus.RISK_ACCEPTED:
        item.approved_by = actor
        item.deviation_rationale = rationale
        item.approved_date = now
    elif status is PoamStatus.CLOSED:
        item.closed_by = actor
        item.closure_rationale = rationale
        item.closed_date = now
        item.actual_completion_date = now

    item.status = status.value
    item.updated_at = now
    session.commit()
    logger.info("POA&M status updated: poam_id=%s status=%s actor=%s", poam_id, status.value, actor)
    return item


def auto_close_if_remediated(
    session: Session,
    tenant_id: str,
    cve_id: str,
    actor: str | None = None,
    now: datetime | None = None,
) -> list[PoamItem]:
    """
    Close the tenant's open items for a CVE when none of the tenant's scans still report it.

    Point-in-time check; callers run it after each new scan ingestion. Returns the items closed.
    """
    still_present = (
        session.query(Vulnerability.id)
        .join(Evidence, Vulnerability.evidence_id == Evidence.id)
        .filter(Evidence.tenant_id == tenant_id, Vulnerability.cve_id == cve_id)
        .first()
    )
    if still_present is not None:
        return []

    actor = actor or get_settings().SYSTEM_ACTOR
    open_items = (
        session.query(PoamItem)
        .filter(
            PoamItem.tenant_id == tenant_id,
            PoamItem.cve_id == cve_id,
            PoamItem.status == PoamStatus.OPEN.value,
        )
        .all()
    )
    closed = [
        update_poam_status(
            session,
            tenant_id,
            item.id,
            PoamStatus.CLOSED,
            actor=actor,
            rationale=AUTO_CLOSE_RATIONALE,
            now=now,
        )
        for item in open_items
    ]
    logger.info("POA&M items auto-closed for remediated CVE: cve_id=%s count=%s", cve_id, len(closed))
    return closed


def list_poam_items(
    session: Session,
    tenant_id: str,
    status: list[PoamStatus] | None = None,
    risk_level: list[RiskLevel] | None = None,
    assigned_to: str | None = None,
    overdue: bool = False,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[PoamItem]:
    """Tenant items, most severe risk first, then earliest scheduled completion."""
    query = session.query(PoamItem).filter(PoamItem.tenant_id == tenant_id)
    if status:
        query = query.filter(PoamItem.status.in_([PoamStatus(s).value for s in status]))
    if risk_level:
        query = query.filter(PoamItem.risk_level.in_([RiskLevel(r).value for r in risk_level]))
    if assigned_to:
        query = query.filter(PoamItem.assigned_to == assigned_to)
    if overdue:
        query = query.filter(
            PoamItem.scheduled_completion_date < (now or datetime.now(timezone.utc)),
            PoamItem.status != PoamStatus.CLOSED.value,
        )
    rank = case(RISK_LEVEL_RANK, value=PoamItem.risk_level, else_=len(RISK_LEVEL_RANK))
    query = query.order_by(rank, PoamItem.scheduled_completion_date.asc())
    if limit:
        query = query.limit(limit)
    return query.all()


def _one_month_after(value: datetime) -> datetime:
    """Same day next month, clamped to the month's last day."""
    year = value.year + value.month // 12
    month = value.month % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def get_poam_stats(session: Session, tenant_id: str, now: datetime | None = None) -> PoamStats:
    """Counts by status and risk level, plus overdue and due-soon counts over non-closed items."""
    items = session.query(PoamItem).filter(PoamItem.tenant_id == tenant_id).all()
    now = now or datetime.now(timezone.utc)
    one_week = now + timedelta(days=7)
    one_month = _one_month_after(now)

    stats = PoamStats(
        total=len(items),
        by_status={s.value: 0 for s in PoamStatus},
        by_risk_level={r.value: 0 for r in RiskLevel},
    )
    for item in items:
        stats.by_status[item.status] = stats.by_status.get(item.status, 0) + 1
        stats.by_risk_level[item.risk_level] = stats.by_risk_level.get(item.risk_level, 0) + 1
        if item.status == PoamStatus.CLOSED.value:
            continue
        scheduled = as_utc(item.scheduled_completion_date)
        if scheduled < now:
            stats.overdue += 1
            continue
        if scheduled <= one_week:
            stats.due_this_week += 1
        if scheduled <= one_month:
            stats.due_this_month += 1
    return stats
