"""POA&M export: OSCAL 1.0.4 plan-of-action-and-milestones JSON, CSV, and report summary."""

import csv
import io
import uuid
from datetime import datetime, timezone
from typing import Any

from bastion.core.enums import PoamStatus
from bastion.models import PoamItem
from bastion.models.base import as_utc
from bastion.schemas.poam import PoamSummary

OSCAL_VERSION = "1.0.4"
DOCUMENT_VERSION = "1.0"
FEDRAMP_SYSTEM = "https://fedramp.gov"
CVSS_SYSTEM = "https://www.first.org/cvss"
PENDING_SYSTEM_ID = "PENDING"

CSV_HEADERS = (
    "POA&M Item ID",
    "CVE ID",
    "Weakness Name",
    "Weakness Description",
    "Risk Level",
    "Status",
    "Remediation Plan",
    "Scheduled Completion Date",
    "Actual Completion Date",
    "Assigned To",
    "Created Date",
)

SECONDS_PER_DAY = 24 * 60 * 60


def _iso(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value is not None else None


def _date(value: datetime | None) -> str | None:
    return as_utc(value).date().isoformat() if value is not None else None


def _risk_facets(item: PoamItem) -> list[dict[str, str]]:
    facets = [
        {"name": "likelihood", "system": FEDRAMP_SYSTEM, "value": item.likelihood},
        {"name": "impact", "system": FEDRAMP_SYSTEM, "value": item.impact},
        {"name": "risk-level", "system": FEDRAMP_SYSTEM, "value": item.risk_level},
    ]
    if item.cvss_score:
        facets.append({"name": "cvss-score", "system": CVSS_SYSTEM, "value": str(item.cvss_score)})
    return facets


def _tracking_entries(item: PoamItem) -> list[dict[str, Any]]:
    created = _iso(item.created_at)
    entries: list[dict[str, Any]] = [
        {
            "uuid": str(uuid.uuid4()),
            "date-time-stamp": created,
            "title": item.remediation_plan,
            "scheduled-completion-date": _iso(item.scheduled_completion_date),
        }
    ]
    for step in item.remediation_steps or []:
        entries.append(
            {
                "uuid": step["uuid"],
                "date-time-stamp": step.get("completed_date") or created,
                "title": step["title"],
                "description": step["description"],
            }
        )
    return entries


def poam_item_to_oscal(item: PoamItem) -> dict[str, Any]:
    """One OSCAL poam-item."""
    return {
        "uuid": str(item.oscal_uuid),
        "title": item.title,
        "description": item.description,
        "related-observations": [
            {"observation-uuid": obs["observation_uuid"]} for obs in item.related_observations or []
        ],
        "risk": {
            "status": item.status,
            "characterization": {"facets": _risk_facets(item)},
        },
        "remediation-tracking": {"tracking-entries": _tracking_entries(item)},
    }


def generate_oscal_poam(
    items: list[PoamItem],
    tenant_name: str,
    system_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build an OSCAL 1.0.4 plan-of-action-and-milestones document for the given items."""
    now = now or datetime.now(timezone.utc)
    return {
        "plan-of-action-and-milestones": {
            "uuid": str(uuid.uuid4()),
            "metadata": {
                "title": f"Bastion POA&M - {tenant_name}",
                "last-modified": now.isoformat(),
                "version": DOCUMENT_VERSION,
                "oscal-version": OSCAL_VERSION,
                "parties": [
                    {"uuid": str(uuid.uuid4()), "type": "organization", "name": tenant_name}
                ],
            },
            "system-id": {
                "identifier-type": FEDRAMP_SYSTEM,
                "id": system_id or PENDING_SYSTEM_ID,
            },
            "poam-items": [poam_item_to_oscal(item) for item in items],
        }
    }


def export_to_csv(items: list[PoamItem]) -> str:
    """Header plus one fully quoted row per item; dates as YYYY-MM-DD."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for item in items:
        writer.writerow(
            [
                str(item.oscal_uuid),
                item.cve_id or "N/A",
                item.title,
                item.description,
                item.risk_level,
                item.status,
                item.remediation_plan,
                _date(item.scheduled_completion_date),
                _date(item.actual_completion_date) or "In Progress",
                item.assigned_to or "Unassigned",
                _date(item.created_at),
            ]
        )
    return buffer.getvalue()


def generate_poam_summary(items: list[PoamItem], now: datetime | None = None) -> PoamSummary:
    """Totals by risk level and status, overdue count, and rounded average days to completion."""
    now = now or datetime.now(timezone.utc)
    summary = PoamSummary(total_items=len(items))
    completion_days: list[float] = []
    for item in items:
        summary.by_risk_level[item.risk_level] = summary.by_risk_level.get(item.risk_level, 0) + 1
        summary.by_status[item.status] = summary.by_status.get(item.status, 0) + 1
        if item.actual_completion_date is not None:
            elapsed = as_utc(item.actual_completion_date) - as_utc(item.created_at)
            completion_days.append(elapsed.total_seconds() / SECONDS_PER_DAY)
        if item.status != PoamStatus.CLOSED.value and as_utc(item.scheduled_completion_date) < now:
            summary.overdue_items += 1
    if completion_days:
        summary.average_days_to_completion = round(sum(completion_days) / len(completion_days))
    return summary
