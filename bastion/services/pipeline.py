"""Evidence pipeline: policy evaluation, then POA&M generation, then incident generation."""

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from bastion.schemas.pipeline import PipelineSummary
from bastion.services import incidents, poam
from bastion.services.evidence import get_evidence
from bastion.services.policy_evaluation import evaluate_policies

if TYPE_CHECKING:
    from bastion.core.config import Settings

logger = logging.getLogger(__name__)


def process_evidence(
    session: Session,
    tenant_id: str,
    evidence_id: uuid.UUID,
    settings: "Settings",
) -> PipelineSummary:
    """
    Run the post-upload job for one evidence snapshot. Each step can be disabled in settings.

    Re-running is safe for POA&M items (idempotent per CVE) but raises new incidents.
    Raises EvidenceNotFoundError before any step runs when the evidence is not the tenant's.
    """
    get_evidence(session, evidence_id, tenant_id)
    summary = PipelineSummary(evidence_id=evidence_id, tenant_id=tenant_id)

    if settings.PIPELINE_EVALUATE_POLICIES:
        results = evaluate_policies(session, evidence_id, tenant_id)
        summary.policies_evaluated = len(results)
        summary.policies_failed = sum(1 for r in results if not r.passed)
    else:
        summary.skipped_steps.append("evaluate_policies")

    if settings.PIPELINE_GENERATE_POAM:
        created = poam.generate_from_vulnerabilities(session, tenant_id, evidence_id)
        summary.poam_items_created = len(created)
    else:
        summary.skipped_steps.append("generate_poam")

    if settings.PIPELINE_GENERATE_INCIDENTS:
        raised = incidents.generate_from_vulnerabilities(
            session,
            tenant_id,
            evidence_id,
            preview_limit=settings.INCIDENT_HIGH_PREVIEW_LIMIT,
        )
        raised += incidents.generate_from_policy_violations(session, tenant_id, evidence_id)
        summary.incidents_created = len(raised)
    else:
        summary.skipped_steps.append("generate_incidents")

    logger.info(
        "Evidence processed: evidence_id=%s policies=%s failed=%s poam_items=%s incidents=%s skipped=%s",
        evidence_id,
        summary.policies_evaluated,
        summary.policies_failed,
        summary.poam_items_created,
        summary.incidents_created,
        summary.skipped_steps,
    )
    return summary
