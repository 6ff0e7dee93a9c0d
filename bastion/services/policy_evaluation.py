"""Policy evaluation orchestrator: run a tenant's applicable policies against one evidence snapshot.

Evidence facts are derived once per run. Policies are evaluated sequentially; a policy whose
evaluator (or parameter validation) fails is logged and left out of the results without
aborting the batch. Every returned result has been stored as an insert-only evaluation row.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from bastion.models import Policy, PolicyEvaluation
from bastion.schemas.evidence import EvidenceFacts
from bastion.schemas.policy import PolicyEvaluationResult
from bastion.services.evidence import get_evidence, load_evidence_facts
from bastion.services.policy_rules import evaluate_rule

logger = logging.getLogger(__name__)


def load_applicable_policies(
    session: Session,
    tenant_id: str,
    policy_ids: list[uuid.UUID] | None = None,
) -> list[Policy]:
    """
    Enabled tenant policies, highest priority first.

    When policy_ids is non-empty only those ids are considered; ids that are disabled
    or owned by another tenant are silently dropped.
    """
    query = session.query(Policy).filter(Policy.tenant_id == tenant_id, Policy.enabled.is_(True))
    if policy_ids:
        query = query.filter(Policy.id.in_(policy_ids))
    return query.order_by(Policy.priority.desc(), Policy.name.asc()).all()


def evaluate_policy(
    policy: Policy, facts: EvidenceFacts, now: datetime | None = None
) -> PolicyEvaluationResult:
    """Evaluate one policy without persisting it. Raises on malformed parameters."""
    outcome = evaluate_rule(policy.type, policy.parameters, facts)
    if outcome.passed:
        message = f'Policy "{policy.name}" passed'
    else:
        message = f'Policy "{policy.name}" failed with {len(outcome.violations)} violation(s)'
    return PolicyEvaluationResult(
        policy_id=policy.id,
        policy_name=policy.name,
        policy_type=policy.type,
        passed=outcome.passed,
        violations=outcome.violations,
        message=message,
        evaluated_at=now or datetime.now(timezone.utc),
    )


def _store_result(session: Session, facts: EvidenceFacts, result: PolicyEvaluationResult) -> uuid.UUID:
    row = PolicyEvaluation(
        policy_id=result.policy_id,
        evidence_id=facts.evidence_id,
        tenant_id=facts.tenant_id,
        passed=result.passed,
        violations=[v.model_dump(mode="json") for v in result.violations],
        evaluated_at=result.evaluated_at,
    )
    with session.begin_nested():
        session.add(row)
    return row.id


def evaluate_policies(
    session: Session,
    evidence_id: uuid.UUID,
    tenant_id: str,
    policy_ids: list[uuid.UUID] | None = None,
    now: datetime | None = None,
) -> list[PolicyEvaluationResult]:
    """
    Evaluate applicable policies against the tenant's evidence and store each result.

    Raises EvidenceNotFoundError when the evidence is missing or belongs to another tenant.
    Returns an empty list when the tenant has no applicable policies.
    """
    logger.info(
        "Starting policy evaluation: evidence_id=%s tenant_id=%s policy_ids=%s",
        evidence_id,
        tenant_id,
        policy_ids,
    )
    facts = load_evidence_facts(session, evidence_id, tenant_id)
    policies = load_applicable_policies(session, tenant_id, policy_ids)
    if not policies:
        logger.warning("No policies found for evaluation: tenant_id=%s policy_ids=%s", tenant_id, policy_ids)
        return []

    results: list[PolicyEvaluationResult] = []
    for policy in policies:
        try:
            result = evaluate_policy(policy, facts, now=now)
            evaluation_id = _store_result(session, facts, result)
        except Exception:
            logger.exception(
                "Policy evaluation failed: policy_id=%s policy_name=%s", policy.id, policy.name
            )
            continue
        results.append(result.model_copy(update={"evaluation_id": evaluation_id}))
    session.commit()

    passed = sum(1 for r in results if r.passed)
    logger.info(
        "Policy evaluation completed: evidence_id=%s total=%s passed=%s failed=%s",
        evidence_id,
        len(policies),
        passed,
        len(results) - passed,
    )
    return results


def get_evaluation_results(
    session: Session, evidence_id: uuid.UUID, tenant_id: str
) -> list[PolicyEvaluation]:
    """Stored evaluation history for the tenant's evidence, newest first."""
    get_evidence(session, evidence_id, tenant_id)
    return (
        session.query(PolicyEvaluation)
        .filter(
            PolicyEvaluation.evidence_id == evidence_id,
            PolicyEvaluation.tenant_id == tenant_id,
        )
        .order_by(PolicyEvaluation.evaluated_at.desc())
        .all()
    )
