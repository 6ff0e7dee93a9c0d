"""Policy endpoints: tenant policy CRUD, evaluation against evidence, and evaluation history."""

import uuid

from fastapi import APIRouter, Response

from bastion.api.v1.deps import DbSession, TenantId
from bastion.schemas.policy import (
    EvaluateRequest,
    PolicyCreate,
    PolicyEvaluationRead,
    PolicyEvaluationResult,
    PolicyRead,
    PolicyUpdate,
)
from bastion.services.policies import create_policy, delete_policy, list_policies, update_policy
from bastion.services.policy_evaluation import evaluate_policies, get_evaluation_results

router = APIRouter()


@router.get("", response_model=list[PolicyRead])
def get_policies(db: DbSession, tenant_id: TenantId) -> list[PolicyRead]:
    """Tenant policies, highest priority first."""
    return [PolicyRead.model_validate(p) for p in list_policies(db, tenant_id)]


@router.post("", response_model=PolicyRead, status_code=201)
def post_policy(body: PolicyCreate, db: DbSession, tenant_id: TenantId) -> PolicyRead:
    """Create a policy. Parameters are validated for the policy type (422 when malformed)."""
    return PolicyRead.model_validate(create_policy(db, tenant_id, body))


@router.post("/evaluate", response_model=list[PolicyEvaluationResult])
def post_evaluate(body: EvaluateRequest, db: DbSession, tenant_id: TenantId) -> list[PolicyEvaluationResult]:
    """
    Evaluate enabled policies against one evidence snapshot and store each result.

    A policy that fails to evaluate is left out of the response; the rest still run.
    """
    return evaluate_policies(db, body.evidence_id, tenant_id, body.policy_ids)


@router.get("/evaluations/{evidence_id}", response_model=list[PolicyEvaluationRead])
def get_evaluations(evidence_id: uuid.UUID, db: DbSession, tenant_id: TenantId) -> list[PolicyEvaluationRead]:
    """Stored evaluation history for the evidence, newest first."""
    rows = get_evaluation_results(db, evidence_id, tenant_id)
    return [PolicyEvaluationRead.model_validate(r) for r in rows]


@router.put("/{policy_id}", response_model=PolicyRead)
def put_policy(policy_id: uuid.UUID, body: PolicyUpdate, db: DbSession, tenant_id: TenantId) -> PolicyRead:
    return PolicyRead.model_validate(update_policy(db, tenant_id, policy_id, body))


@router.delete("/{policy_id}", status_code=204)
def remove_policy(policy_id: uuid.UUID, db: DbSession, tenant_id: TenantId) -> Response:
    delete_policy(db, tenant_id, policy_id)
    return Response(status_code=204)
