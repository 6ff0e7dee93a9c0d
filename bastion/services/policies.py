"""Tenant policy management: create, list, update and delete policies."""

import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bastion.core.exceptions import DuplicatePolicyError, PolicyNotFoundError
from bastion.models import Policy
from bastion.schemas.policy import PolicyCreate, PolicyUpdate
from bastion.services.policy_rules import validate_policy_parameters

logger = logging.getLogger(__name__)


def _name_taken(session: Session, tenant_id: str, name: str, exclude_id: uuid.UUID | None = None) -> bool:
    query = session.query(Policy.id).filter(Policy.tenant_id == tenant_id, Policy.name == name)
    if exclude_id is not None:
        query = query.filter(Policy.id != exclude_id)
    return query.first() is not None


def _commit_or_duplicate(session: Session, name: str) -> None:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise DuplicatePolicyError(name) from e


def create_policy(session: Session, tenant_id: str, data: PolicyCreate) -> Policy:
    """Validate type-specific parameters and store a new policy for the tenant."""
    parameters = validate_policy_parameters(data.type, data.parameters)
    if _name_taken(session, tenant_id, data.name):
        raise DuplicatePolicyError(data.name)
    policy = Policy(
        tenant_id=tenant_id,
        name=data.name,
        description=data.description,
        type=data.type.value,
        enforcement_level=data.enforcement_level.value,
        enabled=data.enabled,
        priority=data.priority,
        parameters=parameters,
    )
    session.add(policy)
    _commit_or_duplicate(session, data.name)
    logger.info("Policy created: policy_id=%s tenant_id=%s type=%s", policy.id, tenant_id, policy.type)
    return policy


def list_policies(session: Session, tenant_id: str) -> list[Policy]:
    """All tenant policies, highest priority first, then by name."""
    return (
        session.query(Policy)
        .filter(Policy.tenant_id == tenant_id)
        .order_by(Policy.priority.desc(), Policy.name.asc())
        .all()
    )


def get_policy(session: Session, tenant_id: str, policy_id: uuid.UUID) -> Policy:
    policy = session.get(Policy, policy_id)
    if policy is None or policy.tenant_id != tenant_id:
        raise PolicyNotFoundError(str(policy_id))
    return policy


def update_policy(
    session: Session, tenant_id: str, policy_id: uuid.UUID, data: PolicyUpdate
) -> Policy:
    """Apply the set fields; parameters are re-validated against the resulting type."""
    policy = get_policy(session, tenant_id, policy_id)
    changes = data.model_dump(exclude_unset=True)

    if "type" in changes or "parameters" in changes:
        new_type = changes.get("type") or policy.type
        new_parameters = changes["parameters"] if changes.get("parameters") is not None else policy.parameters
        changes["parameters"] = validate_policy_parameters(new_type, new_parameters)
    if changes.get("name") and _name_taken(session, tenant_id, changes["name"], exclude_id=policy.id):
        raise DuplicatePolicyError(changes["name"])

    for field, value in changes.items():
        if value is None:
            continue
        setattr(policy, field, getattr(value, "value", value))
    name = policy.name
    _commit_or_duplicate(session, name)
    logger.info("Policy updated: policy_id=%s fields=%s", policy.id, sorted(changes))
    return policy


def delete_policy(session: Session, tenant_id: str, policy_id: uuid.UUID) -> None:
    """Delete the policy. Its evaluation history stays for audit."""
    policy = get_policy(session, tenant_id, policy_id)
    session.delete(policy)
    session.commit()
    logger.info("Policy deleted: policy_id=%s tenant_id=%s", policy_id, tenant_id)
