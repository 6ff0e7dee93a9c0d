"""SQLAlchemy ORM models."""

from bastion.models.base import Base
from bastion.models.evidence import Evidence, Package, Vulnerability
from bastion.models.incident import Incident
from bastion.models.poam import PoamItem
from bastion.models.policy import Policy, PolicyEvaluation

__all__ = [
    "Base",
    "Evidence",
    "Incident",
    "Package",
    "PoamItem",
    "Policy",
    "PolicyEvaluation",
    "Vulnerability",
]
