"""Pydantic schema for NIST 800-30 risk classification output."""

from pydantic import BaseModel, Field

from bastion.core.enums import Impact, Likelihood, RiskLevel


class RiskClassification(BaseModel):
    """Likelihood × impact → risk level for one vulnerability."""

    model_config = {"frozen": True}

    likelihood: Likelihood = Field(..., description="Derived from CVSS score.")
    impact: Impact = Field(..., description="Derived from severity.")
    risk_level: RiskLevel = Field(..., description="Looked up from the risk matrix.")
