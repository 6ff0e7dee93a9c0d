"""Enumerations shared by models, schemas and services. Values are the stored strings."""

from enum import Enum


class Severity(str, Enum):
    """Vulnerability severity as reported by the scanner."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NEGLIGIBLE = "Negligible"
    UNKNOWN = "Unknown"


class PolicyType(str, Enum):
    """Policy rule types. Only some have a registered evaluator; the rest auto-pass."""

    CVE_SEVERITY = "CVE_SEVERITY"
    SBOM_COMPLETENESS = "SBOM_COMPLETENESS"
    IMAGE_PROVENANCE = "IMAGE_PROVENANCE"
    ALLOWED_REGISTRIES = "ALLOWED_REGISTRIES"
    SIGNATURE_REQUIRED = "SIGNATURE_REQUIRED"
    RESOURCE_LIMITS = "RESOURCE_LIMITS"
    NO_PRIVILEGED = "NO_PRIVILEGED"
    CUSTOM = "CUSTOM"


class EnforcementLevel(str, Enum):
    """Informational only; the evaluator does not enforce it."""

    ADVISORY = "ADVISORY"
    WARNING = "WARNING"
    BLOCKING = "BLOCKING"


class PoamStatus(str, Enum):
    OPEN = "open"
    RISK_ACCEPTED = "risk-accepted"
    INVESTIGATING = "investigating"
    REMEDIATION_PLANNED = "remediation-planned"
    REMEDIATION_IN_PROGRESS = "remediation-in-progress"
    DEVIATION_REQUESTED = "deviation-requested"
    CLOSED = "closed"


class RiskLevel(str, Enum):
    """NIST 800-30 risk level."""

    VERY_HIGH = "very-high"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class Likelihood(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IncidentType(str, Enum):
    VULNERABILITY = "VULNERABILITY"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    COMPLIANCE = "COMPLIANCE"
    SECURITY_ALERT = "SECURITY_ALERT"
    SYSTEM = "SYSTEM"


class IncidentSeverity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"


class IncidentStatus(str, Enum):
    """Incident workflow: ACTIVE -> ACKNOWLEDGED -> INVESTIGATING -> RESOLVED -> CLOSED."""

    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
