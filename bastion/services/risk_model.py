"""NIST 800-30 risk model: CVSS score and severity to likelihood, impact and risk level, plus due dates.

Pure functions; no database access. Thresholds are module constants so they stay out of the logic.
"""

from datetime import datetime, timedelta, timezone

from bastion.core.enums import Impact, Likelihood, RiskLevel, Severity
from bastion.schemas.risk import RiskClassification

# CVSS score -> likelihood bands (inclusive lower bounds).
CVSS_HIGH_LIKELIHOOD = 9.0
CVSS_MEDIUM_LIKELIHOOD = 7.0

# Risk = Likelihood x Impact.
RISK_MATRIX: dict[tuple[Likelihood, Impact], RiskLevel] = {
    (Likelihood.HIGH, Impact.HIGH): RiskLevel.VERY_HIGH,
    (Likelihood.HIGH, Impact.MEDIUM): RiskLevel.HIGH,
    (Likelihood.HIGH, Impact.LOW): RiskLevel.MODERATE,
    (Likelihood.MEDIUM, Impact.HIGH): RiskLevel.HIGH,
    (Likelihood.MEDIUM, Impact.MEDIUM): RiskLevel.MODERATE,
    (Likelihood.MEDIUM, Impact.LOW): RiskLevel.LOW,
    (Likelihood.LOW, Impact.HIGH): RiskLevel.MODERATE,
    (Likelihood.LOW, Impact.MEDIUM): RiskLevel.LOW,
    (Likelihood.LOW, Impact.LOW): RiskLevel.LOW,
}

# Unreachable for the enumerated likelihood/impact domains.
DEFAULT_RISK_LEVEL = RiskLevel.MODERATE

# Remediation window per risk level (NIST 800-40 patch management guidance).
DUE_DATE_DAYS: dict[RiskLevel, int] = {
    RiskLevel.VERY_HIGH: 30,
    RiskLevel.HIGH: 90,
    RiskLevel.MODERATE: 180,
    RiskLevel.LOW: 365,
}


def likelihood_for_cvss(cvss_score: float | None) -> Likelihood:
    """>= 9.0 high, >= 7.0 medium, otherwise (including missing) low."""
    score = cvss_score or 0.0
    if score >= CVSS_HIGH_LIKELIHOOD:
        return Likelihood.HIGH
    if score >= CVSS_MEDIUM_LIKELIHOOD:
        return Likelihood.MEDIUM
    return Likelihood.LOW


def impact_for_severity(severity: Severity | str | None) -> Impact:
    """Critical/High -> high, Medium -> medium, anything else -> low."""
    if severity in (Severity.CRITICAL, Severity.HIGH):
        return Impact.HIGH
    if severity == Severity.MEDIUM:
        return Impact.MEDIUM
    return Impact.LOW


def classify_risk(cvss_score: float | None, severity: Severity | str | None) -> RiskClassification:
    """Derive the (likelihood, impact, risk level) triple for one finding."""
    likelihood = likelihood_for_cvss(cvss_score)
    impact = impact_for_severity(severity)
    risk_level = RISK_MATRIX.get((likelihood, impact), DEFAULT_RISK_LEVEL)
    return RiskClassification(likelihood=likelihood, impact=impact, risk_level=risk_level)


def due_date(risk_level: RiskLevel | str, now: datetime | None = None) -> datetime:
    """Scheduled completion date: now plus the remediation window for the risk level."""
    reference = now or datetime.now(timezone.utc)
    days = DUE_DATE_DAYS.get(RiskLevel(risk_level), DUE_DATE_DAYS[DEFAULT_RISK_LEVEL])
    return reference + timedelta(days=days)
