"""Normalize scanner severity strings and vulnerability identifiers to canonical values."""

import re

from bastion.core.enums import Severity

# Severity aliases (case-insensitive) -> canonical severity.
_SEVERITY_ALIASES: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "crit": Severity.CRITICAL,
    "high": Severity.HIGH,
    "important": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "med": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "low": Severity.LOW,
    "minor": Severity.LOW,
    "negligible": Severity.NEGLIGIBLE,
    "info": Severity.NEGLIGIBLE,
    "informational": Severity.NEGLIGIBLE,
    "none": Severity.NEGLIGIBLE,
    "unknown": Severity.UNKNOWN,
}

# CVSS score floors -> severity, checked in descending order (used when severity is missing or unrecognized).
_CVSS_TO_SEVERITY: list[tuple[float, Severity]] = [
    (9.0, Severity.CRITICAL),
    (7.0, Severity.HIGH),
    (4.0, Severity.MEDIUM),
]

_CVE_PATTERN = re.compile(r"CVE-\d{4}-\d{4,}", re.IGNORECASE)
_GHSA_PATTERN = re.compile(r"GHSA-[a-z0-9]{4}-[a-z0-9]{4}-[a-z0-9]{4}", re.IGNORECASE)

MAX_VULN_ID_LENGTH = 64


def normalize_severity(raw_severity: str | None, raw_cvss: float | None = None) -> Severity:
    """
    Map a raw severity string and/or CVSS score to the canonical Severity.

    Aliases are tried first. "Unknown" or an unrecognized string falls back to
    the CVSS band when a score is present, otherwise Unknown.
    """
    if raw_severity and raw_severity.strip():
        alias = _SEVERITY_ALIASES.get(raw_severity.strip().lower())
        if alias is not None and alias is not Severity.UNKNOWN:
            return alias
    if raw_cvss is not None and 0 <= raw_cvss <= 10:
        for floor, sev in _CVSS_TO_SEVERITY:
            if raw_cvss >= floor:
                return sev
        return Severity.LOW if raw_cvss > 0 else Severity.NEGLIGIBLE
    return Severity.UNKNOWN


def normalize_vulnerability_id(raw_id: str) -> str:
    """Canonical casing for CVE (upper) and GHSA (prefix upper, body lower) ids; other ids are kept as given."""
    value = raw_id.strip()[:MAX_VULN_ID_LENGTH]
    if _CVE_PATTERN.fullmatch(value):
        return value.upper()
    if _GHSA_PATTERN.fullmatch(value):
        return "GHSA" + value[4:].lower()
    return value
