"""Policy rule evaluators, one per policy type, registered in a PolicyType -> evaluator map.

Each evaluator receives its validated parameter model and the evidence facts and returns
the list of violations; an empty list means the policy passed. Types without a registered
evaluator pass automatically so new types can be stored before their evaluator ships.
"""

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bastion.core.enums import PolicyType, Severity
from bastion.core.exceptions import InvalidPolicyParametersError
from bastion.schemas.evidence import EvidenceFacts
from bastion.schemas.policy import PolicyViolation, RuleOutcome

logger = logging.getLogger(__name__)

Evaluator = Callable[[Any, EvidenceFacts], list[PolicyViolation]]

EVALUATORS: dict[PolicyType, Evaluator] = {}
PARAMETER_MODELS: dict[PolicyType, type[BaseModel]] = {}


class _Parameters(BaseModel):
    """Policy parameters are stored with camelCase keys; snake_case is accepted too."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CveSeverityParameters(_Parameters):
    max_critical: int | None = Field(default=None, ge=0, alias="maxCritical")
    max_high: int | None = Field(default=None, ge=0, alias="maxHigh")
    max_medium: int | None = Field(default=None, ge=0, alias="maxMedium")
    max_low: int | None = Field(default=None, ge=0, alias="maxLow")


class SbomCompletenessParameters(_Parameters):
    min_packages: int | None = Field(default=None, ge=0, alias="minPackages")
    require_licenses: bool = Field(default=False, alias="requireLicenses")
    require_purls: bool = Field(default=False, alias="requirePurls")


class ImageProvenanceParameters(_Parameters):
    require_image_digest: bool = Field(default=False, alias="requireImageDigest")
    require_build_info: bool = Field(default=False, alias="requireBuildInfo")


class AllowedRegistriesParameters(_Parameters):
    allowed_registries: list[str] | None = Field(default=None, alias="allowedRegistries")


def register(policy_type: PolicyType, parameters_model: type[BaseModel]) -> Callable[[Evaluator], Evaluator]:
    """Register an evaluator and its parameter model for a policy type."""

    def decorator(fn: Evaluator) -> Evaluator:
        EVALUATORS[policy_type] = fn
        PARAMETER_MODELS[policy_type] = parameters_model
        return fn

    return decorator


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "parameters"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def _coerce_policy_type(policy_type: PolicyType | str) -> PolicyType | None:
    try:
        return PolicyType(policy_type)
    except ValueError:
        return None


def parse_parameters(policy_type: PolicyType | str, parameters: dict | None) -> BaseModel | None:
    """
    Validate raw parameters against the type's model.

    Returns None for types without an evaluator. Raises InvalidPolicyParametersError
    when the parameters do not validate.
    """
    ptype = _coerce_policy_type(policy_type)
    model = PARAMETER_MODELS.get(ptype) if ptype is not None else None
    if model is None:
        return None
    if parameters is not None and not isinstance(parameters, dict):
        raise InvalidPolicyParametersError(str(policy_type), "parameters must be an object")
    try:
        return model.model_validate(parameters or {})
    except ValidationError as e:
        raise InvalidPolicyParametersError(str(policy_type), _format_validation_error(e)) from e


def validate_policy_parameters(policy_type: PolicyType | str, parameters: dict | None) -> dict:
    """Validate parameters for storage; known types are normalized to their camelCase keys."""
    parsed = parse_parameters(policy_type, parameters)
    if parsed is None:
        return dict(parameters or {})
    return parsed.model_dump(by_alias=True, exclude_none=True)


def evaluate_rule(
    policy_type: PolicyType | str,
    parameters: dict | None,
    facts: EvidenceFacts,
) -> RuleOutcome:
    """Dispatch to the registered evaluator; unknown or unsupported types pass."""
    ptype = _coerce_policy_type(policy_type)
    evaluator = EVALUATORS.get(ptype) if ptype is not None else None
    if evaluator is None:
        logger.warning("No evaluator for policy type %s; treating as passed", policy_type)
        return RuleOutcome(passed=True, violations=[])
    params = parse_parameters(ptype, parameters)
    return RuleOutcome.from_violations(evaluator(params, facts))


_SEVERITY_THRESHOLDS: tuple[tuple[Severity, str], ...] = (
    (Severity.CRITICAL, "max_critical"),
    (Severity.HIGH, "max_high"),
    (Severity.MEDIUM, "max_medium"),
    (Severity.LOW, "max_low"),
)


@register(PolicyType.CVE_SEVERITY, CveSeverityParameters)
def evaluate_cve_severity(
    params: CveSeverityParameters, facts: EvidenceFacts
) -> list[PolicyViolation]:
    """One violation per severity whose count is strictly greater than its threshold."""
    violations: list[PolicyViolation] = []
    for severity, attr in _SEVERITY_THRESHOLDS:
        threshold = getattr(params, attr)
        if threshold is None:
            continue
        count = facts.severity_counts.count(severity)
        if count > threshold:
            violations.append(
                PolicyViolation(
                    severity=severity,
                    message=(
                        f"{severity.value} vulnerabilities ({count}) exceed maximum allowed ({threshold})"
                    ),
                    metadata={"count": count, "threshold": threshold},
                )
            )
    return violations


@register(PolicyType.SBOM_COMPLETENESS, SbomCompletenessParameters)
def evaluate_sbom_completeness(
    params: SbomCompletenessParameters, facts: EvidenceFacts
) -> list[PolicyViolation]:
    """Independent checks: minimum package count, license presence, purl presence."""
    violations: list[PolicyViolation] = []
    packages = facts.packages
    total = len(packages)

    if params.min_packages is not None and total < params.min_packages:
        violations.append(
            PolicyViolation(
                severity=Severity.MEDIUM,
                message=f"SBOM contains {total} packages, minimum required is {params.min_packages}",
                metadata={"packageCount": total, "minRequired": params.min_packages},
            )
        )

    if params.require_licenses:
        missing = sum(1 for p in packages if not p.license_concluded and not p.license_declared)
        if missing:
            violations.append(
                PolicyViolation(
                    severity=Severity.LOW,
                    message=f"{missing} packages missing license information",
                    metadata={"packagesWithoutLicense": missing, "totalPackages": total},
                )
            )

    if params.require_purls:
        missing = sum(1 for p in packages if not p.purl)
        if missing:
            violations.append(
                PolicyViolation(
                    severity=Severity.LOW,
                    message=f"{missing} packages missing Package URL (purl)",
                    metadata={"packagesWithoutPurl": missing, "totalPackages": total},
                )
            )
    return violations


@register(PolicyType.IMAGE_PROVENANCE, ImageProvenanceParameters)
def evaluate_image_provenance(
    params: ImageProvenanceParameters, facts: EvidenceFacts
) -> list[PolicyViolation]:
    violations: list[PolicyViolation] = []
    if params.require_image_digest and not facts.image_digest:
        violations.append(
            PolicyViolation(
                severity=Severity.HIGH,
                message="Image digest is required but not provided",
            )
        )
    if params.require_build_info and not facts.build_entity_id:
        violations.append(
            PolicyViolation(
                severity=Severity.MEDIUM,
                message="Build information is required but not provided",
            )
        )
    return violations


def extract_registry(facts: EvidenceFacts) -> str | None:
    """
    Registry of the evidence image: the explicit image_registry, else the first path
    segment of image_name when the name has more than one segment. None when unknown.
    """
    if facts.image_registry and facts.image_registry.strip():
        return facts.image_registry.strip()
    if facts.image_name:
        parts = facts.image_name.strip().split("/")
        if len(parts) > 1 and parts[0]:
            return parts[0]
    return None


@register(PolicyType.ALLOWED_REGISTRIES, AllowedRegistriesParameters)
def evaluate_allowed_registries(
    params: AllowedRegistriesParameters, facts: EvidenceFacts
) -> list[PolicyViolation]:
    """
    Fail when the image registry contains none of the allowed entries (substring match).

    An empty allow-list performs no check. When no registry can be extracted the check
    is skipped and the policy passes; this is logged so permissive passes are visible.
    """
    allowed = params.allowed_registries or []
    if not allowed:
        return []
    registry = extract_registry(facts)
    if registry is None:
        logger.info(
            "Allowed-registries check skipped: no registry for evidence_id=%s",
            facts.evidence_id,
        )
        return []
    if any(entry in registry for entry in allowed):
        return []
    return [
        PolicyViolation(
            severity=Severity.HIGH,
            message=f'Image registry "{registry}" is not in allowed list',
            metadata={"imageRegistry": registry, "allowedRegistries": list(allowed)},
        )
    ]
