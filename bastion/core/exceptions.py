"""Typed error conditions raised by the services; the API maps them to HTTP responses."""


class BastionError(Exception):
    """Base for all service-level errors. Carries a message and the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(BastionError):
    """Raised when a tenant-scoped record does not exist (or belongs to another tenant)."""

    status_code = 404
    resource = "Resource"

    def __init__(self, identifier: str | None = None) -> None:
        self.identifier = identifier
        message = f"{self.resource} not found"
        if identifier:
            message = f"{message}: {identifier}"
        super().__init__(message)


class EvidenceNotFoundError(NotFoundError):
    resource = "Evidence"


class PolicyNotFoundError(NotFoundError):
    resource = "Policy"


class PoamItemNotFoundError(NotFoundError):
    resource = "POA&M item"


class IncidentNotFoundError(NotFoundError):
    resource = "Incident"


class InvalidInputError(BastionError):
    """Raised when caller input is well-formed JSON but semantically invalid."""

    status_code = 422


class InvalidPolicyParametersError(InvalidInputError):
    """Raised when a policy's type-specific parameters do not validate."""

    def __init__(self, policy_type: str, detail: str) -> None:
        self.policy_type = policy_type
        self.detail = detail
        super().__init__(f"Invalid parameters for {policy_type} policy: {detail}")


class InvalidStatusTransitionError(InvalidInputError):
    """Raised when a status change is not allowed by the state machine."""

    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move from {current} to {requested}")


class DuplicatePolicyError(BastionError):
    """Raised when a tenant already has a policy with the same name."""

    status_code = 409

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A policy named {name!r} already exists for this tenant")
