"""Custom exception classes for the FHIR Patient Resource Service.

All exceptions inherit from FHIRPatientServiceError to allow catching all
custom exceptions. The transport layer maps each class to a distinct
OperationOutcome and HTTP status.
"""

from typing import Optional


class FHIRPatientServiceError(Exception):
    """Base exception for all FHIR Patient Resource Service exceptions."""

    pass


class ResourceValidationError(FHIRPatientServiceError):
    """Raised when a candidate Patient payload fails structural validation.

    The operation aborts before any store mutation.

    Attributes:
        issues: Human-readable violation messages, one per failed rule

    Examples:
        - Missing name entry
        - Gender outside the administrative gender value set
        - Malformed birth date
    """

    def __init__(self, issues: list[str]) -> None:
        self.issues = list(issues)
        super().__init__("Validation failed: " + "; ".join(self.issues))


class ResourceNotFoundError(FHIRPatientServiceError):
    """Raised when the requested patient id is absent from the store."""

    def __init__(self, resource_id: str, resource_type: str = "Patient") -> None:
        self.resource_id = resource_id
        self.resource_type = resource_type
        super().__init__(f"{resource_type} with id '{resource_id}' not found")


class VersionConflictError(FHIRPatientServiceError):
    """Raised when a write is rejected because the stored version moved on.

    ``expected`` is the version the writer based its change on (0 when the
    writer expected the id to be unused); ``actual`` is the stored version, or
    None when no record exists.

    Examples:
        - Two concurrent updates of the same patient
        - Create with an id that is already taken
        - If-Match header naming a stale version
    """

    def __init__(
        self,
        resource_id: str,
        expected: Optional[int],
        actual: Optional[int],
    ) -> None:
        self.resource_id = resource_id
        self.expected = expected
        self.actual = actual
        if expected == 0:
            message = f"Patient with id '{resource_id}' already exists"
        elif actual is None:
            message = f"Patient with id '{resource_id}' no longer exists"
        else:
            message = (
                f"Version conflict for Patient '{resource_id}': "
                f"expected version {expected}, current version is {actual}"
            )
        super().__init__(message)


class PreconditionFailedError(VersionConflictError):
    """Raised when a client-supplied If-Match version is not the stored version.

    Distinct from a lost-update race: the client asserted a version up front
    and it was already stale when the request arrived.
    """

    pass


class StoreError(FHIRPatientServiceError):
    """Raised when the persistence backend reports a failure.

    The original backend exception is chained as ``__cause__``. Callers at
    the transport boundary collapse the message to a generic one.

    Examples:
        - Database unreachable
        - Schema mismatch (missing table or column)
        - Constraint violation not covered by version checks
    """

    pass


class ConfigurationError(FHIRPatientServiceError):
    """Raised when configuration loading or validation fails.

    Examples:
        - Invalid configuration file format
        - Unknown storage backend
        - Configuration value out of range
    """

    pass
