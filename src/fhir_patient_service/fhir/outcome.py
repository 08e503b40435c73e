"""FHIR OperationOutcome builders used for error responses."""

import uuid
from typing import Any, Iterable, Optional


def operation_outcome(
    severity: str,
    code: str,
    message: str,
    diagnostics: Optional[str] = None,
) -> dict[str, Any]:
    """Create a single-issue OperationOutcome.

    Args:
        severity: fatal | error | warning | information
        code: FHIR issue type code (e.g. ``not-found``, ``invalid``, ``conflict``)
        message: Human-readable issue text
        diagnostics: Optional additional diagnostic text

    Returns:
        OperationOutcome JSON dictionary
    """
    issue: dict[str, Any] = {
        "severity": severity,
        "code": code,
        "details": {"text": message},
    }
    if diagnostics:
        issue["diagnostics"] = diagnostics

    return {
        "resourceType": "OperationOutcome",
        "id": str(uuid.uuid4()),
        "issue": [issue],
    }


def validation_outcome(issues: Iterable[str]) -> dict[str, Any]:
    """Create an OperationOutcome with one ``invalid`` issue per message."""
    return {
        "resourceType": "OperationOutcome",
        "id": str(uuid.uuid4()),
        "issue": [
            {"severity": "error", "code": "invalid", "details": {"text": message}}
            for message in issues
        ],
    }
