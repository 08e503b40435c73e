"""Structural validation for candidate Patient payloads.

Every rule is evaluated independently and all violations are collected,
so a client can fix every problem from a single response.
"""

import re
from typing import Any

from fhir_patient_service.logging_audit import get_logger
from fhir_patient_service.models.patient import AdministrativeGender
from fhir_patient_service.models.resource import PATIENT_RESOURCE_TYPE


logger = get_logger(__name__)

# YYYY, YYYY-MM or YYYY-MM-DD
BIRTH_DATE_PATTERN = re.compile(r"^\d{4}(-\d{2}(-\d{2})?)?\Z")

# FHIR id datatype
RESOURCE_ID_PATTERN = re.compile(r"^[A-Za-z0-9\-.]{1,64}\Z")


def validate_patient(payload: Any) -> list[str]:
    """Validate a candidate Patient payload.

    Rules:
        1. resourceType must be "Patient"
        2. At least one name entry must be present
        3. gender, if present, must be an administrative gender code
        4. birthDate, if present, must be YYYY, YYYY-MM or YYYY-MM-DD
        5. The official (else first) name must carry a family name
        6. id, if present, must be a valid FHIR id

    Args:
        payload: Decoded JSON payload

    Returns:
        List of violation messages; empty when the payload is valid

    Example:
        >>> validate_patient({"resourceType": "Patient"})
        ['At least one name is required']
    """
    if not isinstance(payload, dict):
        return ["Resource must be a JSON object"]

    errors: list[str] = []

    if payload.get("resourceType") != PATIENT_RESOURCE_TYPE:
        errors.append(f'resourceType must be "{PATIENT_RESOURCE_TYPE}"')

    names = payload.get("name")
    has_names = isinstance(names, list) and len(names) > 0
    if not has_names:
        errors.append("At least one name is required")

    gender = payload.get("gender")
    if gender is not None and gender not in AdministrativeGender.values():
        errors.append(
            f"gender must be one of: {', '.join(AdministrativeGender.values())}"
        )

    birth_date = payload.get("birthDate")
    if birth_date is not None and (
        not isinstance(birth_date, str) or not BIRTH_DATE_PATTERN.match(birth_date)
    ):
        errors.append("birthDate must be in format YYYY, YYYY-MM, or YYYY-MM-DD")

    if has_names and not _primary_family(names):
        errors.append("name must include a family name")

    resource_id = payload.get("id")
    if resource_id is not None and (
        not isinstance(resource_id, str) or not RESOURCE_ID_PATTERN.match(resource_id)
    ):
        errors.append("id must be 1-64 characters: letters, digits, '-' or '.'")

    if errors:
        logger.debug(f"Patient payload failed validation: {errors}")

    return errors


def _primary_family(names: list[Any]) -> str:
    """Return the family of the official (else first) name, or ''."""
    entries = [n for n in names if isinstance(n, dict)]
    official = next((n for n in entries if n.get("use") == "official"), None)
    primary = official or (entries[0] if entries else None)
    if primary is None:
        return ""
    family = primary.get("family")
    return family.strip() if isinstance(family, str) else ""
