"""FHIR JSON response helpers shared by the app and its blueprints."""

from typing import Any, Optional

from flask import Response, jsonify

from fhir_patient_service.utils.exceptions import ResourceValidationError

FHIR_MIMETYPE = "application/fhir+json"


def fhir_response(data: Any, status: int = 200) -> Response:
    """Serialise ``data`` as ``application/fhir+json``."""
    response = jsonify(data)
    response.status_code = status
    response.mimetype = FHIR_MIMETYPE
    return response


def version_etag(version_id: Optional[str]) -> str:
    """Weak ETag for a resource version (``W/"3"``)."""
    return f'W/"{version_id or "1"}"'


def parse_if_match(header: Optional[str]) -> Optional[int]:
    """Parse an If-Match header into a version number.

    Accepts ``W/"3"``, ``"3"`` and ``3``.

    Raises:
        ResourceValidationError: If the header is present but not a version ETag
    """
    if header is None or not header.strip():
        return None
    value = header.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    if not value.isdigit():
        raise ResourceValidationError([
            'If-Match must be a version ETag such as W/"1"'
        ])
    return int(value)
