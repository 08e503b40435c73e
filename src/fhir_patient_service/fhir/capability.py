"""Static CapabilityStatement describing the Patient endpoints.

The search parameters listed here are derived from FILTER_PARAMETERS so the
advertised set cannot drift from what the search engine accepts.
"""

from datetime import datetime, timezone
from typing import Any

from fhir_patient_service.fhir.mapping import PATIENT_PROFILE
from fhir_patient_service.search.params import FILTER_PARAMETERS


FHIR_VERSION = "4.0.1"

# (type, documentation) per query parameter name
SEARCH_PARAMETER_DOCS: dict[str, tuple[str, str]] = {
    "_id": ("token", "Logical ID of the patient"),
    "identifier": ("token", "Patient identifier (e.g., health card number)"),
    "family": ("string", "Family (last) name"),
    "given": ("string", "Given (first) name"),
    "name": ("string", "Any part of the name"),
    "birthdate": ("date", "Date of birth"),
    "gender": ("token", "Gender (male | female | other | unknown)"),
    "phone": ("token", "Phone number"),
    "email": ("token", "Email address"),
    "address": ("string", "Any part of the address"),
    "address-city": ("string", "City"),
    "address-state": ("string", "Province/State"),
    "address-postalcode": ("string", "Postal code (prefix match)"),
}

INTERACTIONS = (
    ("read", "Read a Patient resource by ID"),
    ("search-type", "Search for Patient resources"),
    ("create", "Create a new Patient resource"),
    ("update", "Update an existing Patient resource"),
    ("delete", "Delete a Patient resource"),
)


def build_capability_statement(
    base_url: str,
    server_name: str,
    server_version: str,
) -> dict[str, Any]:
    """Build the CapabilityStatement served at ``/fhir/metadata``.

    Args:
        base_url: Service base URL
        server_name: Software name reported to clients
        server_version: Software version reported to clients

    Returns:
        CapabilityStatement JSON dictionary
    """
    base = base_url.rstrip("/")
    now = datetime.now(timezone.utc)

    search_params = []
    for _, query_name in FILTER_PARAMETERS:
        param_type, documentation = SEARCH_PARAMETER_DOCS[query_name]
        search_params.append({
            "name": query_name,
            "type": param_type,
            "documentation": documentation,
        })

    return {
        "resourceType": "CapabilityStatement",
        "id": "fhir-patient-service-capability",
        "url": f"{base}/metadata",
        "version": server_version,
        "name": "FHIRPatientServiceCapabilityStatement",
        "title": f"{server_name} Capability Statement",
        "status": "active",
        "experimental": False,
        "date": now.isoformat(timespec="seconds"),
        "description": "FHIR R4 Patient demographics service with Canadian baseline conformance.",
        "jurisdiction": [{
            "coding": [{"system": "urn:iso:std:iso:3166", "code": "CA", "display": "Canada"}]
        }],
        "kind": "instance",
        "software": {"name": server_name, "version": server_version},
        "implementation": {"description": server_name, "url": base},
        "fhirVersion": FHIR_VERSION,
        "format": ["json", "application/fhir+json"],
        "rest": [{
            "mode": "server",
            "documentation": "RESTful FHIR server supporting Patient resource operations",
            "resource": [{
                "type": "Patient",
                "profile": "http://hl7.org/fhir/StructureDefinition/Patient",
                "supportedProfile": [PATIENT_PROFILE],
                "interaction": [
                    {"code": code, "documentation": doc} for code, doc in INTERACTIONS
                ],
                "versioning": "versioned",
                "readHistory": False,
                "updateCreate": False,
                "conditionalCreate": False,
                "conditionalRead": "not-supported",
                "conditionalUpdate": False,
                "conditionalDelete": "not-supported",
                "searchParam": search_params,
                "operation": [{
                    "name": "everything",
                    "definition": "http://hl7.org/fhir/OperationDefinition/Patient-everything",
                    "documentation": "Return all resources related to a patient",
                }],
            }],
        }],
    }
