"""Models module.

This module provides the record, resource and bundle data models.
"""

from fhir_patient_service.models.bundle import Bundle, BundleEntry, BundleLink
from fhir_patient_service.models.patient import AdministrativeGender, PatientRecord
from fhir_patient_service.models.resource import (
    Address,
    ContactPoint,
    ContactPointSystem,
    ContactPointUse,
    HumanName,
    Identifier,
    Meta,
    NameUse,
    PatientResource,
)

__all__ = [
    "Address",
    "AdministrativeGender",
    "Bundle",
    "BundleEntry",
    "BundleLink",
    "ContactPoint",
    "ContactPointSystem",
    "ContactPointUse",
    "HumanName",
    "Identifier",
    "Meta",
    "NameUse",
    "PatientRecord",
    "PatientResource",
]
