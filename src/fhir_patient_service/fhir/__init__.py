"""FHIR module.

This module provides record/resource mapping, payload validation, bundle
assembly, OperationOutcome builders and the capability statement.
"""

from fhir_patient_service.fhir.mapping import to_public, to_record
from fhir_patient_service.fhir.outcome import operation_outcome, validation_outcome
from fhir_patient_service.fhir.validation import validate_patient

__all__ = [
    "to_public",
    "to_record",
    "operation_outcome",
    "validation_outcome",
    "validate_patient",
]
