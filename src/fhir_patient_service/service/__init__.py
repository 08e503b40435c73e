"""Service module.

This module provides the PatientService facade.
"""

from fhir_patient_service.service.patient_service import PatientService

__all__ = ["PatientService"]
