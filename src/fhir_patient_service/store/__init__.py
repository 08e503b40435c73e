"""Resource store module.

This module provides the ResourceStore contract, its in-memory and SQL
backends, and seed data loading.
"""

from fhir_patient_service.store.base import ResourceStore
from fhir_patient_service.store.memory import InMemoryPatientStore
from fhir_patient_service.store.seed import TEST_PATIENTS, build_test_records, seed_store

__all__ = [
    "ResourceStore",
    "InMemoryPatientStore",
    "TEST_PATIENTS",
    "build_test_records",
    "seed_store",
]
