"""Search module.

This module provides search parameter parsing, in-process predicates and
the search engine.
"""

from fhir_patient_service.search.params import DEFAULT_COUNT, SearchParameters
from fhir_patient_service.search.predicates import build_predicates, record_matches

__all__ = [
    "DEFAULT_COUNT",
    "SearchParameters",
    "build_predicates",
    "record_matches",
]
