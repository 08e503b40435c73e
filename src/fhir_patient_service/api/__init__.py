"""API module.

This module provides the Flask application and the FHIR Patient endpoints.
"""

from fhir_patient_service.api.app import build_store, create_app, run_server

__all__ = ["build_store", "create_app", "run_server"]
