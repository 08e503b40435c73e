"""CLI module.

This module provides the command-line interface for the FHIR Patient Service.
"""

from fhir_patient_service.cli.main import cli

__all__ = ["cli"]
