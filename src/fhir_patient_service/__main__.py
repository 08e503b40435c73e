"""Entry point for running fhir_patient_service as a module.

This allows the package to be executed as:
    python -m fhir_patient_service
"""

from fhir_patient_service.cli.main import cli

if __name__ == "__main__":
    cli()
