"""CLI command for running the FHIR server."""

import logging
from typing import Optional

import click

from fhir_patient_service.api.app import run_server
from fhir_patient_service.utils.exceptions import StoreError


logger = logging.getLogger(__name__)


@click.command("serve")
@click.option("--host", default=None, help="Bind address (default: from config)")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Port (default: from config)")
@click.option("--debug", is_flag=True, help="Enable Flask debug mode")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int], debug: bool) -> None:
    """Start the FHIR Patient server.

    Serves the FHIR R4 Patient API under /fhir and a health check at /health.

    Examples:

        # Start with settings from config/config.json
        fhir-patient-service serve

        # Listen on a different port
        fhir-patient-service serve --port 8080
    """
    config = ctx.obj["config"]
    try:
        run_server(config, host=host, port=port, debug=debug)
    except StoreError as e:
        logger.error(f"Failed to start server: {e}")
        click.echo(f"Error: {e}", err=True)
        raise click.exceptions.Exit(1)
