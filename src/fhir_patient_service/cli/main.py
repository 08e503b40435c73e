"""Command-line entry point for the FHIR Patient Service.

The ``cli`` group loads configuration once, sets up logging and hands the
resolved :class:`Config` to subcommands through ``ctx.obj["config"]``.
"""

from pathlib import Path
from typing import Iterator, Optional

import click

from fhir_patient_service import __version__
from fhir_patient_service.cli.db_commands import db_group
from fhir_patient_service.cli.server_commands import serve
from fhir_patient_service.config import Config, load_config
from fhir_patient_service.logging_audit import configure_logging
from fhir_patient_service.utils.exceptions import ConfigurationError


def _logging_settings(
    config: Config, verbose: bool, log_file: Optional[Path], redact_pii: bool
) -> dict:
    """Merge CLI logging flags over the config file; flags win when given."""
    return {
        "level": "DEBUG" if verbose else config.logging.level,
        "log_file": log_file or config.logging.log_file,
        "redact_pii": redact_pii or config.logging.redact_pii,
    }


@click.group()
@click.version_option(version=__version__, prog_name="fhir-patient-service")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="JSON configuration file (default: ./config/config.json if present)",
)
@click.option("--verbose", is_flag=True, help="Log at DEBUG level, SQL statements included")
@click.option("--log-file", type=click.Path(path_type=Path), help="Override the log file path")
@click.option("--redact-pii", is_flag=True, help="Mask patient demographics in log output")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[Path],
    verbose: bool,
    log_file: Optional[Path],
    redact_pii: bool,
) -> None:
    """FHIR Patient Service - FHIR R4 Patient resource server.

    Common usage:

        # Serve the in-memory store with the built-in test patients
        fhir-patient-service serve

        # Prepare a SQL database and load patients from CSV
        fhir-patient-service db init
        fhir-patient-service db seed --csv patients.csv
    """
    ctx.ensure_object(dict)

    try:
        loaded = load_config(config_path)
    except ConfigurationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        ctx.exit(1)

    ctx.obj["config"] = loaded
    ctx.obj["verbose"] = verbose
    configure_logging(**_logging_settings(loaded, verbose, log_file, redact_pii))


cli.add_command(serve)
cli.add_command(db_group)


def _summary(loaded: Config) -> Iterator[tuple[str, list[tuple[str, object]]]]:
    yield "Server", [
        ("Listen", f"{loaded.server.host}:{loaded.server.port}"),
        ("Base URL", loaded.server.base_url),
    ]
    yield "Storage", [
        ("Backend", loaded.storage.backend.value),
        ("Seed data", loaded.storage.seed_test_data),
    ]
    yield "Search", [
        ("Page size", loaded.search.default_count),
        ("Max page", loaded.search.max_count or "Unlimited"),
    ]
    yield "Logging", [
        ("Level", loaded.logging.level),
        ("Log file", loaded.logging.log_file),
        ("Redact PII", loaded.logging.redact_pii),
    ]


@cli.group(name="config")
def config_group() -> None:
    """Inspect and validate configuration."""


@config_group.command()
@click.argument("config_file", type=click.Path(exists=True, path_type=Path))
def validate(config_file: Path) -> None:
    """Validate CONFIG_FILE and print the resulting settings."""
    try:
        loaded = load_config(config_file)
    except ConfigurationError as e:
        click.echo(click.style("✗", fg="red", bold=True) + " Configuration validation failed")
        click.echo(f"\n{e}", err=True)
        raise click.exceptions.Exit(1)

    click.echo(click.style("✓", fg="green", bold=True) + " Configuration is valid")
    click.echo(f"\nConfiguration file: {config_file}")
    for section, rows in _summary(loaded):
        click.echo(f"\n{section}:")
        for label, value in rows:
            click.echo(f"  {label + ':':<13}{value}")


@config_group.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Print the effective configuration (file, .env and environment merged) as JSON."""
    click.echo(ctx.obj["config"].model_dump_json(indent=2))


@cli.command()
def version() -> None:
    """Display version information."""
    click.echo(f"fhir-patient-service version {__version__}")


if __name__ == "__main__":
    cli()
