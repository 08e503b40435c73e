"""Database management commands for the SQL storage backend."""

import logging
from pathlib import Path
from typing import Optional

import click
from sqlalchemy import Engine

from fhir_patient_service.config.schema import Config, StorageBackend
from fhir_patient_service.store.csv_import import load_patients_csv
from fhir_patient_service.store.seed import seed_store
from fhir_patient_service.store.sql import SqlPatientStore, create_database_engine, init_schema
from fhir_patient_service.utils.exceptions import ResourceValidationError, StoreError


logger = logging.getLogger(__name__)


def _open_database(config: Config) -> Engine:
    """Create the engine and schema for the configured SQL database.

    Raises:
        click.exceptions.Exit: If the backend is not ``sql`` or the database
            cannot be opened
    """
    if config.storage.backend is not StorageBackend.SQL:
        click.echo(
            click.style("✗", fg="red", bold=True)
            + " Storage backend is 'memory'; set storage.backend to 'sql' "
            + "(or FHIR_PATIENT_STORAGE_BACKEND=sql) to manage a database",
            err=True,
        )
        raise click.exceptions.Exit(1)

    try:
        engine = create_database_engine(
            config.storage.database_url, echo=config.storage.echo_sql
        )
        init_schema(engine)
    except StoreError as e:
        click.echo(click.style("✗", fg="red", bold=True) + f" {e}", err=True)
        raise click.exceptions.Exit(1)
    return engine


@click.group(name="db")
def db_group() -> None:
    """Manage the patient database (SQL backend only)."""


@db_group.command("init")
@click.pass_context
def init_command(ctx: click.Context) -> None:
    """Create the patients and audit_log tables if they do not exist."""
    engine = _open_database(ctx.obj["config"])
    engine.dispose()
    click.echo(click.style("✓", fg="green", bold=True) + " Database schema is ready")


@db_group.command("seed")
@click.option(
    "--csv",
    "csv_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Load patients from a CSV file instead of the built-in test patients",
)
@click.option("--seed", type=int, default=None, help="Seed for reproducible generated ids")
@click.pass_context
def seed_command(ctx: click.Context, csv_file: Optional[Path], seed: Optional[int]) -> None:
    """Insert patients into the database.

    Patients whose id already exists are skipped.

    Examples:

        # Load the five built-in test patients
        fhir-patient-service db seed

        # Load patients from CSV with reproducible ids
        fhir-patient-service db seed --csv patients.csv --seed 42
    """
    engine = _open_database(ctx.obj["config"])
    store = SqlPatientStore(engine)

    try:
        records = None
        if csv_file is not None:
            records = load_patients_csv(
                csv_file, seed=seed, is_taken=lambda rid: store.get(rid) is not None
            )
        inserted = seed_store(store, records)
    except ResourceValidationError as e:
        click.echo(click.style("✗", fg="red", bold=True) + " CSV validation failed", err=True)
        for issue in e.issues:
            click.echo(f"  - {issue}", err=True)
        raise click.exceptions.Exit(1)
    except (StoreError, ValueError) as e:
        logger.error(f"Seeding failed: {e}")
        click.echo(click.style("✗", fg="red", bold=True) + f" {e}", err=True)
        raise click.exceptions.Exit(1)
    finally:
        engine.dispose()

    click.echo(click.style("✓", fg="green", bold=True) + f" Inserted {inserted} patient(s)")
