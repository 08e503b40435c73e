"""
Shared pytest configuration and fixtures.

This module provides fixtures used across the unit and integration suites:
stores for both backends, a service with a fixed clock, and a Flask test
client.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Generator

import pytest
from flask.testing import FlaskClient
from sqlalchemy import Engine

from fhir_patient_service.api.app import create_app
from fhir_patient_service.config.schema import Config, SearchConfig
from fhir_patient_service.logging_audit import AuditEntry, AuditRecorder
from fhir_patient_service.logging_audit.logger import NOISY_LOGGERS
from fhir_patient_service.service.patient_service import PatientService
from fhir_patient_service.store.base import ResourceStore
from fhir_patient_service.store.memory import InMemoryPatientStore
from fhir_patient_service.store.seed import seed_store
from fhir_patient_service.store.sql import SqlPatientStore, create_database_engine, init_schema


BASE_URL = "http://localhost:3000/fhir"


class FixedClock:
    """Clock returning a fixed instant that advances one second per call."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


class ListAuditSink:
    """AuditSink collecting entries in memory."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def write(self, entry: AuditEntry) -> None:
        self.entries.append(entry)


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Generator[None, None, None]:
    """Remove handlers installed by configure_logging during a test."""
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    quieted = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield
    for name, level in quieted.items():
        logging.getLogger(name).setLevel(level)
    for handler in list(root.handlers):
        if handler not in original_handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(original_level)


@pytest.fixture
def project_root() -> Path:
    """
    Return the project root directory.

    Returns:
        Path: Absolute path to the project root directory.
    """
    return Path(__file__).parent.parent


@pytest.fixture
def sqlite_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with the schema created."""
    engine = create_database_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def empty_store(request: pytest.FixtureRequest, sqlite_engine: Engine) -> ResourceStore:
    """Empty store; tests using it run once per backend."""
    if request.param == "sql":
        return SqlPatientStore(sqlite_engine)
    return InMemoryPatientStore()


@pytest.fixture
def seeded_store(empty_store: ResourceStore) -> ResourceStore:
    """Store holding the five built-in test patients."""
    seed_store(empty_store)
    return empty_store


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def service(seeded_store: ResourceStore, clock: FixedClock) -> PatientService:
    """PatientService over the seeded store with a deterministic clock."""
    return PatientService(seeded_store, BASE_URL, SearchConfig(), clock=clock)


@pytest.fixture
def audit_sink() -> ListAuditSink:
    return ListAuditSink()


@pytest.fixture
def app_config() -> Config:
    return Config()


@pytest.fixture
def app(service: PatientService, audit_sink: ListAuditSink, app_config: Config):
    """Flask app wired to the seeded service and an in-memory audit sink."""
    flask_app = create_app(app_config, service=service, audit=AuditRecorder(audit_sink))
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def patient_payload() -> Callable[..., dict[str, Any]]:
    """Factory for valid Patient payloads; keyword arguments override fields."""

    def _build(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "resourceType": "Patient",
            "identifier": [{
                "use": "official",
                "system": "https://fhir.infoway-inforoute.ca/NamingSystem/ca-on-patient-hcn",
                "value": "4444-555-666-ON",
            }],
            "name": [{"use": "official", "family": "Gagnon", "given": ["Luc"]}],
            "gender": "male",
            "birthDate": "1990-04-12",
            "telecom": [
                {"system": "phone", "value": "613-555-0199", "use": "home"},
                {"system": "email", "value": "luc.gagnon@example.com"},
            ],
            "address": [{
                "line": ["10 Elgin Street"],
                "city": "Ottawa",
                "state": "ON",
                "postalCode": "K1P 5W1",
                "country": "CA",
            }],
        }
        payload.update(overrides)
        return payload

    return _build
