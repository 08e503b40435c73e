"""Default configuration values.

This module defines the default configuration values used when no configuration
file is provided or when configuration values are not specified.
"""

from typing import Any

# Fallback when no configuration file is present
DEFAULT_CONFIG: dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "base_url": "http://localhost:3000/fhir",
        "server_name": "FHIR Patient Service",
        "server_version": "1.0.1",
    },
    "storage": {
        # Process-local store; switch to "sql" for persistence
        "backend": "memory",
        "database_url": "sqlite:///data/patients.db",
        "seed_test_data": True,
        "echo_sql": False,
    },
    "search": {
        "default_count": 20,
        # No upper bound on _count unless configured
        "max_count": None,
    },
    "logging": {
        "level": "INFO",
        "log_file": "logs/fhir-patient-service.log",
        # Do not redact PII by default (user must opt-in for privacy)
        "redact_pii": False,
    },
}

DEFAULT_CONFIG_PATH = "config/config.json"
