"""Service configuration: pydantic schema plus file and environment loading."""

from fhir_patient_service.config.manager import load_config
from fhir_patient_service.config.schema import (
    Config,
    LoggingConfig,
    SearchConfig,
    ServerConfig,
    StorageBackend,
    StorageConfig,
)

__all__ = [
    "load_config",
    "Config",
    "ServerConfig",
    "StorageBackend",
    "StorageConfig",
    "SearchConfig",
    "LoggingConfig",
]
