"""Pydantic models for the service configuration file.

One model per section (server, storage, search, logging); ``Config`` is the
root. Unknown keys are ignored so older config files keep loading.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from fhir_patient_service.logging_audit.logger import VALID_LEVELS


class StorageBackend(str, Enum):
    """Resource store implementation."""

    MEMORY = "memory"
    SQL = "sql"


class ServerConfig(BaseModel):
    """HTTP server configuration.

    Attributes:
        host: Bind address
        port: Bind port
        base_url: Public base URL of the FHIR endpoints, used in fullUrl and links
        server_name: Software name reported by metadata and health
        server_version: Software version reported by metadata and health
    """

    host: str = Field(default="0.0.0.0", description="Server host address")
    port: int = Field(default=3000, description="HTTP server port")
    base_url: str = Field(
        default="http://localhost:3000/fhir",
        description="Public FHIR base URL",
    )
    server_name: str = Field(default="FHIR Patient Service", description="Software name")
    server_version: str = Field(default="1.0.1", description="Software version")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Invalid port {v}. Must be between 1 and 65535.")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL is HTTP/HTTPS and strip any trailing slash.

        Raises:
            ValueError: If URL does not start with http:// or https://
        """
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid URL: {v}. Must start with http:// or https://"
            )
        return v.rstrip("/")


class StorageConfig(BaseModel):
    """Resource store configuration.

    Attributes:
        backend: ``memory`` (process-local) or ``sql`` (SQLAlchemy database)
        database_url: SQLAlchemy database URL for the sql backend
        seed_test_data: Load the five built-in test patients into an empty store
        echo_sql: Log every SQL statement (SQLAlchemy ``echo``)
    """

    backend: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Store backend: memory or sql",
    )
    database_url: str = Field(
        default="sqlite:///data/patients.db",
        description="SQLAlchemy database URL",
    )
    seed_test_data: bool = Field(default=True, description="Seed built-in test patients")
    echo_sql: bool = Field(default=False, description="Echo SQL statements")


class SearchConfig(BaseModel):
    """Search paging configuration.

    Attributes:
        default_count: Page size when ``_count`` is absent or invalid
        max_count: Optional upper bound for ``_count`` (None = unbounded)
    """

    default_count: int = Field(default=20, ge=1, description="Default page size")
    max_count: Optional[int] = Field(default=None, ge=1, description="Maximum page size")

    @model_validator(mode="after")
    def validate_count_bounds(self) -> "SearchConfig":
        """Validate default_count does not exceed max_count.

        Raises:
            ValueError: If default_count > max_count
        """
        if self.max_count is not None and self.default_count > self.max_count:
            raise ValueError(
                f"default_count ({self.default_count}) cannot be greater "
                f"than max_count ({self.max_count}). "
                f"Fix: Set default_count <= max_count."
            )
        return self


class LoggingConfig(BaseModel):
    """Log output settings; CLI flags override these per invocation."""

    level: str = Field(default="INFO", description="Console log level")
    log_file: Path = Field(
        default=Path("logs/fhir-patient-service.log"),
        description="Rotating log file, always written at DEBUG",
    )
    redact_pii: bool = Field(default=False, description="Mask patient demographics in logs")

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in VALID_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(VALID_LEVELS)}")
        return level


class Config(BaseModel):
    """Root configuration model.

    Attributes:
        server: HTTP server configuration
        storage: Resource store configuration
        search: Search paging configuration
        logging: Logging configuration

    Example:
        >>> config = Config(storage=StorageConfig(backend="sql"))
        >>> config.storage.backend
        <StorageBackend.SQL: 'sql'>
        >>> config.search.default_count
        20
    """

    server: ServerConfig = ServerConfig()
    storage: StorageConfig = StorageConfig()
    search: SearchConfig = SearchConfig()
    logging: LoggingConfig = LoggingConfig()
