"""Configuration loading: JSON file, then ``.env``/environment overrides.

Precedence, highest first: CLI options (applied by the caller), environment
variables named ``FHIR_PATIENT_<NAME>``, the JSON file, built-in defaults.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from fhir_patient_service.config.defaults import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH
from fhir_patient_service.config.schema import Config
from fhir_patient_service.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "FHIR_PATIENT_"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


# FHIR_PATIENT_<suffix> -> (section, field, converter)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "HOST": ("server", "host", str),
    "PORT": ("server", "port", int),
    "BASE_URL": ("server", "base_url", str),
    "SERVER_NAME": ("server", "server_name", str),
    "SERVER_VERSION": ("server", "server_version", str),
    "STORAGE_BACKEND": ("storage", "backend", str),
    "DATABASE_URL": ("storage", "database_url", str),
    "SEED_TEST_DATA": ("storage", "seed_test_data", _parse_bool),
    "ECHO_SQL": ("storage", "echo_sql", _parse_bool),
    "DEFAULT_COUNT": ("search", "default_count", int),
    "MAX_COUNT": ("search", "max_count", int),
    "LOG_LEVEL": ("logging", "level", str),
    "LOG_FILE": ("logging", "log_file", str),
    "REDACT_PII": ("logging", "redact_pii", _parse_bool),
}


def load_config(config_path: Optional[Path] = None) -> Config:
    """Build the service configuration.

    Args:
        config_path: JSON file to read. Defaults to ``config/config.json``;
            a missing default file means built-in defaults are used.

    Returns:
        Validated Config

    Raises:
        ConfigurationError: If the file is unreadable or not a JSON object,
            an environment value has the wrong type, or validation fails

    Example:
        >>> load_config(Path("config/config.json")).storage.backend
        <StorageBackend.MEMORY: 'memory'>
    """
    load_dotenv()

    path = config_path or Path(DEFAULT_CONFIG_PATH)
    raw = _read_json(path) if path.exists() else _defaults(path)
    _warn_on_embedded_password(raw)
    merged = _merge_environment(raw)

    try:
        return Config(**merged)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed:\n{e}\n\n"
            f"Fix: correct the values in {path} or the {ENV_PREFIX}* environment variables."
        ) from e


def _defaults(path: Path) -> dict[str, Any]:
    logger.info(f"Config file not found: {path}. Using default configuration.")
    return copy.deepcopy(DEFAULT_CONFIG)


def _read_json(path: Path) -> dict[str, Any]:
    try:
        content = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in config file {path} at line {e.lineno}, column {e.colno}: {e.msg}"
        ) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(content, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    logger.info(f"Loaded configuration from {path}")
    return content


def _merge_environment(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Overlay every set ``FHIR_PATIENT_*`` variable listed in ENV_OVERRIDES."""
    for suffix, (section, field_name, convert) in ENV_OVERRIDES.items():
        env_key = ENV_PREFIX + suffix
        value = os.getenv(env_key)
        if not value:
            continue
        try:
            config_dict.setdefault(section, {})[field_name] = convert(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {env_key}: {value!r} ({e})") from e
        logger.debug(f"{section}.{field_name} taken from {env_key}")
    return config_dict


def _warn_on_embedded_password(config_dict: dict[str, Any]) -> None:
    database_url = config_dict.get("storage", {}).get("database_url") or ""
    _, _, location = database_url.partition("://")
    userinfo, at, _ = location.partition("@")
    if at and ":" in userinfo:
        logger.warning(
            "Database password found in the config file; "
            f"set {ENV_PREFIX}DATABASE_URL in the environment instead."
        )
