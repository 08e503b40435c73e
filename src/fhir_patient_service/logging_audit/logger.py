"""Root logger setup for the FHIR Patient Service.

Console output follows the configured level; the rotating log file always
receives DEBUG. Both handlers share one PII-redacting formatter. Handlers
installed here are tagged so that a second ``configure_logging`` call (CLI
options after config file, or tests) swaps them without touching handlers
other code attached to the root logger.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .formatters import PIIRedactingFormatter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FILE = Path("logs") / "fhir-patient-service.log"
LOG_FILE_ENV_VAR = "FHIR_PATIENT_LOG_FILE"
MAX_LOG_FILE_SIZE = 10 * 1024 * 1024  # 10MB
BACKUP_COUNT = 5
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# werkzeug duplicates our per-request log line; SQL echo is opt-in via DEBUG
NOISY_LOGGERS = ("werkzeug", "sqlalchemy.engine")

_HANDLER_TAG = "_fhir_patient_service"

logger = logging.getLogger(__name__)


def _resolve_log_file(log_file: Optional[Path]) -> Path:
    if log_file is not None:
        return log_file
    from_env = os.environ.get(LOG_FILE_ENV_VAR)
    return Path(from_env) if from_env else DEFAULT_LOG_FILE


def _tag(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def _remove_installed_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()


def _file_handler(log_file: Path, formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RuntimeError(
            f"Failed to create log directory: {log_file.parent}. "
            f"Ensure write permissions are available. Error: {e}"
        ) from e

    try:
        handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=MAX_LOG_FILE_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        logger.warning(f"Cannot open log file {log_file}: {e}. Logging to console only.")
        return None

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return _tag(handler)


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    redact_pii: bool = False,
) -> None:
    """Install console and rotating-file handlers on the root logger.

    Args:
        level: Console level, one of DEBUG, INFO, WARNING, ERROR, CRITICAL.
            With DEBUG, SQLAlchemy statement logging is let through as well.
        log_file: Log file path. Falls back to ``FHIR_PATIENT_LOG_FILE``,
            then ``logs/fhir-patient-service.log``.
        redact_pii: Mask patient names, health card numbers, phone numbers
            and emails in every record

    Raises:
        ValueError: If ``level`` is not a known level name
        RuntimeError: If the log directory cannot be created
    """
    level_name = level.upper()
    if level_name not in VALID_LEVELS:
        raise ValueError(
            f"Invalid log level: {level}. Must be one of: {', '.join(VALID_LEVELS)}"
        )
    console_level = logging.getLevelName(level_name)
    target = _resolve_log_file(log_file)
    formatter = PIIRedactingFormatter(fmt=LOG_FORMAT, redact_pii=redact_pii)

    root = logging.getLogger()
    _remove_installed_handlers(root)
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(formatter)
    root.addHandler(_tag(console))

    file_handler = _file_handler(target, formatter)
    if file_handler is not None:
        root.addHandler(file_handler)

    third_party_level = logging.INFO if level_name == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    logger.debug(f"Logging configured: level={level_name}, file={target}, redact_pii={redact_pii}")


def get_logger(module_name: str) -> logging.Logger:
    """Return the logger for ``module_name`` (normally ``__name__``)."""
    return logging.getLogger(module_name)
