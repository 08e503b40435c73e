"""Unit tests for logging_audit module."""

import logging
from pathlib import Path

import pytest

from fhir_patient_service.logging_audit import (
    AuditEntry,
    AuditRecorder,
    PIIRedactingFormatter,
    configure_logging,
    get_logger,
    log_audit_event,
)


def _format(message: str, redact_pii: bool = True) -> str:
    formatter = PIIRedactingFormatter(fmt="%(message)s", redact_pii=redact_pii)
    record = logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)
    return formatter.format(record)


class TestConfigureLogging:
    """Test logging configuration."""

    def test_configure_logging_creates_file(self, tmp_path: Path):
        # Arrange
        log_file = tmp_path / "logs" / "service.log"

        # Act
        configure_logging(level="INFO", log_file=log_file)
        get_logger(__name__).info("Test message")

        # Assert
        assert log_file.exists()
        assert "Test message" in log_file.read_text()

    def test_file_handler_records_debug(self, tmp_path: Path):
        # Arrange
        log_file = tmp_path / "service.log"
        configure_logging(level="WARNING", log_file=log_file)

        # Act
        get_logger(__name__).debug("Debug detail")

        # Assert
        assert "Debug detail" in log_file.read_text()

    def test_reconfigure_replaces_handlers(self, tmp_path: Path):
        # Arrange
        configure_logging(log_file=tmp_path / "first.log")
        count = len(logging.getLogger().handlers)

        # Act
        configure_logging(log_file=tmp_path / "second.log")

        # Assert
        assert len(logging.getLogger().handlers) == count

    def test_reconfigure_keeps_foreign_handlers(self, tmp_path: Path):
        # Arrange
        foreign = logging.NullHandler()
        logging.getLogger().addHandler(foreign)

        # Act
        configure_logging(log_file=tmp_path / "first.log")
        configure_logging(log_file=tmp_path / "second.log")

        # Assert
        assert foreign in logging.getLogger().handlers

    def test_third_party_loggers_quieted(self, tmp_path: Path):
        configure_logging(level="INFO", log_file=tmp_path / "x.log")
        assert logging.getLogger("werkzeug").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_verbose_lets_sql_statements_through(self, tmp_path: Path):
        configure_logging(level="debug", log_file=tmp_path / "x.log")
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO

    def test_invalid_level(self, tmp_path: Path):
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(level="LOUD", log_file=tmp_path / "x.log")

    def test_redaction_applied_to_file(self, tmp_path: Path):
        # Arrange
        log_file = tmp_path / "service.log"
        configure_logging(log_file=log_file, redact_pii=True)

        # Act
        get_logger(__name__).info("Patient: Marie Tremblay created")

        # Assert
        content = log_file.read_text()
        assert "Marie Tremblay" not in content
        assert "[NAME-REDACTED]" in content


class TestPIIRedactingFormatter:
    """Test PII redaction patterns."""

    def test_email(self):
        assert _format("contact marie.tremblay@example.com") == "contact [EMAIL-REDACTED]"

    def test_health_card_number(self):
        assert _format("hcn 1234-567-890-ON") == "hcn [HCN-REDACTED]"

    def test_phone(self):
        assert _format("call 416-555-0101 now") == "call [PHONE-REDACTED] now"

    def test_query_name_parameters(self):
        assert _format("search family=Tremblay gender=female") == (
            "search family=[NAME-REDACTED] gender=female"
        )

    def test_dict_repr(self):
        assert _format("{'family': 'Chen'}") == "{'family': '[NAME-REDACTED]'}"

    def test_disabled(self):
        message = "Patient: Marie Tremblay 416-555-0101"
        assert _format(message, redact_pii=False) == message


class TestAuditEvents:
    """Test audit logging."""

    def test_log_audit_event_field_order(self, caplog: pytest.LogCaptureFixture):
        # Act
        with caplog.at_level(logging.INFO):
            log_audit_event("PATIENT_READ", {
                "resource_id": "p-1",
                "status": "success",
                "correlation_id": "c-1",
                "extra": "x",
            })

        # Assert
        assert "AUDIT [PATIENT_READ] | status=success | resource_id=p-1 | correlation_id=c-1 | extra=x" in caplog.text

    def test_details_not_mutated(self, caplog: pytest.LogCaptureFixture):
        details = {"status": "success"}
        with caplog.at_level(logging.INFO):
            log_audit_event("PATIENT_SEARCH", details)
        assert details == {"status": "success"}
        assert "correlation_id=" in caplog.text

    def test_failure_logged_at_error(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO):
            log_audit_event("PATIENT_UPDATE", {"status": "failure"})
        assert caplog.records[-1].levelno == logging.ERROR

    def test_recorder_writes_to_sink(self, caplog: pytest.LogCaptureFixture):
        # Arrange
        entries: list[AuditEntry] = []

        class Sink:
            def write(self, entry: AuditEntry) -> None:
                entries.append(entry)

        recorder = AuditRecorder(Sink())

        # Act
        with caplog.at_level(logging.INFO):
            entry = recorder.record("update", "p-1", actor_id="dr-smith", version="2")

        # Assert
        assert entries == [entry]
        assert entry.actor_id == "dr-smith"
        assert entry.details == {"status": "success", "version": "2"}
        assert "AUDIT [PATIENT_UPDATE]" in caplog.text

    def test_recorder_defaults_to_anonymous(self):
        entry = AuditRecorder().record("search", None)
        assert entry.actor_id == "anonymous"
        assert entry.resource_id is None

    def test_sink_failure_does_not_propagate(self, caplog: pytest.LogCaptureFixture):
        # Arrange
        class BrokenSink:
            def write(self, entry: AuditEntry) -> None:
                raise RuntimeError("disk full")

        # Act
        with caplog.at_level(logging.INFO):
            AuditRecorder(BrokenSink()).record("delete", "p-1")

        # Assert
        assert "Failed to write audit entry" in caplog.text
