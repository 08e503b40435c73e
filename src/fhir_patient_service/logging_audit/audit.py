"""Audit trail for patient operations.

Every operation produces one ``AUDIT [PATIENT_<ACTION>]`` log line with
pipe-separated ``key=value`` fields. ``AuditRecorder`` builds the entry and
can also hand it to a persistent sink (the SQL ``audit_log`` table).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from .logger import get_logger

logger = get_logger(__name__)

ANONYMOUS_ACTOR = "anonymous"

# Leading fields in a fixed order; anything else follows in insertion order
AUDIT_FIELD_ORDER = (
    "status",
    "resource_type",
    "resource_id",
    "version",
    "actor_id",
    "result_count",
    "error_message",
    "correlation_id",
)


def log_audit_event(event_type: str, details: Dict[str, Any]) -> None:
    """Write one audit line; failures at ERROR, everything else at INFO.

    A ``correlation_id`` is generated when ``details`` has none. ``details``
    itself is left unchanged.

    Example:
        >>> log_audit_event("PATIENT_CREATE", {"status": "success", "resource_id": "p-1"})
    """
    fields = {"correlation_id": str(uuid.uuid4()), **details}
    fields.pop("timestamp", None)

    ordered = [name for name in AUDIT_FIELD_ORDER if name in fields]
    ordered += [name for name in fields if name not in AUDIT_FIELD_ORDER]
    line = " | ".join([f"AUDIT [{event_type}]"] + [f"{name}={fields[name]}" for name in ordered])

    if fields.get("status") == "failure":
        logger.error(line)
    else:
        logger.info(line)


@dataclass
class AuditEntry:
    """A single audit record as handed to an AuditSink."""

    action: str
    resource_type: str
    resource_id: Optional[str]
    actor_id: str = ANONYMOUS_ACTOR
    actor_type: str = "client"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: Dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    """Destination for audit entries."""

    def write(self, entry: AuditEntry) -> None:
        ...


class AuditRecorder:
    """Records patient operations to the log and an optional sink.

    Sink failures are logged and never propagate to the caller; the audit
    log line has already been written at that point.

    Example:
        >>> recorder = AuditRecorder()
        >>> recorder.record("read", "test-patient-001", actor_id="dr-smith")
    """

    def __init__(self, sink: Optional[AuditSink] = None) -> None:
        self.sink = sink

    def record(
        self,
        action: str,
        resource_id: Optional[str],
        actor_id: Optional[str] = None,
        status: str = "success",
        resource_type: str = "Patient",
        **details: Any,
    ) -> AuditEntry:
        """Record one operation.

        Args:
            action: Operation name (create, read, update, delete, search, everything)
            resource_id: Affected resource id, None for searches
            actor_id: Caller identity, ``anonymous`` when unknown
            status: "success" or "failure"
            resource_type: Resource type of the affected resource
            **details: Extra fields stored with the entry

        Returns:
            The recorded AuditEntry
        """
        entry = AuditEntry(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            actor_id=actor_id or ANONYMOUS_ACTOR,
            details={"status": status, **details},
        )

        event_details: Dict[str, Any] = {
            "status": status,
            "resource_type": resource_type,
            "actor_id": entry.actor_id,
        }
        if resource_id is not None:
            event_details["resource_id"] = resource_id
        event_details.update(details)
        log_audit_event(f"{resource_type.upper()}_{action.upper()}", event_details)

        if self.sink is not None:
            try:
                self.sink.write(entry)
            except Exception as e:
                logger.error(f"Failed to write audit entry for {action} {resource_id}: {e}")

        return entry
