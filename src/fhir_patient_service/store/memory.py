"""Process-local resource store."""

import threading
from typing import Iterable, Optional

from fhir_patient_service.logging_audit import get_logger
from fhir_patient_service.models.patient import PatientRecord
from fhir_patient_service.search.params import SearchParameters
from fhir_patient_service.search.predicates import build_predicates
from fhir_patient_service.utils.exceptions import VersionConflictError


logger = get_logger(__name__)


class InMemoryPatientStore:
    """Dictionary-backed ResourceStore.

    Records are kept in insertion order; replacing a record keeps its
    position. Every operation holds a re-entrant lock so the version check
    and the write of ``put`` happen atomically. Records are copied on the
    way in and out, so callers never share state with the store.

    Example:
        >>> store = InMemoryPatientStore()
        >>> _ = store.put(PatientRecord(id="p1", family_name="Tremblay"), expected_version=0)
        >>> store.get("p1").family_name
        'Tremblay'
    """

    def __init__(self, records: Optional[Iterable[PatientRecord]] = None) -> None:
        self._records: dict[str, PatientRecord] = {}
        self._lock = threading.RLock()
        for record in records or ():
            self.put(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, resource_id: str) -> Optional[PatientRecord]:
        with self._lock:
            record = self._records.get(resource_id)
            return record.copy() if record is not None else None

    def put(self, record: PatientRecord, expected_version: Optional[int] = None) -> PatientRecord:
        if not record.id:
            raise ValueError("Cannot store a record without an id")

        with self._lock:
            current = self._records.get(record.id)
            if expected_version is not None:
                actual = current.version if current is not None else None
                if expected_version == 0 and current is not None:
                    raise VersionConflictError(record.id, 0, actual)
                if expected_version > 0 and actual != expected_version:
                    raise VersionConflictError(record.id, expected_version, actual)

            self._records[record.id] = record.copy()
            logger.debug(f"Stored Patient/{record.id} version {record.version}")
            return record.copy()

    def delete(self, resource_id: str) -> bool:
        with self._lock:
            removed = self._records.pop(resource_id, None)
        if removed is not None:
            logger.debug(f"Deleted Patient/{resource_id}")
        return removed is not None

    def query(
        self, params: SearchParameters, offset: int, limit: int
    ) -> tuple[list[PatientRecord], int]:
        predicates = build_predicates(params)
        with self._lock:
            matches = [
                record for record in self._records.values()
                if all(predicate(record) for predicate in predicates)
            ]
        offset = max(offset, 0)
        window = matches[offset:offset + limit] if limit > 0 else []
        return [record.copy() for record in window], len(matches)

    def clear(self) -> None:
        """Remove every record."""
        with self._lock:
            self._records.clear()
