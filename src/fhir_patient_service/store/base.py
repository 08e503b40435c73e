"""Resource store contract.

Both backends (process-local and SQL) implement ResourceStore. The service
facade depends only on this protocol.
"""

from typing import Optional, Protocol, runtime_checkable

from fhir_patient_service.models.patient import PatientRecord
from fhir_patient_service.search.params import SearchParameters


@runtime_checkable
class ResourceStore(Protocol):
    """Keyed persistence of PatientRecord with compare-and-swap writes."""

    def get(self, resource_id: str) -> Optional[PatientRecord]:
        """Return the record with ``resource_id``, or None."""
        ...

    def put(self, record: PatientRecord, expected_version: Optional[int] = None) -> PatientRecord:
        """Insert or replace ``record`` keyed by its id.

        ``expected_version`` selects the write mode:

        - None: unconditional insert-or-replace
        - 0: insert only; fails if the id already exists
        - n > 0: replace only if the stored version equals n

        Raises:
            VersionConflictError: If the expectation does not hold. Nothing
                is written in that case.
            StoreError: If the backend fails
        """
        ...

    def delete(self, resource_id: str) -> bool:
        """Remove the record; True if one was removed."""
        ...

    def query(
        self, params: SearchParameters, offset: int, limit: int
    ) -> tuple[list[PatientRecord], int]:
        """Return (records in window, number of matches before windowing)."""
        ...
