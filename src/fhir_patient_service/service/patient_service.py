"""Patient resource service.

PatientService is the single entry point for Patient operations. It
validates payloads, assigns ids and versions, talks to the ResourceStore and
assembles bundles. Failures are raised as exceptions from
``fhir_patient_service.utils.exceptions``; mapping them to HTTP responses is
left to the transport.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from fhir_patient_service.config.schema import SearchConfig
from fhir_patient_service.fhir.bundle import build_aggregate_bundle, build_search_bundle
from fhir_patient_service.fhir.mapping import to_public, to_record
from fhir_patient_service.fhir.validation import validate_patient
from fhir_patient_service.logging_audit import get_logger
from fhir_patient_service.models.bundle import Bundle
from fhir_patient_service.models.patient import PatientRecord
from fhir_patient_service.models.resource import PatientResource
from fhir_patient_service.search.engine import PatientSearchEngine
from fhir_patient_service.search.params import SearchParameters
from fhir_patient_service.store.base import ResourceStore
from fhir_patient_service.utils.exceptions import (
    PreconditionFailedError,
    ResourceNotFoundError,
    ResourceValidationError,
)
from fhir_patient_service.utils.id_generator import generate_resource_id


logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PatientService:
    """Facade over validation, storage, search and bundle assembly.

    Example:
        >>> from fhir_patient_service.store.memory import InMemoryPatientStore
        >>> service = PatientService(InMemoryPatientStore(), "http://localhost:3000/fhir")
        >>> created = service.create({
        ...     "resourceType": "Patient",
        ...     "name": [{"family": "Tremblay", "given": ["Marie"]}],
        ... })
        >>> created.meta.version_id
        '1'
    """

    def __init__(
        self,
        store: ResourceStore,
        base_url: str,
        search_config: Optional[SearchConfig] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.search_config = search_config or SearchConfig()
        self.search_engine = PatientSearchEngine(store)
        self._clock = clock

    def parse_search(self, query: Mapping[str, Any]) -> SearchParameters:
        """Parse HTTP query parameters using the configured paging limits."""
        return SearchParameters.from_query(
            query,
            default_count=self.search_config.default_count,
            max_count=self.search_config.max_count,
        )

    def search(self, params: SearchParameters) -> Bundle:
        """Search patients; always returns a searchset Bundle (possibly empty)."""
        result = self.search_engine.search(params)
        return build_search_bundle(result.resources, result.total, params, self.base_url)

    def read(self, resource_id: str) -> PatientResource:
        """Read a patient by id.

        Raises:
            ResourceNotFoundError: If no patient has ``resource_id``
        """
        return to_public(self._get_record(resource_id))

    def create(self, payload: Any) -> PatientResource:
        """Create a patient from a FHIR JSON payload.

        The payload id is kept when supplied, otherwise a new id is
        generated. The new record starts at version 1.

        Raises:
            ResourceValidationError: If the payload is invalid
            VersionConflictError: If the supplied id is already in use
        """
        resource = self._parse(payload)

        resource_id = resource.id or generate_resource_id(
            is_taken=lambda candidate: self.store.get(candidate) is not None
        )
        now = self._clock()

        record = to_record(resource).copy(
            id=resource_id,
            version=1,
            created_at=now,
            updated_at=now,
        )
        stored = self.store.put(record, expected_version=0)

        logger.info(f"Created Patient/{stored.id}")
        return to_public(stored)

    def update(
        self,
        resource_id: str,
        payload: Any,
        if_match: Optional[int] = None,
    ) -> PatientResource:
        """Replace a patient with the content of ``payload``.

        The version advances by exactly one and ``created_at`` is kept. The
        write only succeeds if the stored version is still the one that was
        read, so concurrent updates cannot silently overwrite each other.

        Args:
            resource_id: Logical id from the request URL
            payload: FHIR JSON payload; its id, if present, must equal ``resource_id``
            if_match: Version the client expects to replace (If-Match), optional

        Raises:
            ResourceNotFoundError: If no patient has ``resource_id``
            ResourceValidationError: If the payload is invalid
            PreconditionFailedError: If ``if_match`` is not the stored version
            VersionConflictError: If another write landed first
        """
        existing = self._get_record(resource_id)
        resource = self._parse(payload)

        if resource.id is not None and resource.id != resource_id:
            raise ResourceValidationError(["Resource id in body must match id in URL"])

        if if_match is not None and if_match != existing.version:
            raise PreconditionFailedError(resource_id, if_match, existing.version)

        record = to_record(resource).copy(
            id=resource_id,
            version=existing.version + 1,
            created_at=existing.created_at,
            updated_at=self._clock(),
        )
        stored = self.store.put(record, expected_version=existing.version)

        logger.info(f"Updated Patient/{resource_id} to version {stored.version}")
        return to_public(stored)

    def delete(self, resource_id: str) -> bool:
        """Delete a patient.

        Returns:
            True if the store removed the record

        Raises:
            ResourceNotFoundError: If no patient has ``resource_id``
        """
        self._get_record(resource_id)
        deleted = self.store.delete(resource_id)
        logger.info(f"Deleted Patient/{resource_id}")
        return deleted

    def everything(self, resource_id: str) -> Bundle:
        """Patient-scoped export.

        Only Patient resources are managed here, so the bundle carries the
        patient alone.

        Raises:
            ResourceNotFoundError: If no patient has ``resource_id``
        """
        primary = self.read(resource_id)
        return build_aggregate_bundle(primary, [], self.base_url)

    def _get_record(self, resource_id: str) -> PatientRecord:
        record = self.store.get(resource_id)
        if record is None:
            raise ResourceNotFoundError(resource_id)
        return record

    def _parse(self, payload: Any) -> PatientResource:
        errors = validate_patient(payload)
        if errors:
            raise ResourceValidationError(errors)
        return PatientResource.from_dict(payload)
