"""Patient search engine.

Runs a SearchParameters query against a ResourceStore and returns the page
of matches as public resources together with the total match count.
"""

from dataclasses import dataclass

from fhir_patient_service.fhir.mapping import to_public
from fhir_patient_service.logging_audit import get_logger
from fhir_patient_service.models.resource import PatientResource
from fhir_patient_service.search.params import SearchParameters
from fhir_patient_service.store.base import ResourceStore


logger = get_logger(__name__)


@dataclass
class SearchResult:
    """One page of search matches.

    Attributes:
        resources: Matches inside the requested window, in store order
        total: Number of matches across all pages
        params: The parameters the search ran with
    """

    resources: list[PatientResource]
    total: int
    params: SearchParameters


class PatientSearchEngine:
    """Applies search parameters to a store."""

    def __init__(self, store: ResourceStore) -> None:
        self.store = store

    def search(self, params: SearchParameters) -> SearchResult:
        """Run a search.

        All supplied filters are ANDed; ``total`` counts every match while
        ``resources`` holds only the ``[offset, offset + count)`` window.
        """
        records, total = self.store.query(params, params.offset, params.count)
        logger.debug(
            f"Search {params.filters} offset={params.offset} count={params.count}: "
            f"{total} match(es), {len(records)} in window"
        )
        return SearchResult(
            resources=[to_public(record) for record in records],
            total=total,
            params=params,
        )
