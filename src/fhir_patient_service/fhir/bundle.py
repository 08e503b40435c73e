"""Bundle assembly for search results and the ``$everything`` export."""

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence, Union
from urllib.parse import urlencode

from fhir_patient_service.fhir.mapping import format_instant
from fhir_patient_service.models.bundle import Bundle, BundleEntry, BundleLink
from fhir_patient_service.models.resource import PatientResource
from fhir_patient_service.search.params import SearchParameters


SEARCHSET = "searchset"
SEARCH_MODE_MATCH = "match"

ResourceLike = Union[PatientResource, dict[str, Any]]


def build_search_bundle(
    resources: Sequence[PatientResource],
    total: int,
    params: SearchParameters,
    base_url: str,
) -> Bundle:
    """Assemble a searchset Bundle from one page of matches.

    The ``self`` link serialises every supplied parameter in canonical
    order. ``next`` and ``previous`` links are added when the page does not
    cover the whole result.

    Args:
        resources: Resources in the current window
        total: Number of matches across all pages
        params: Parameters the search was run with
        base_url: Service base URL (e.g. ``http://localhost:3000/fhir``)

    Returns:
        Bundle with one ``match`` entry per resource

    Example:
        >>> bundle = build_search_bundle([], 0, SearchParameters(), "http://x/fhir")
        >>> bundle.link_url("self")
        'http://x/fhir/Patient?_count=20&_offset=0'
    """
    base = base_url.rstrip("/")
    links = [BundleLink("self", _search_url(base, params))]

    if params.offset + params.count < total:
        links.append(BundleLink("next", _search_url(base, params.window(params.offset + params.count))))
    if params.offset > 0:
        links.append(BundleLink("previous", _search_url(base, params.window(params.offset - params.count))))

    entries = [
        BundleEntry(
            full_url=f"{base}/Patient/{resource.id}",
            resource=resource.to_dict(),
            search_mode=SEARCH_MODE_MATCH,
        )
        for resource in resources
    ]

    return Bundle(
        id=str(uuid.uuid4()),
        type=SEARCHSET,
        timestamp=_now(),
        total=total,
        link=links,
        entry=entries,
    )


def build_aggregate_bundle(
    primary: PatientResource,
    related: Iterable[ResourceLike],
    base_url: str,
) -> Bundle:
    """Assemble the ``$everything`` Bundle for one patient.

    The primary resource comes first; related resources follow and use
    their own ``resourceType`` in ``fullUrl``.

    Args:
        primary: The patient the export is scoped to
        related: Related resources (possibly empty)
        base_url: Service base URL

    Returns:
        Bundle whose total is 1 + len(related)
    """
    base = base_url.rstrip("/")
    entries = [BundleEntry(f"{base}/Patient/{primary.id}", primary.to_dict())]

    for resource in related:
        data = resource.to_dict() if isinstance(resource, PatientResource) else dict(resource)
        entries.append(
            BundleEntry(f"{base}/{data.get('resourceType')}/{data.get('id')}", data)
        )

    return Bundle(
        id=str(uuid.uuid4()),
        type=SEARCHSET,
        timestamp=_now(),
        total=len(entries),
        link=[BundleLink("self", f"{base}/Patient/{primary.id}/$everything")],
        entry=entries,
    )


def _search_url(base: str, params: SearchParameters) -> str:
    return f"{base}/Patient?{urlencode(params.to_query_items())}"


def _now() -> str:
    return format_instant(datetime.now(timezone.utc))
