"""Patient search parameters.

This module defines the recognised search parameter set and its parsing from
HTTP query strings. The set must stay consistent with the search parameters
advertised by the capability statement.
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from fhir_patient_service.logging_audit import get_logger


logger = get_logger(__name__)

DEFAULT_COUNT = 20

# Filter fields and their query parameter names, in canonical order.
# The order is used when serialising self links.
FILTER_PARAMETERS: tuple[tuple[str, str], ...] = (
    ("id", "_id"),
    ("identifier", "identifier"),
    ("family", "family"),
    ("given", "given"),
    ("name", "name"),
    ("birthdate", "birthdate"),
    ("gender", "gender"),
    ("phone", "phone"),
    ("email", "email"),
    ("address", "address"),
    ("address_city", "address-city"),
    ("address_state", "address-state"),
    ("address_postalcode", "address-postalcode"),
)

COUNT_PARAMETER = "_count"
OFFSET_PARAMETER = "_offset"


@dataclass
class SearchParameters:
    """Independently optional Patient search filters plus a page window.

    All supplied filters are combined with a logical AND.

    Attributes:
        id: Exact logical id (``_id``)
        identifier: Substring of the health card number
        family: Case-insensitive substring of the family name
        given: Case-insensitive substring of the given name
        name: Case-insensitive substring of family OR given name
        birthdate: Exact birth date
        gender: Exact gender code
        phone: Substring of the phone number, compared on digits
        email: Case-insensitive substring of the email
        address: Case-insensitive substring of any address part
        address_city: Case-insensitive substring of the city
        address_state: Exact province/state code
        address_postalcode: Case-insensitive postal code prefix, whitespace ignored
        offset: Window start (``_offset``)
        count: Window size (``_count``)

    Example:
        >>> params = SearchParameters(family="trem", count=10)
        >>> params.filters
        {'family': 'trem'}
    """

    id: Optional[str] = None
    identifier: Optional[str] = None
    family: Optional[str] = None
    given: Optional[str] = None
    name: Optional[str] = None
    birthdate: Optional[str] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postalcode: Optional[str] = None
    offset: int = 0
    count: int = DEFAULT_COUNT

    @property
    def filters(self) -> dict[str, str]:
        """Supplied (non-empty) filters keyed by field name."""
        active = {}
        for field_name, _ in FILTER_PARAMETERS:
            value = getattr(self, field_name)
            if value not in (None, ""):
                active[field_name] = value
        return active

    @property
    def has_filters(self) -> bool:
        return bool(self.filters)

    def to_query_items(self) -> list[tuple[str, str]]:
        """Serialise to (query name, value) pairs in canonical order.

        Filters come first in FILTER_PARAMETERS order, followed by
        ``_count`` and ``_offset``.
        """
        items = [
            (query_name, str(getattr(self, field_name)))
            for field_name, query_name in FILTER_PARAMETERS
            if getattr(self, field_name) not in (None, "")
        ]
        items.append((COUNT_PARAMETER, str(self.count)))
        items.append((OFFSET_PARAMETER, str(self.offset)))
        return items

    def window(self, offset: int) -> "SearchParameters":
        """Return a copy of these parameters with a different offset."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values["offset"] = max(offset, 0)
        return SearchParameters(**values)

    @classmethod
    def from_query(
        cls,
        query: Mapping[str, Any],
        default_count: int = DEFAULT_COUNT,
        max_count: Optional[int] = None,
    ) -> "SearchParameters":
        """Parse search parameters from an HTTP query mapping.

        Unrecognised parameters are ignored. Pagination inputs are
        normalised: an unparsable or negative ``_offset`` becomes 0, an
        unparsable or non-positive ``_count`` becomes ``default_count``, and
        ``_count`` is capped at ``max_count`` when one is configured.

        Args:
            query: Query parameters (e.g. Flask ``request.args``)
            default_count: Page size used when ``_count`` is missing or invalid
            max_count: Optional upper bound for ``_count``

        Returns:
            Normalised SearchParameters
        """
        values: dict[str, Any] = {}
        for field_name, query_name in FILTER_PARAMETERS:
            raw = query.get(query_name)
            if raw is None:
                continue
            text = str(raw).strip()
            if text:
                values[field_name] = text

        values["offset"] = normalize_offset(query.get(OFFSET_PARAMETER))
        values["count"] = normalize_count(
            query.get(COUNT_PARAMETER), default_count, max_count
        )
        return cls(**values)


def normalize_offset(raw: Any) -> int:
    """Parse ``_offset``; invalid or negative values become 0."""
    offset = _parse_int(raw)
    if offset is None or offset < 0:
        return 0
    return offset


def normalize_count(
    raw: Any,
    default_count: int = DEFAULT_COUNT,
    max_count: Optional[int] = None,
) -> int:
    """Parse ``_count``; invalid or non-positive values become the default."""
    count = _parse_int(raw)
    if count is None or count < 1:
        count = default_count
    if max_count is not None and count > max_count:
        logger.debug(f"Capping _count {count} to configured maximum {max_count}")
        count = max_count
    return count


def _parse_int(raw: Any) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None
