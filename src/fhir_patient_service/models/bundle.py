"""FHIR Bundle data models.

This module defines the collection-result representation returned by search
and by the ``$everything`` export.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class BundleLink:
    """Bundle link with a relation such as ``self``, ``next`` or ``previous``."""

    relation: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {"relation": self.relation, "url": self.url}


@dataclass
class BundleEntry:
    """Single bundle entry.

    Attributes:
        full_url: Absolute reference to the resource
        resource: Resource JSON dictionary
        search_mode: ``match`` for search hits, None otherwise
    """

    full_url: str
    resource: dict[str, Any]
    search_mode: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"fullUrl": self.full_url, "resource": self.resource}
        if self.search_mode:
            data["search"] = {"mode": self.search_mode}
        return data


@dataclass
class Bundle:
    """FHIR Bundle resource.

    Attributes:
        id: Bundle id (UUID)
        type: Bundle type, ``searchset`` for both search and export results
        timestamp: Assembly instant (ISO 8601)
        total: Number of matches across all pages
        link: Links, ``self`` first
        entry: Entries in this page

    Example:
        >>> bundle = Bundle(id="b1", type="searchset", timestamp="2024-01-01T00:00:00+00:00", total=0)
        >>> bundle.to_dict()["resourceType"]
        'Bundle'
    """

    id: str
    type: str
    timestamp: str
    total: int
    link: list[BundleLink] = field(default_factory=list)
    entry: list[BundleEntry] = field(default_factory=list)

    def link_url(self, relation: str) -> Optional[str]:
        """Return the URL of the first link with ``relation``, if any."""
        for link in self.link:
            if link.relation == relation:
                return link.url
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a FHIR JSON dictionary.

        Returns:
            Dictionary ready for JSON serialization
        """
        return {
            "resourceType": "Bundle",
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "total": self.total,
            "link": [link.to_dict() for link in self.link],
            "entry": [entry.to_dict() for entry in self.entry],
        }
