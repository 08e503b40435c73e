"""Persisted patient record model.

This module defines the PatientRecord dataclass: the flat, relational shape a
patient takes inside a resource store.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class AdministrativeGender(str, Enum):
    """FHIR administrative gender value set."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"

    @classmethod
    def values(cls) -> list[str]:
        """Return the code values in declaration order."""
        return [member.value for member in cls]


@dataclass
class PatientRecord:
    """Patient demographics as persisted by a ResourceStore.

    Attributes:
        id: Logical id, stable for the record's lifetime
        family_name: Family (last) name (required, non-empty)
        given_name: First given name (optional)
        health_card_number: Provincial health card number (optional)
        gender: Administrative gender (optional)
        birth_date: Partial date YYYY, YYYY-MM or YYYY-MM-DD (optional)
        phone: Contact phone number (optional)
        email: Contact email (optional)
        address_line: First street address line (optional)
        city: City (optional)
        province: Province/state code (optional)
        postal_code: Postal code as entered (optional)
        version: Version counter, 1 on creation, +1 per update
        created_at: Creation timestamp (UTC)
        updated_at: Last update timestamp (UTC)
    """

    id: Optional[str]
    family_name: str
    given_name: Optional[str] = None
    health_card_number: Optional[str] = None
    gender: Optional[AdministrativeGender] = None
    birth_date: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address_line: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Reject records without a usable family name.

        Raises:
            ValueError: If family_name is missing or blank
        """
        if not isinstance(self.family_name, str) or not self.family_name.strip():
            raise ValueError(f"PatientRecord {self.id!r} requires a non-empty family_name")

    @property
    def last_modified(self) -> Optional[datetime]:
        """Timestamp exposed as meta.lastUpdated (updated_at, else created_at)."""
        return self.updated_at or self.created_at

    @property
    def has_address(self) -> bool:
        """Check if any address field is populated."""
        return any((self.address_line, self.city, self.province, self.postal_code))

    def copy(self, **changes) -> "PatientRecord":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
