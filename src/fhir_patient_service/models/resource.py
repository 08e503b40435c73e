"""Public FHIR Patient resource model.

This module defines the dataclasses for the public shape of a patient, the
FHIR R4 ``Patient`` resource. Collection elements carry an explicit
discriminant (``ContactPoint.system``, ``HumanName.use``) so callers select
elements by tag rather than by probing dictionary keys.

``PatientResource.from_dict`` parses a JSON payload; ``to_dict`` emits the
JSON shape with empty collections and unset scalars omitted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Type, TypeVar

from fhir_patient_service.models.patient import AdministrativeGender
from fhir_patient_service.utils.exceptions import ResourceValidationError


PATIENT_RESOURCE_TYPE = "Patient"

E = TypeVar("E", bound=Enum)


class NameUse(str, Enum):
    """FHIR HumanName.use value set."""

    USUAL = "usual"
    OFFICIAL = "official"
    TEMP = "temp"
    NICKNAME = "nickname"
    ANONYMOUS = "anonymous"
    OLD = "old"
    MAIDEN = "maiden"


class ContactPointSystem(str, Enum):
    """FHIR ContactPoint.system value set."""

    PHONE = "phone"
    FAX = "fax"
    EMAIL = "email"
    PAGER = "pager"
    URL = "url"
    SMS = "sms"
    OTHER = "other"


class ContactPointUse(str, Enum):
    """FHIR ContactPoint.use value set."""

    HOME = "home"
    WORK = "work"
    TEMP = "temp"
    OLD = "old"
    MOBILE = "mobile"


@dataclass
class Meta:
    """Resource metadata: version id, last update instant and profiles."""

    version_id: Optional[str] = None
    last_updated: Optional[str] = None
    profile: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.version_id is not None:
            data["versionId"] = self.version_id
        if self.last_updated is not None:
            data["lastUpdated"] = self.last_updated
        if self.profile:
            data["profile"] = list(self.profile)
        return data


@dataclass
class Identifier:
    """Business identifier such as a provincial health card number."""

    value: Optional[str]
    system: Optional[str] = None
    use: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({"use": self.use, "system": self.system, "value": self.value})


@dataclass
class HumanName:
    """A name entry tagged with its use."""

    family: Optional[str] = None
    given: list[str] = field(default_factory=list)
    use: Optional[NameUse] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "use": self.use.value if self.use else None,
            "family": self.family,
            "given": list(self.given) or None,
        })


@dataclass
class ContactPoint:
    """A telecom entry tagged with its system."""

    system: ContactPointSystem
    value: Optional[str] = None
    use: Optional[ContactPointUse] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "system": self.system.value,
            "value": self.value,
            "use": self.use.value if self.use else None,
        })


@dataclass
class Address:
    """A postal address."""

    line: list[str] = field(default_factory=list)
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    use: Optional[str] = None
    type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "use": self.use,
            "type": self.type,
            "line": list(self.line) or None,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
        })


@dataclass
class PatientResource:
    """FHIR R4 Patient resource.

    Attributes:
        id: Logical id (mirrors PatientRecord.id)
        meta: Version id, last update instant and profiles
        identifier: Business identifiers
        name: Name entries; the official (else first) one is persisted
        gender: Administrative gender
        birth_date: Partial date YYYY, YYYY-MM or YYYY-MM-DD
        telecom: Phone/email and other contact points
        address: Postal addresses
    """

    id: Optional[str] = None
    meta: Meta = field(default_factory=Meta)
    identifier: list[Identifier] = field(default_factory=list)
    name: list[HumanName] = field(default_factory=list)
    gender: Optional[AdministrativeGender] = None
    birth_date: Optional[str] = None
    telecom: list[ContactPoint] = field(default_factory=list)
    address: list[Address] = field(default_factory=list)
    resource_type: str = PATIENT_RESOURCE_TYPE

    @property
    def official_name(self) -> Optional[HumanName]:
        """Return the first name with use=official, else the first name."""
        for entry in self.name:
            if entry.use is NameUse.OFFICIAL:
                return entry
        return self.name[0] if self.name else None

    def first_telecom(self, system: ContactPointSystem) -> Optional[ContactPoint]:
        """Return the first telecom entry for ``system``, if any."""
        for contact in self.telecom:
            if contact.system is system:
                return contact
        return None

    @property
    def version(self) -> Optional[int]:
        """meta.versionId as an integer, or None if absent or not numeric."""
        if self.meta.version_id and self.meta.version_id.isdigit():
            return int(self.meta.version_id)
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a FHIR JSON dictionary.

        Empty identifier, telecom and address collections are omitted.

        Returns:
            Dictionary ready for JSON serialization
        """
        data: dict[str, Any] = {"resourceType": self.resource_type}
        if self.id is not None:
            data["id"] = self.id
        meta = self.meta.to_dict()
        if meta:
            data["meta"] = meta
        if self.identifier:
            data["identifier"] = [i.to_dict() for i in self.identifier]
        if self.name:
            data["name"] = [n.to_dict() for n in self.name]
        if self.gender is not None:
            data["gender"] = self.gender.value
        if self.birth_date is not None:
            data["birthDate"] = self.birth_date
        if self.telecom:
            data["telecom"] = [t.to_dict() for t in self.telecom]
        if self.address:
            data["address"] = [a.to_dict() for a in self.address]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PatientResource":
        """Parse a FHIR JSON Patient payload.

        Unknown elements are ignored. Elements with the wrong JSON type or
        codes outside their value set are collected and reported together.

        Args:
            data: Decoded JSON payload

        Returns:
            Parsed PatientResource

        Raises:
            ResourceValidationError: If the payload is structurally malformed
        """
        if not isinstance(data, dict):
            raise ResourceValidationError(["Resource must be a JSON object"])

        issues: list[str] = []

        meta_data = _object(data.get("meta"), "meta", issues) or {}
        version_id = meta_data.get("versionId")
        meta = Meta(
            version_id=str(version_id) if version_id is not None else None,
            last_updated=meta_data.get("lastUpdated"),
            profile=[p for p in _array(meta_data.get("profile"), "meta.profile", issues)
                     if isinstance(p, str)],
        )

        identifiers = []
        for idx, item in enumerate(_array(data.get("identifier"), "identifier", issues)):
            entry = _object(item, f"identifier[{idx}]", issues)
            if entry is not None:
                identifiers.append(Identifier(
                    value=entry.get("value"),
                    system=entry.get("system"),
                    use=entry.get("use"),
                ))

        names = []
        for idx, item in enumerate(_array(data.get("name"), "name", issues)):
            entry = _object(item, f"name[{idx}]", issues)
            if entry is None:
                continue
            given = _array(entry.get("given"), f"name[{idx}].given", issues)
            names.append(HumanName(
                family=entry.get("family"),
                given=[g for g in given if isinstance(g, str)],
                use=_code(NameUse, entry.get("use"), f"name[{idx}].use", issues),
            ))

        telecoms = []
        for idx, item in enumerate(_array(data.get("telecom"), "telecom", issues)):
            entry = _object(item, f"telecom[{idx}]", issues)
            if entry is None:
                continue
            system = _code(ContactPointSystem, entry.get("system"),
                           f"telecom[{idx}].system", issues)
            if system is None:
                if entry.get("system") is None:
                    issues.append(f"telecom[{idx}].system is required")
                continue
            telecoms.append(ContactPoint(
                system=system,
                value=entry.get("value"),
                use=_code(ContactPointUse, entry.get("use"), f"telecom[{idx}].use", issues),
            ))

        addresses = []
        for idx, item in enumerate(_array(data.get("address"), "address", issues)):
            entry = _object(item, f"address[{idx}]", issues)
            if entry is None:
                continue
            lines = _array(entry.get("line"), f"address[{idx}].line", issues)
            addresses.append(Address(
                line=[line for line in lines if isinstance(line, str)],
                city=entry.get("city"),
                state=entry.get("state"),
                postal_code=entry.get("postalCode"),
                country=entry.get("country"),
                use=entry.get("use"),
                type=entry.get("type"),
            ))

        gender = _code(AdministrativeGender, data.get("gender"), "gender", issues)

        birth_date = data.get("birthDate")
        if birth_date is not None and not isinstance(birth_date, str):
            issues.append("birthDate must be a string")
            birth_date = None

        if issues:
            raise ResourceValidationError(issues)

        return cls(
            id=data.get("id"),
            meta=meta,
            identifier=identifiers,
            name=names,
            gender=gender,
            birth_date=birth_date,
            telecom=telecoms,
            address=addresses,
            resource_type=data.get("resourceType", PATIENT_RESOURCE_TYPE),
        )


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in data.items() if value is not None}


def _array(value: Any, path: str, issues: list[str]) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        issues.append(f"{path} must be an array")
        return []
    return value


def _object(value: Any, path: str, issues: list[str]) -> Optional[dict[str, Any]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        issues.append(f"{path} must be an object")
        return None
    return value


def _code(enum_cls: Type[E], value: Any, path: str, issues: list[str]) -> Optional[E]:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        issues.append(f"{path} must be one of: {allowed}")
        return None
