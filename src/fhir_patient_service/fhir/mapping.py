"""Record ⇄ resource mapping.

``to_public`` and ``to_record`` are pure functions converting between the
persisted PatientRecord and the public PatientResource:

| Public                                  | Persisted                          |
|-----------------------------------------|------------------------------------|
| id                                      | id                                 |
| meta.versionId                          | version (stringified)              |
| meta.lastUpdated                        | updated_at, else created_at        |
| identifier (official health id)         | health_card_number                 |
| name (official, else first)             | family_name, given_name (first)    |
| gender                                  | gender                             |
| birthDate                               | birth_date                         |
| telecom (system=phone)                  | phone                              |
| telecom (system=email)                  | email                              |
| address[0] line[0]/city/state/postalCode| address_line/city/province/postal_code |
"""

from datetime import datetime, timezone
from typing import Optional

from fhir_patient_service.models.patient import PatientRecord
from fhir_patient_service.models.resource import (
    Address,
    ContactPoint,
    ContactPointSystem,
    ContactPointUse,
    HumanName,
    Identifier,
    Meta,
    NameUse,
    PatientResource,
)


# Ontario health card naming system, used for identifiers emitted from records
HEALTH_CARD_SYSTEM = "https://fhir.infoway-inforoute.ca/NamingSystem/ca-on-patient-hcn"

# Provincial health identifier naming systems recognised on input
HEALTH_IDENTIFIER_SYSTEMS = frozenset({
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-on-patient-hcn",
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-bc-patient-phn",
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-ab-patient-phn",
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-qc-patient-hcn",
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-mb-patient-phin",
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-sk-patient-hsn",
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-ns-patient-hcn",
    "https://fhir.infoway-inforoute.ca/NamingSystem/ca-nb-patient-mcn",
})

PATIENT_PROFILE = "http://hl7.org/fhir/ca/baseline/StructureDefinition/profile-patient"
DEFAULT_COUNTRY = "CA"


def is_health_identifier(identifier: Identifier) -> bool:
    """Check whether an identifier denotes an official health identifier.

    True when the identifier is tagged ``use=official`` or its system is a
    known provincial health-card naming system.
    """
    if identifier.use == "official":
        return True
    return identifier.system in HEALTH_IDENTIFIER_SYSTEMS


def format_instant(value: Optional[datetime]) -> Optional[str]:
    """Format a timestamp as a FHIR instant (UTC, millisecond precision, ``Z``).

    Naive datetimes are taken to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """Parse a FHIR instant into an aware UTC datetime.

    Returns None for missing or unparsable values.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_public(record: PatientRecord) -> PatientResource:
    """Map a persisted record to its public Patient resource.

    Args:
        record: Persisted patient record

    Returns:
        PatientResource with empty collections left empty (omitted on output)
    """
    resource = PatientResource(
        id=record.id,
        meta=Meta(
            version_id=str(record.version),
            last_updated=format_instant(record.last_modified),
            profile=[PATIENT_PROFILE],
        ),
        gender=record.gender,
        birth_date=record.birth_date,
    )

    if record.health_card_number:
        resource.identifier.append(Identifier(
            use="official",
            system=HEALTH_CARD_SYSTEM,
            value=record.health_card_number,
        ))

    if record.family_name or record.given_name:
        resource.name.append(HumanName(
            use=NameUse.OFFICIAL,
            family=record.family_name,
            given=[record.given_name] if record.given_name else [],
        ))

    if record.phone:
        resource.telecom.append(ContactPoint(
            system=ContactPointSystem.PHONE,
            value=record.phone,
            use=ContactPointUse.HOME,
        ))

    if record.email:
        resource.telecom.append(ContactPoint(
            system=ContactPointSystem.EMAIL,
            value=record.email,
        ))

    if record.has_address:
        resource.address.append(Address(
            use="home",
            type="physical",
            line=[record.address_line] if record.address_line else [],
            city=record.city,
            state=record.province,
            postal_code=record.postal_code,
            country=DEFAULT_COUNTRY,
        ))

    return resource


def to_record(resource: PatientResource) -> PatientRecord:
    """Extract a record fragment from a public Patient resource.

    Only the official (else first) name, the first health identifier, the
    first phone, the first email and the first address are carried over.
    Fields the resource lacks are left unset. ``created_at`` is never set
    here; the caller owns record timestamps.

    Args:
        resource: Parsed Patient resource

    Returns:
        PatientRecord fragment

    Raises:
        ValueError: If the selected name has no family name (validate first)
    """
    name = resource.official_name
    record = PatientRecord(
        id=resource.id,
        family_name=name.family if name is not None else None,
        given_name=name.given[0] if name is not None and name.given else None,
        gender=resource.gender,
        birth_date=resource.birth_date,
        version=resource.version or 1,
        updated_at=parse_instant(resource.meta.last_updated),
    )

    for identifier in resource.identifier:
        if is_health_identifier(identifier):
            record.health_card_number = identifier.value
            break

    phone = resource.first_telecom(ContactPointSystem.PHONE)
    if phone is not None:
        record.phone = phone.value

    email = resource.first_telecom(ContactPointSystem.EMAIL)
    if email is not None:
        record.email = email.value

    if resource.address:
        address = resource.address[0]
        record.address_line = address.line[0] if address.line else None
        record.city = address.city
        record.province = address.state
        record.postal_code = address.postal_code

    return record
