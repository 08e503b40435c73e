"""Built-in test patients.

Five Canadian test patients used for local development and connectathon
testing. They are kept as FHIR JSON and loaded through the same parse and
mapping path as client payloads.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from fhir_patient_service.fhir.mapping import to_record
from fhir_patient_service.logging_audit import get_logger
from fhir_patient_service.models.patient import PatientRecord
from fhir_patient_service.models.resource import PatientResource
from fhir_patient_service.store.base import ResourceStore
from fhir_patient_service.utils.exceptions import VersionConflictError


logger = get_logger(__name__)

_NS = "https://fhir.infoway-inforoute.ca/NamingSystem"

TEST_PATIENTS: list[dict[str, Any]] = [
    {
        "resourceType": "Patient",
        "id": "test-patient-001",
        "identifier": [{"use": "official", "system": f"{_NS}/ca-on-patient-hcn", "value": "1234-567-890-ON"}],
        "name": [{"use": "official", "family": "Tremblay", "given": ["Marie", "Claire"]}],
        "gender": "female",
        "birthDate": "1985-03-15",
        "telecom": [
            {"system": "phone", "value": "416-555-0101", "use": "home"},
            {"system": "email", "value": "marie.tremblay@example.com"},
        ],
        "address": [{
            "use": "home", "type": "physical", "line": ["123 Maple Street", "Apt 4B"],
            "city": "Toronto", "state": "ON", "postalCode": "M5V 2T6", "country": "CA",
        }],
    },
    {
        "resourceType": "Patient",
        "id": "test-patient-002",
        "identifier": [{"use": "official", "system": f"{_NS}/ca-on-patient-hcn", "value": "9876-543-210-ON"}],
        "name": [{"use": "official", "family": "Singh", "given": ["Rajiv"]}],
        "gender": "male",
        "birthDate": "1978-11-22",
        "telecom": [
            {"system": "phone", "value": "905-555-0202", "use": "mobile"},
            {"system": "email", "value": "rajiv.singh@example.com"},
        ],
        "address": [{
            "use": "home", "line": ["456 Oak Avenue"],
            "city": "Mississauga", "state": "ON", "postalCode": "L5B 3C7", "country": "CA",
        }],
    },
    {
        "resourceType": "Patient",
        "id": "test-patient-003",
        "identifier": [{"use": "official", "system": f"{_NS}/ca-bc-patient-phn", "value": "9123-456-789-BC"}],
        "name": [{"use": "official", "family": "Chen", "given": ["Wei", "Lin"]}],
        "gender": "female",
        "birthDate": "1992-07-08",
        "telecom": [{"system": "phone", "value": "604-555-0303", "use": "home"}],
        "address": [{
            "use": "home", "line": ["789 Pine Road"],
            "city": "Vancouver", "state": "BC", "postalCode": "V6B 1A1", "country": "CA",
        }],
    },
    {
        "resourceType": "Patient",
        "id": "test-patient-004",
        "name": [{"use": "official", "family": "MacDonald", "given": ["James", "Robert"]}],
        "gender": "male",
        "birthDate": "1965-01-30",
        "telecom": [{"system": "phone", "value": "514-555-0404", "use": "home"}],
        "address": [{
            "use": "home", "line": ["321 Birch Lane"],
            "city": "Montreal", "state": "QC", "postalCode": "H3B 2Y5", "country": "CA",
        }],
    },
    {
        "resourceType": "Patient",
        "id": "test-patient-005",
        "identifier": [{"use": "official", "system": f"{_NS}/ca-ab-patient-phn", "value": "5678-901-234-AB"}],
        "name": [
            {"use": "official", "family": "Wilson", "given": ["Sarah"]},
            {"use": "nickname", "given": ["Sally"]},
        ],
        "gender": "female",
        "birthDate": "2001-12-05",
        "telecom": [
            {"system": "phone", "value": "403-555-0505", "use": "mobile"},
            {"system": "email", "value": "s.wilson@example.com"},
        ],
        "address": [{
            "use": "home", "line": ["555 Cedar Boulevard"],
            "city": "Calgary", "state": "AB", "postalCode": "T2P 1J9", "country": "CA",
        }],
    },
]


def build_test_records(now: Optional[datetime] = None) -> list[PatientRecord]:
    """Convert TEST_PATIENTS to version-1 records.

    Creation timestamps are spaced one millisecond apart so the records
    keep their listed order in every backend.
    """
    base = now or datetime.now(timezone.utc)
    records = []
    for index, payload in enumerate(TEST_PATIENTS):
        record = to_record(PatientResource.from_dict(payload))
        timestamp = base + timedelta(milliseconds=index)
        record.version = 1
        record.created_at = timestamp
        record.updated_at = timestamp
        records.append(record)
    return records


def seed_store(store: ResourceStore, records: Optional[Iterable[PatientRecord]] = None) -> int:
    """Insert records into ``store``, skipping ids that already exist.

    Args:
        store: Target store
        records: Records to insert; defaults to the built-in test patients

    Returns:
        Number of records inserted
    """
    inserted = 0
    for record in records if records is not None else build_test_records():
        try:
            store.put(record, expected_version=0)
        except VersionConflictError:
            logger.debug(f"Seed skipped: Patient/{record.id} already exists")
            continue
        inserted += 1

    logger.info(f"Seeded {inserted} patient(s)")
    return inserted
