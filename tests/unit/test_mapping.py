"""Unit tests for record/resource mapping."""

from datetime import datetime, timezone

from fhir_patient_service.fhir.mapping import (
    HEALTH_CARD_SYSTEM,
    PATIENT_PROFILE,
    format_instant,
    parse_instant,
    to_public,
    to_record,
)
from fhir_patient_service.models.patient import AdministrativeGender, PatientRecord
from fhir_patient_service.models.resource import PatientResource


def _full_record() -> PatientRecord:
    created = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)
    return PatientRecord(
        id="p-1",
        family_name="Tremblay",
        given_name="Marie",
        health_card_number="1234-567-890-ON",
        gender=AdministrativeGender.FEMALE,
        birth_date="1985-03-15",
        phone="416-555-0101",
        email="marie.tremblay@example.com",
        address_line="123 Maple Street",
        city="Toronto",
        province="ON",
        postal_code="M5V 2T6",
        version=3,
        created_at=created,
        updated_at=datetime(2024, 2, 1, 10, 30, 0, 250000, tzinfo=timezone.utc),
    )


class TestToPublic:
    """Tests for PatientRecord -> PatientResource."""

    def test_full_record_maps_every_field(self):
        # Arrange
        record = _full_record()

        # Act
        data = to_public(record).to_dict()

        # Assert
        assert data["resourceType"] == "Patient"
        assert data["id"] == "p-1"
        assert data["meta"] == {
            "versionId": "3",
            "lastUpdated": "2024-02-01T10:30:00.250Z",
            "profile": [PATIENT_PROFILE],
        }
        assert data["identifier"] == [{
            "use": "official", "system": HEALTH_CARD_SYSTEM, "value": "1234-567-890-ON",
        }]
        assert data["name"] == [{"use": "official", "family": "Tremblay", "given": ["Marie"]}]
        assert data["gender"] == "female"
        assert data["birthDate"] == "1985-03-15"
        assert {"system": "phone", "value": "416-555-0101", "use": "home"} in data["telecom"]
        assert {"system": "email", "value": "marie.tremblay@example.com"} in data["telecom"]
        assert data["address"][0]["line"] == ["123 Maple Street"]
        assert data["address"][0]["postalCode"] == "M5V 2T6"
        assert data["address"][0]["country"] == "CA"

    def test_missing_optional_fields_are_omitted(self):
        # Arrange
        record = PatientRecord(id="p-2", family_name="Chen", version=1)

        # Act
        data = to_public(record).to_dict()

        # Assert
        assert "identifier" not in data
        assert "telecom" not in data
        assert "address" not in data
        assert "gender" not in data
        assert "birthDate" not in data
        assert data["name"] == [{"use": "official", "family": "Chen"}]

    def test_last_updated_falls_back_to_created_at(self):
        # Arrange
        created = datetime(2024, 3, 3, 3, 3, 3, tzinfo=timezone.utc)
        record = PatientRecord(id="p-3", family_name="Singh", created_at=created)

        # Act
        resource = to_public(record)

        # Assert
        assert resource.meta.last_updated == "2024-03-03T03:03:03.000Z"


class TestToRecord:
    """Tests for PatientResource -> PatientRecord fragment."""

    def test_official_name_preferred_over_first(self):
        # Arrange
        resource = PatientResource.from_dict({
            "resourceType": "Patient",
            "name": [
                {"use": "nickname", "given": ["Sally"]},
                {"use": "official", "family": "Wilson", "given": ["Sarah", "Anne"]},
            ],
        })

        # Act
        record = to_record(resource)

        # Assert
        assert record.family_name == "Wilson"
        assert record.given_name == "Sarah"

    def test_first_name_used_without_official(self):
        # Arrange
        resource = PatientResource.from_dict({
            "resourceType": "Patient",
            "name": [{"family": "First"}, {"family": "Second"}],
        })

        # Act
        record = to_record(resource)

        # Assert
        assert record.family_name == "First"
        assert record.given_name is None

    def test_health_identifier_selected_by_system(self):
        # Arrange
        resource = PatientResource.from_dict({
            "resourceType": "Patient",
            "name": [{"family": "Chen"}],
            "identifier": [
                {"system": "urn:oid:1.2.3", "value": "MRN-1"},
                {
                    "system": "https://fhir.infoway-inforoute.ca/NamingSystem/ca-bc-patient-phn",
                    "value": "9123-456-789-BC",
                },
            ],
        })

        # Act
        record = to_record(resource)

        # Assert
        assert record.health_card_number == "9123-456-789-BC"

    def test_first_phone_and_email_and_address(self):
        # Arrange
        resource = PatientResource.from_dict({
            "resourceType": "Patient",
            "name": [{"family": "Singh"}],
            "telecom": [
                {"system": "email", "value": "first@example.com"},
                {"system": "phone", "value": "905-555-0202"},
                {"system": "phone", "value": "905-555-9999"},
                {"system": "email", "value": "second@example.com"},
            ],
            "address": [
                {"line": ["456 Oak Avenue", "Unit 2"], "city": "Mississauga",
                 "state": "ON", "postalCode": "L5B 3C7"},
                {"city": "Elsewhere"},
            ],
        })

        # Act
        record = to_record(resource)

        # Assert
        assert record.phone == "905-555-0202"
        assert record.email == "first@example.com"
        assert record.address_line == "456 Oak Avenue"
        assert record.city == "Mississauga"
        assert record.province == "ON"
        assert record.postal_code == "L5B 3C7"

    def test_absent_fields_left_unset(self):
        # Arrange
        resource = PatientResource.from_dict({
            "resourceType": "Patient",
            "name": [{"family": "MacDonald"}],
        })

        # Act
        record = to_record(resource)

        # Assert
        assert record.phone is None
        assert record.email is None
        assert record.health_card_number is None
        assert record.city is None
        assert record.created_at is None

    def test_round_trip_preserves_persisted_fields(self):
        # Arrange
        record = _full_record()

        # Act
        restored = to_record(to_public(record))

        # Assert
        for field_name in (
            "id", "family_name", "given_name", "health_card_number", "gender",
            "birth_date", "phone", "email", "address_line", "city", "province",
            "postal_code", "version",
        ):
            assert getattr(restored, field_name) == getattr(record, field_name), field_name


class TestInstants:
    """Tests for FHIR instant formatting and parsing."""

    def test_format_naive_datetime_as_utc(self):
        assert format_instant(datetime(2024, 5, 6, 7, 8, 9)) == "2024-05-06T07:08:09.000Z"

    def test_format_none(self):
        assert format_instant(None) is None

    def test_parse_z_suffix(self):
        parsed = parse_instant("2024-05-06T07:08:09.123Z")
        assert parsed == datetime(2024, 5, 6, 7, 8, 9, 123000, tzinfo=timezone.utc)

    def test_parse_invalid_returns_none(self):
        assert parse_instant("not-a-date") is None
        assert parse_instant(None) is None
