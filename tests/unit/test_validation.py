"""Unit tests for Patient payload validation."""

import pytest

from fhir_patient_service.fhir.validation import validate_patient


def _valid() -> dict:
    return {
        "resourceType": "Patient",
        "name": [{"use": "official", "family": "Tremblay", "given": ["Marie"]}],
        "gender": "female",
        "birthDate": "1985-03-15",
    }


class TestValidatePatient:
    """Tests for validate_patient rules."""

    def test_valid_payload_has_no_errors(self):
        assert validate_patient(_valid()) == []

    def test_wrong_resource_type(self):
        # Arrange
        payload = _valid()
        payload["resourceType"] = "Observation"

        # Act
        errors = validate_patient(payload)

        # Assert
        assert errors == ['resourceType must be "Patient"']

    def test_missing_name(self):
        # Arrange
        payload = _valid()
        del payload["name"]

        # Act & Assert
        assert validate_patient(payload) == ["At least one name is required"]

    def test_empty_name_list(self):
        payload = _valid()
        payload["name"] = []
        assert validate_patient(payload) == ["At least one name is required"]

    def test_invalid_gender(self):
        payload = _valid()
        payload["gender"] = "M"
        assert validate_patient(payload) == [
            "gender must be one of: male, female, other, unknown"
        ]

    @pytest.mark.parametrize("birth_date", ["1985", "1985-03", "1985-03-15"])
    def test_partial_birth_dates_accepted(self, birth_date):
        payload = _valid()
        payload["birthDate"] = birth_date
        assert validate_patient(payload) == []

    @pytest.mark.parametrize("birth_date", ["15/03/1985", "1985-3-15", "85", "1985-03-15T00:00"])
    def test_malformed_birth_dates_rejected(self, birth_date):
        payload = _valid()
        payload["birthDate"] = birth_date
        assert validate_patient(payload) == [
            "birthDate must be in format YYYY, YYYY-MM, or YYYY-MM-DD"
        ]

    @pytest.mark.parametrize("birth_date", ["", 0, [], {}, False, "1985\n"])
    def test_present_but_empty_birth_date_rejected(self, birth_date):
        payload = _valid()
        payload["birthDate"] = birth_date
        assert validate_patient(payload) == [
            "birthDate must be in format YYYY, YYYY-MM, or YYYY-MM-DD"
        ]

    @pytest.mark.parametrize("gender", ["", 0, [], {}])
    def test_present_but_empty_gender_rejected(self, gender):
        payload = _valid()
        payload["gender"] = gender
        assert validate_patient(payload) == [
            "gender must be one of: male, female, other, unknown"
        ]

    def test_explicit_null_birth_date_and_gender_allowed(self):
        payload = _valid()
        payload["birthDate"] = None
        payload["gender"] = None
        assert validate_patient(payload) == []

    def test_official_name_without_family(self):
        # Arrange
        payload = _valid()
        payload["name"] = [
            {"family": "Other"},
            {"use": "official", "given": ["Marie"]},
        ]

        # Act & Assert
        assert validate_patient(payload) == ["name must include a family name"]

    def test_blank_family_rejected(self):
        payload = _valid()
        payload["name"] = [{"family": "   "}]
        assert validate_patient(payload) == ["name must include a family name"]

    def test_invalid_id(self):
        payload = _valid()
        payload["id"] = "has spaces!"
        assert validate_patient(payload) == [
            "id must be 1-64 characters: letters, digits, '-' or '.'"
        ]

    def test_all_violations_collected(self):
        # Arrange
        payload = {"resourceType": "Practitioner", "gender": "x", "birthDate": "bad"}

        # Act
        errors = validate_patient(payload)

        # Assert
        assert errors == [
            'resourceType must be "Patient"',
            "At least one name is required",
            "gender must be one of: male, female, other, unknown",
            "birthDate must be in format YYYY, YYYY-MM, or YYYY-MM-DD",
        ]

    def test_non_object_payload(self):
        assert validate_patient(["not", "a", "dict"]) == ["Resource must be a JSON object"]
