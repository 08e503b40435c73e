"""In-process search predicates over PatientRecord.

Each recognised filter maps to a predicate; a record matches a
SearchParameters instance when it satisfies every supplied filter.
"""

import re
from typing import Callable, Optional

from fhir_patient_service.models.patient import PatientRecord
from fhir_patient_service.search.params import SearchParameters


Predicate = Callable[[PatientRecord], bool]

_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"\D+")


def normalize_postal_code(value: Optional[str]) -> str:
    """Strip all whitespace and upper-case a postal code (``m5v 2t6`` → ``M5V2T6``)."""
    return _WHITESPACE.sub("", value or "").upper()


def phone_digits(value: Optional[str]) -> str:
    """Keep only the digits of a phone number."""
    return _NON_DIGITS.sub("", value or "")


def _contains_ci(haystack: Optional[str], needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def _phone_matches(phone: Optional[str], needle: str) -> bool:
    digits = phone_digits(needle)
    if not digits:
        return needle in (phone or "")
    return digits in phone_digits(phone)


def _match_id(record: PatientRecord, value: str) -> bool:
    return record.id == value


def _match_identifier(record: PatientRecord, value: str) -> bool:
    return value in (record.health_card_number or "")


def _match_family(record: PatientRecord, value: str) -> bool:
    return _contains_ci(record.family_name, value)


def _match_given(record: PatientRecord, value: str) -> bool:
    return _contains_ci(record.given_name, value)


def _match_name(record: PatientRecord, value: str) -> bool:
    return _contains_ci(record.family_name, value) or _contains_ci(record.given_name, value)


def _match_birthdate(record: PatientRecord, value: str) -> bool:
    return record.birth_date == value


def _match_gender(record: PatientRecord, value: str) -> bool:
    return record.gender is not None and record.gender.value == value


def _match_phone(record: PatientRecord, value: str) -> bool:
    return _phone_matches(record.phone, value)


def _match_email(record: PatientRecord, value: str) -> bool:
    return _contains_ci(record.email, value)


def _match_address(record: PatientRecord, value: str) -> bool:
    parts = (record.address_line, record.city, record.province, record.postal_code)
    return any(_contains_ci(part, value) for part in parts)


def _match_city(record: PatientRecord, value: str) -> bool:
    return _contains_ci(record.city, value)


def _match_state(record: PatientRecord, value: str) -> bool:
    return record.province == value


def _match_postal_code(record: PatientRecord, value: str) -> bool:
    if record.postal_code is None:
        return False
    return normalize_postal_code(record.postal_code).startswith(normalize_postal_code(value))


# Filter name (SearchParameters field) -> matcher(record, value)
MATCHERS: dict[str, Callable[[PatientRecord, str], bool]] = {
    "id": _match_id,
    "identifier": _match_identifier,
    "family": _match_family,
    "given": _match_given,
    "name": _match_name,
    "birthdate": _match_birthdate,
    "gender": _match_gender,
    "phone": _match_phone,
    "email": _match_email,
    "address": _match_address,
    "address_city": _match_city,
    "address_state": _match_state,
    "address_postalcode": _match_postal_code,
}


def _bind(matcher: Callable[[PatientRecord, str], bool], value: str) -> Predicate:
    def predicate(record: PatientRecord) -> bool:
        return matcher(record, value)

    return predicate


def build_predicates(params: SearchParameters) -> list[Predicate]:
    """Build one predicate per supplied filter.

    Args:
        params: Search parameters

    Returns:
        Predicates to be combined with a logical AND
    """
    return [
        _bind(MATCHERS[name], value)
        for name, value in params.filters.items()
        if name in MATCHERS
    ]


def record_matches(record: PatientRecord, params: SearchParameters) -> bool:
    """Check whether ``record`` satisfies every supplied filter."""
    return all(predicate(record) for predicate in build_predicates(params))
