"""Unit tests for the resource stores.

Tests using the ``empty_store``/``seeded_store`` fixtures run against both
the in-memory and the SQL (SQLite) backend.
"""

from datetime import datetime, timedelta, timezone

import pytest

from fhir_patient_service.models.patient import AdministrativeGender, PatientRecord
from fhir_patient_service.search import SearchParameters
from fhir_patient_service.store import InMemoryPatientStore, ResourceStore, seed_store
from fhir_patient_service.store.seed import TEST_PATIENTS, build_test_records
from fhir_patient_service.store.sql import SqlAuditLogSink, SqlPatientStore, ping
from fhir_patient_service.logging_audit import AuditEntry
from fhir_patient_service.utils.exceptions import VersionConflictError


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _record(resource_id: str, family: str = "Tremblay", version: int = 1, offset_ms: int = 0) -> PatientRecord:
    timestamp = NOW + timedelta(milliseconds=offset_ms)
    return PatientRecord(
        id=resource_id,
        family_name=family,
        gender=AdministrativeGender.FEMALE,
        birth_date="1985",
        version=version,
        created_at=timestamp,
        updated_at=timestamp,
    )


class TestStoreContract:
    """Behaviour shared by every ResourceStore."""

    def test_store_satisfies_protocol(self, empty_store):
        assert isinstance(empty_store, ResourceStore)

    def test_get_missing_returns_none(self, empty_store):
        assert empty_store.get("nope") is None

    def test_put_and_get(self, empty_store):
        # Arrange
        record = _record("p-1")

        # Act
        empty_store.put(record, expected_version=0)
        stored = empty_store.get("p-1")

        # Assert
        assert stored.family_name == "Tremblay"
        assert stored.gender is AdministrativeGender.FEMALE
        assert stored.birth_date == "1985"
        assert stored.version == 1
        assert stored.created_at == NOW

    def test_put_without_id_rejected(self, empty_store):
        with pytest.raises(ValueError):
            empty_store.put(PatientRecord(id=None, family_name="X"))

    def test_insert_existing_id_conflicts(self, empty_store):
        # Arrange
        empty_store.put(_record("p-1"), expected_version=0)

        # Act & Assert
        with pytest.raises(VersionConflictError) as exc_info:
            empty_store.put(_record("p-1", family="Other"), expected_version=0)

        assert exc_info.value.expected == 0
        assert empty_store.get("p-1").family_name == "Tremblay"

    def test_compare_and_swap_succeeds_on_matching_version(self, empty_store):
        # Arrange
        empty_store.put(_record("p-1"), expected_version=0)

        # Act
        empty_store.put(_record("p-1", family="Singh", version=2), expected_version=1)

        # Assert
        stored = empty_store.get("p-1")
        assert stored.version == 2
        assert stored.family_name == "Singh"

    def test_stale_write_rejected(self, empty_store):
        # Arrange
        empty_store.put(_record("p-1"), expected_version=0)
        empty_store.put(_record("p-1", family="First", version=2), expected_version=1)

        # Act
        with pytest.raises(VersionConflictError) as exc_info:
            empty_store.put(_record("p-1", family="Second", version=2), expected_version=1)

        # Assert
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert empty_store.get("p-1").family_name == "First"

    def test_update_of_missing_record_conflicts(self, empty_store):
        with pytest.raises(VersionConflictError) as exc_info:
            empty_store.put(_record("ghost", version=2), expected_version=1)
        assert exc_info.value.actual is None

    def test_unconditional_put_overwrites(self, empty_store):
        empty_store.put(_record("p-1"))
        empty_store.put(_record("p-1", family="Chen", version=5))
        assert empty_store.get("p-1").version == 5

    def test_delete(self, empty_store):
        # Arrange
        empty_store.put(_record("p-1"), expected_version=0)

        # Act & Assert
        assert empty_store.delete("p-1") is True
        assert empty_store.get("p-1") is None
        assert empty_store.delete("p-1") is False

    def test_query_orders_by_creation_and_windows(self, empty_store):
        # Arrange
        for index in range(5):
            empty_store.put(_record(f"p-{index}", offset_ms=index), expected_version=0)

        # Act
        page, total = empty_store.query(SearchParameters(), offset=2, limit=2)

        # Assert
        assert total == 5
        assert [record.id for record in page] == ["p-2", "p-3"]

    def test_query_window_past_end(self, empty_store):
        empty_store.put(_record("p-1"), expected_version=0)
        page, total = empty_store.query(SearchParameters(), offset=10, limit=5)
        assert page == []
        assert total == 1

    def test_returned_records_are_copies(self, empty_store):
        # Arrange
        empty_store.put(_record("p-1"), expected_version=0)

        # Act
        fetched = empty_store.get("p-1")
        fetched.family_name = "Mutated"

        # Assert
        assert empty_store.get("p-1").family_name == "Tremblay"


class TestStoreSearch:
    """Search semantics over the seeded test patients, per backend."""

    @pytest.mark.parametrize(
        ("params", "expected_ids"),
        [
            (SearchParameters(family="trem"), ["test-patient-001"]),
            (SearchParameters(name="wei"), ["test-patient-003"]),
            (SearchParameters(gender="male"), ["test-patient-002", "test-patient-004"]),
            (SearchParameters(birthdate="1965-01-30"), ["test-patient-004"]),
            (SearchParameters(identifier="9876"), ["test-patient-002"]),
            (SearchParameters(phone="604 555"), ["test-patient-003"]),
            (SearchParameters(email="S.WILSON"), ["test-patient-005"]),
            (SearchParameters(address="birch"), ["test-patient-004"]),
            (SearchParameters(address_city="calg"), ["test-patient-005"]),
            (SearchParameters(address_state="ON"), ["test-patient-001", "test-patient-002"]),
            (SearchParameters(address_postalcode="m5v"), ["test-patient-001"]),
            (SearchParameters(address_postalcode="V6B1"), ["test-patient-003"]),
            (SearchParameters(id="test-patient-004"), ["test-patient-004"]),
            (SearchParameters(gender="female", address_state="ON"), ["test-patient-001"]),
            (SearchParameters(family="s", gender="male"), ["test-patient-002"]),
            (SearchParameters(family="s", gender="female"), ["test-patient-005"]),
            (SearchParameters(name="wei", gender="female", address_state="BC"), ["test-patient-003"]),
            (SearchParameters(given="jam", gender="male", address_postalcode="h3b"), ["test-patient-004"]),
            (SearchParameters(family="trem", address_city="vancouver"), []),
            (SearchParameters(family="nobody"), []),
        ],
    )
    def test_filters(self, seeded_store, params, expected_ids):
        # Act
        page, total = seeded_store.query(params, offset=0, limit=20)

        # Assert
        assert [record.id for record in page] == expected_ids
        assert total == len(expected_ids)

    def test_like_wildcards_are_literal(self, seeded_store):
        page, total = seeded_store.query(SearchParameters(family="%"), offset=0, limit=20)
        assert total == 0


class TestSeeding:
    """Tests for built-in test patients."""

    def test_seed_inserts_five_patients(self, empty_store):
        assert seed_store(empty_store) == len(TEST_PATIENTS) == 5
        _, total = empty_store.query(SearchParameters(), 0, 20)
        assert total == 5

    def test_seed_is_idempotent(self, empty_store):
        seed_store(empty_store)
        assert seed_store(empty_store) == 0

    def test_test_records_keep_listed_order(self):
        records = build_test_records(now=NOW)
        assert [r.id for r in records] == [f"test-patient-00{i}" for i in range(1, 6)]
        assert records[0].created_at < records[1].created_at
        assert records[3].health_card_number is None
        assert records[4].given_name == "Sarah"


class TestInMemoryStore:
    """Tests specific to InMemoryPatientStore."""

    def test_initial_records_and_len(self):
        store = InMemoryPatientStore([_record("a"), _record("b")])
        assert len(store) == 2

    def test_clear(self):
        store = InMemoryPatientStore([_record("a")])
        store.clear()
        assert len(store) == 0


class TestSqlStore:
    """Tests specific to SqlPatientStore and the audit sink."""

    def test_count_and_ping(self, sqlite_engine):
        store = SqlPatientStore(sqlite_engine)
        store.put(_record("a"), expected_version=0)
        assert store.count() == 1
        assert ping(sqlite_engine) is True

    def test_timestamps_come_back_as_utc(self, sqlite_engine):
        store = SqlPatientStore(sqlite_engine)
        store.put(_record("a"), expected_version=0)
        assert store.get("a").created_at.tzinfo is not None

    def test_audit_sink_writes_row(self, sqlite_engine):
        # Arrange
        from sqlalchemy import select
        from sqlalchemy.orm import Session

        from fhir_patient_service.store.sql import AuditLogRow

        sink = SqlAuditLogSink(sqlite_engine)

        # Act
        sink.write(AuditEntry(
            action="read", resource_type="Patient", resource_id="a",
            details={"status": "success"},
        ))

        # Assert
        with Session(sqlite_engine) as session:
            rows = session.scalars(select(AuditLogRow)).all()
        assert len(rows) == 1
        assert rows[0].action == "read"
        assert rows[0].actor_id == "anonymous"
        assert rows[0].details == {"status": "success"}
