"""SQLAlchemy-backed resource store.

Tables:
    patients   one row per PatientRecord
    audit_log  append-only operation log written by SqlAuditLogSink

Search filters are translated to SQL. Text filters use LIKE-based
substring matching on lower-cased columns; identifier matching is a plain
LIKE substring, which is case-sensitive on PostgreSQL and case-insensitive
for ASCII on SQLite.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import JSON, DateTime, Engine, Index, Integer, String, create_engine, func, or_, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from fhir_patient_service.logging_audit import AuditEntry, get_logger
from fhir_patient_service.models.patient import AdministrativeGender, PatientRecord
from fhir_patient_service.search.params import SearchParameters
from fhir_patient_service.search.predicates import normalize_postal_code, phone_digits
from fhir_patient_service.utils.exceptions import StoreError, VersionConflictError


logger = get_logger(__name__)

# Separators stripped from stored phone numbers before digit matching
PHONE_SEPARATORS = (" ", "-", "(", ")", ".", "+")


class Base(DeclarativeBase):
    pass


class PatientRow(Base):
    """ORM mapping for the ``patients`` table.

    ``birth_date`` is text because FHIR allows partial dates (YYYY, YYYY-MM).
    """

    __tablename__ = "patients"
    __table_args__ = (
        Index("idx_patients_family_name", "family_name"),
        Index("idx_patients_given_name", "given_name"),
        Index("idx_patients_birth_date", "birth_date"),
        Index("idx_patients_health_card", "health_card_number"),
        Index("idx_patients_created_at", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    health_card_number: Mapped[Optional[str]] = mapped_column(String(50))
    family_name: Mapped[str] = mapped_column(String(100), nullable=False)
    given_name: Mapped[Optional[str]] = mapped_column(String(100))
    gender: Mapped[Optional[str]] = mapped_column(String(20))
    birth_date: Mapped[Optional[str]] = mapped_column(String(10))
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    address_line: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    province: Mapped[Optional[str]] = mapped_column(String(10))
    postal_code: Mapped[Optional[str]] = mapped_column(String(10))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class AuditLogRow(Base):
    """ORM mapping for the ``audit_log`` table."""

    __tablename__ = "audit_log"
    __table_args__ = (
        Index("idx_audit_log_resource", "resource_type", "resource_id"),
        Index("idx_audit_log_timestamp", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(255))
    actor_type: Mapped[Optional[str]] = mapped_column(String(50))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``.

    In-memory SQLite databases share a single connection so every session
    sees the same data. File-based SQLite databases get their parent
    directory created.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log every SQL statement

    Returns:
        SQLAlchemy Engine

    Raises:
        StoreError: If the URL is invalid or the driver is unavailable
    """
    try:
        url = make_url(database_url)
        if url.get_backend_name() != "sqlite":
            return create_engine(url, echo=echo, pool_pre_ping=True)

        if url.database in (None, "", ":memory:"):
            return create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    except (SQLAlchemyError, ValueError, ImportError) as e:
        raise StoreError(f"Failed to create database engine for {database_url}: {e}") from e


def init_schema(engine: Engine) -> None:
    """Create the ``patients`` and ``audit_log`` tables if missing."""
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to create database schema: {e}") from e
    logger.info(f"Database schema ready on {engine.url.render_as_string(hide_password=True)}")


def ping(engine: Engine) -> bool:
    """Check database connectivity.

    Returns:
        True if a trivial query succeeds, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(select(1))
        return True
    except SQLAlchemyError as e:
        logger.warning(f"Database ping failed: {e}")
        return False


class _SessionScope:
    """Session factory with commit/rollback handling."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        session = self._factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Database operation failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class SqlPatientStore(_SessionScope):
    """ResourceStore over the ``patients`` table.

    Results are ordered by ``(created_at, id)`` so pagination is stable.
    Compare-and-swap writes are single ``UPDATE ... WHERE id AND version``
    statements.

    Example:
        >>> engine = create_database_engine("sqlite://")
        >>> init_schema(engine)
        >>> store = SqlPatientStore(engine)
    """

    def get(self, resource_id: str) -> Optional[PatientRecord]:
        with self.session() as session:
            row = session.get(PatientRow, resource_id)
            return _row_to_record(row) if row is not None else None

    def put(self, record: PatientRecord, expected_version: Optional[int] = None) -> PatientRecord:
        if not record.id:
            raise ValueError("Cannot store a record without an id")

        values = _record_to_values(record)
        with self.session() as session:
            if expected_version is None:
                session.merge(PatientRow(**values))
            elif expected_version == 0:
                existing = session.get(PatientRow, record.id)
                if existing is not None:
                    raise VersionConflictError(record.id, 0, existing.version)
                session.add(PatientRow(**values))
                try:
                    session.flush()
                except IntegrityError as e:
                    raise VersionConflictError(record.id, 0, None) from e
            else:
                result = session.execute(
                    update(PatientRow)
                    .where(PatientRow.id == record.id, PatientRow.version == expected_version)
                    .values(**values)
                )
                if result.rowcount != 1:
                    actual = session.scalar(
                        select(PatientRow.version).where(PatientRow.id == record.id)
                    )
                    raise VersionConflictError(record.id, expected_version, actual)

        logger.debug(f"Stored Patient/{record.id} version {record.version}")
        return record.copy()

    def delete(self, resource_id: str) -> bool:
        with self.session() as session:
            row = session.get(PatientRow, resource_id)
            if row is None:
                return False
            session.delete(row)
        logger.debug(f"Deleted Patient/{resource_id}")
        return True

    def query(
        self, params: SearchParameters, offset: int, limit: int
    ) -> tuple[list[PatientRecord], int]:
        conditions = build_conditions(params)
        with self.session() as session:
            total = session.scalar(
                select(func.count()).select_from(PatientRow).where(*conditions)
            ) or 0
            if limit <= 0:
                return [], total
            rows = session.scalars(
                select(PatientRow)
                .where(*conditions)
                .order_by(PatientRow.created_at, PatientRow.id)
                .offset(max(offset, 0))
                .limit(limit)
            ).all()
            return [_row_to_record(row) for row in rows], total

    def count(self) -> int:
        """Number of stored records."""
        with self.session() as session:
            return session.scalar(select(func.count()).select_from(PatientRow)) or 0


class SqlAuditLogSink(_SessionScope):
    """AuditSink writing entries to the ``audit_log`` table."""

    def write(self, entry: AuditEntry) -> None:
        with self.session() as session:
            session.add(AuditLogRow(
                id=str(uuid.uuid4()),
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                action=entry.action,
                actor_id=entry.actor_id,
                actor_type=entry.actor_type,
                timestamp=entry.timestamp,
                details=entry.details or None,
            ))


def _lower_contains(column, value: str):
    return func.lower(column, type_=String).contains(value.lower(), autoescape=True)


def _strip_phone(column):
    expression = column
    for separator in PHONE_SEPARATORS:
        expression = func.replace(expression, separator, "", type_=String)
    return expression


def build_conditions(params: SearchParameters) -> list[Any]:
    """Translate search parameters into SQL WHERE conditions (ANDed)."""
    filters = params.filters
    conditions: list[Any] = []

    if "id" in filters:
        conditions.append(PatientRow.id == filters["id"])
    if "identifier" in filters:
        conditions.append(PatientRow.health_card_number.contains(filters["identifier"], autoescape=True))
    if "family" in filters:
        conditions.append(_lower_contains(PatientRow.family_name, filters["family"]))
    if "given" in filters:
        conditions.append(_lower_contains(PatientRow.given_name, filters["given"]))
    if "name" in filters:
        conditions.append(or_(
            _lower_contains(PatientRow.family_name, filters["name"]),
            _lower_contains(PatientRow.given_name, filters["name"]),
        ))
    if "birthdate" in filters:
        conditions.append(PatientRow.birth_date == filters["birthdate"])
    if "gender" in filters:
        conditions.append(PatientRow.gender == filters["gender"])
    if "phone" in filters:
        digits = phone_digits(filters["phone"])
        if digits:
            conditions.append(_strip_phone(PatientRow.phone).contains(digits, autoescape=True))
        else:
            conditions.append(PatientRow.phone.contains(filters["phone"], autoescape=True))
    if "email" in filters:
        conditions.append(_lower_contains(PatientRow.email, filters["email"]))
    if "address" in filters:
        conditions.append(or_(*(
            _lower_contains(column, filters["address"])
            for column in (PatientRow.address_line, PatientRow.city,
                           PatientRow.province, PatientRow.postal_code)
        )))
    if "address_city" in filters:
        conditions.append(_lower_contains(PatientRow.city, filters["address_city"]))
    if "address_state" in filters:
        conditions.append(PatientRow.province == filters["address_state"])
    if "address_postalcode" in filters:
        prefix = normalize_postal_code(filters["address_postalcode"])
        compact = func.upper(func.replace(PatientRow.postal_code, " ", "", type_=String), type_=String)
        conditions.append(compact.startswith(prefix, autoescape=True))

    return conditions


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite returns naive datetimes
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _record_to_values(record: PatientRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "health_card_number": record.health_card_number,
        "family_name": record.family_name,
        "given_name": record.given_name,
        "gender": record.gender.value if record.gender is not None else None,
        "birth_date": record.birth_date,
        "phone": record.phone,
        "email": record.email,
        "address_line": record.address_line,
        "city": record.city,
        "province": record.province,
        "postal_code": record.postal_code,
        "version": record.version,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def _row_to_record(row: PatientRow) -> PatientRecord:
    return PatientRecord(
        id=row.id,
        family_name=row.family_name,
        given_name=row.given_name,
        health_card_number=row.health_card_number,
        gender=AdministrativeGender(row.gender) if row.gender else None,
        birth_date=row.birth_date,
        phone=row.phone,
        email=row.email,
        address_line=row.address_line,
        city=row.city,
        province=row.province,
        postal_code=row.postal_code,
        version=row.version,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )
