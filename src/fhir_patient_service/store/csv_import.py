"""CSV import of patient records.

Reads flat patient demographics (one row per patient, columns named after
PatientRecord fields) with pandas and converts them to version-1 records
ready for ``seed_store``.
"""

import logging
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import pandas as pd

from fhir_patient_service.fhir.validation import BIRTH_DATE_PATTERN, RESOURCE_ID_PATTERN
from fhir_patient_service.models.patient import AdministrativeGender, PatientRecord
from fhir_patient_service.utils.exceptions import ResourceValidationError
from fhir_patient_service.utils.id_generator import generate_resource_id


logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["family_name"]

OPTIONAL_COLUMNS = [
    "id",
    "given_name",
    "health_card_number",
    "gender",
    "birth_date",
    "phone",
    "email",
    "address_line",
    "city",
    "province",
    "postal_code",
]


def load_patients_csv(
    file_path: Path,
    seed: Optional[int] = None,
    is_taken: Optional[Callable[[str], bool]] = None,
    now: Optional[datetime] = None,
) -> list[PatientRecord]:
    """Parse patient records from a CSV file.

    Every row is validated and all errors are reported together. Rows
    without an ``id`` get a generated one.

    Args:
        file_path: Path to CSV file (UTF-8, header row required)
        seed: Optional seed for deterministic id generation
        is_taken: Optional predicate for ids already used in the target store
        now: Creation timestamp for the first record (defaults to now, UTC)

    Returns:
        Records in file order, version 1, timestamps one millisecond apart

    Raises:
        FileNotFoundError: If the CSV file does not exist
        ResourceValidationError: If columns are missing or any row is invalid
        ValueError: If no unused id can be generated for a row
    """
    logger.info(f"Loading patient CSV from {file_path}")

    if not file_path.exists():
        raise FileNotFoundError(f"CSV file not found: {file_path}")

    try:
        df = pd.read_csv(file_path, encoding="utf-8", dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ResourceValidationError([
            f"Failed to read CSV file {file_path}. Ensure file is valid CSV with "
            f"UTF-8 encoding. Error: {e}"
        ]) from e

    missing_columns = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing_columns:
        raise ResourceValidationError([
            f"Missing required columns: {', '.join(missing_columns)}"
        ])

    unknown_columns = [
        col for col in df.columns if col not in REQUIRED_COLUMNS + OPTIONAL_COLUMNS
    ]
    if unknown_columns:
        logger.warning(
            f"CSV contains unknown columns that will be ignored: {', '.join(unknown_columns)}"
        )

    for column in OPTIONAL_COLUMNS:
        if column not in df.columns:
            df[column] = ""
    df = df.apply(lambda col: col.str.strip())

    errors = _validate_rows(df)
    if errors:
        raise ResourceValidationError(errors)

    used_ids = set(df.loc[df["id"] != "", "id"])

    def _taken(candidate: str) -> bool:
        return candidate in used_ids or (is_taken is not None and is_taken(candidate))

    rng = random.Random(seed) if seed is not None else None
    base = now or datetime.now(timezone.utc)
    records = []
    for position, (_, row) in enumerate(df.iterrows()):
        resource_id = row["id"]
        if not resource_id:
            resource_id = generate_resource_id(is_taken=_taken, rng=rng)
            used_ids.add(resource_id)

        timestamp = base + timedelta(milliseconds=position)
        records.append(PatientRecord(
            id=resource_id,
            family_name=row["family_name"],
            given_name=row["given_name"] or None,
            health_card_number=row["health_card_number"] or None,
            gender=AdministrativeGender(row["gender"].lower()) if row["gender"] else None,
            birth_date=row["birth_date"] or None,
            phone=row["phone"] or None,
            email=row["email"] or None,
            address_line=row["address_line"] or None,
            city=row["city"] or None,
            province=row["province"] or None,
            postal_code=row["postal_code"] or None,
            version=1,
            created_at=timestamp,
            updated_at=timestamp,
        ))

    logger.info(f"Parsed {len(records)} patient record(s) from {file_path}")
    return records


def _validate_rows(df: pd.DataFrame) -> list[str]:
    """Validate each row; returns ``Row N: ...`` messages (header is row 1)."""
    errors: list[str] = []
    seen_ids: set[str] = set()

    for position, (_, row) in enumerate(df.iterrows()):
        row_num = position + 2

        if not row["family_name"]:
            errors.append(f"Row {row_num}: Missing required field 'family_name'")

        gender = row["gender"].lower()
        if gender and gender not in AdministrativeGender.values():
            errors.append(
                f"Row {row_num}: Invalid gender '{row['gender']}'. "
                f"Must be one of: {', '.join(AdministrativeGender.values())}"
            )

        if row["birth_date"] and not BIRTH_DATE_PATTERN.match(row["birth_date"]):
            errors.append(
                f"Row {row_num}: Invalid birth_date '{row['birth_date']}'. "
                "Expected format: YYYY, YYYY-MM, or YYYY-MM-DD"
            )

        if row["id"]:
            if not RESOURCE_ID_PATTERN.match(row["id"]):
                errors.append(f"Row {row_num}: Invalid id '{row['id']}'")
            if row["id"] in seen_ids:
                errors.append(f"Row {row_num}: Duplicate id '{row['id']}'")
            seen_ids.add(row["id"])

    return errors
