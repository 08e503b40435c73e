"""Unit tests for resource id generation."""

import random
import uuid
from unittest.mock import patch

import pytest

from fhir_patient_service.utils.id_generator import (
    MAX_GENERATION_ATTEMPTS,
    generate_resource_id,
)
from fhir_patient_service.fhir.validation import RESOURCE_ID_PATTERN


class TestGenerateResourceId:
    """Test cases for generate_resource_id."""

    def test_generates_valid_uuid(self):
        # Act
        resource_id = generate_resource_id()

        # Assert
        assert uuid.UUID(resource_id).version == 4
        assert RESOURCE_ID_PATTERN.match(resource_id)

    def test_ids_are_unique(self):
        ids = {generate_resource_id() for _ in range(100)}
        assert len(ids) == 100

    def test_seed_is_deterministic(self):
        assert generate_resource_id(seed=42) == generate_resource_id(seed=42)
        assert generate_resource_id(seed=42) != generate_resource_id(seed=43)

    def test_shared_rng_draws_distinct_ids(self):
        # Arrange
        rng = random.Random(42)

        # Act
        ids = [generate_resource_id(rng=rng) for _ in range(MAX_GENERATION_ATTEMPTS + 1)]

        # Assert
        assert len(set(ids)) == len(ids)
        assert ids[0] == generate_resource_id(seed=42)

    def test_shared_rng_sequence_is_reproducible(self):
        first = random.Random(5)
        second = random.Random(5)
        assert [generate_resource_id(rng=first) for _ in range(3)] == [
            generate_resource_id(rng=second) for _ in range(3)
        ]

    def test_taken_ids_skipped(self):
        # Arrange
        taken = {generate_resource_id(seed=7)}

        # Act
        resource_id = generate_resource_id(is_taken=taken.__contains__, seed=7)

        # Assert
        assert resource_id not in taken

    def test_gives_up_after_max_attempts(self):
        with patch("fhir_patient_service.utils.id_generator.logger"):
            with pytest.raises(ValueError, match="Unable to generate unique resource id"):
                generate_resource_id(is_taken=lambda candidate: True)
        assert MAX_GENERATION_ATTEMPTS == 1000
