"""
tests/test_data_validator.py

Pytest unit tests for the heuristic data validator.

The heuristics are soft signals; these tests pin their documented
behaviour and check that unusual input degrades to "no signal" rather
than raising.
"""

from __future__ import annotations

import pytest

from app.config import ValidationSettings
from session.models import QueryResult
from session.validator import (
    DataValidator,
    calculate_validation_confidence,
    extract_record_count,
    find_contradictions,
    has_inconsistent_date_formats,
)


@pytest.fixture()
def validator() -> DataValidator:
    return DataValidator(ValidationSettings(min_record_threshold=10, suspicious_pattern_threshold=0.6))


def _result(answer: str, confidence: str = "medium") -> QueryResult:
    return QueryResult(answer=answer, confidence=confidence)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Text heuristics
# ---------------------------------------------------------------------------


class TestHeuristics:
    @pytest.mark.parametrize(
        "answer,expected",
        [
            ("We found 42 records matching", 42),
            ("There are 7 transactions in March", 7),
            ("Search found 12 importers", 12),
            ("A total of 3 shipments", 3),
            ("short", 0),
            ("", 0),
            ("x" * 60, 1),
            ("y" * 1200, 12),
        ],
    )
    def test_extract_record_count(self, answer: str, expected: int) -> None:
        assert extract_record_count(answer) == expected

    def test_confidence_is_clamped(self) -> None:
        assert calculate_validation_confidence(50, "high", 0) == 1.0
        assert calculate_validation_confidence(0, "low", 20) == 0.0

    def test_confidence_components(self) -> None:
        assert calculate_validation_confidence(5, "medium", 1) == pytest.approx(0.7)

    def test_date_format_mix(self) -> None:
        assert has_inconsistent_date_formats("from 2024-01-15 to 15/02/2024") is True
        assert has_inconsistent_date_formats("from 2024-01-15 to 2024-02-15") is False

    def test_contradictions(self) -> None:
        found = find_contradictions("Imports saw an increase and a decrease")
        assert len(found) == 1
        assert find_contradictions("") == []


# ---------------------------------------------------------------------------
# DataValidator
# ---------------------------------------------------------------------------


class TestDataQuality:
    def test_known_record_count_overrides_text(self, validator: DataValidator) -> None:
        result = _result("Found 2 records with totalValueUSD and importCompanyName listed in detail", "high")
        validation = validator.validate_data_quality(result, ["totalValueUSD"], record_count=25)
        assert validation.record_count == 25
        assert validation.is_sufficient is True
        assert validation.issues == ()

    def test_empty_result(self, validator: DataValidator) -> None:
        validation = validator.validate_data_quality(_result("No data"), record_count=0)
        assert validation.is_sufficient is False
        assert "No data found for the specified criteria" in validation.issues

    def test_missing_fields(self, validator: DataValidator) -> None:
        validation = validator.validate_data_quality(
            _result("Found 12 records, all from Vietnam, totalling a lot"),
            ["totalValueUSD", "importCountry"],
        )
        assert validation.missing_fields == ("totalValueUSD", "importCountry")
        assert validation.is_complete is False

    def test_error_wording_invalidates(self, validator: DataValidator) -> None:
        validation = validator.validate_data_quality(_result("Query failed: unable to read 15 records"))
        assert validation.is_valid is False
        assert validation.is_sufficient is False

    def test_insufficiency_below_threshold(self, validator: DataValidator) -> None:
        validation = validator.detect_data_insufficiency(_result("Found 3 records"), "detail")
        assert validation.is_sufficient is False
        assert any("Only 3 records" in issue for issue in validation.issues)

    def test_aggregation_without_markers(self, validator: DataValidator) -> None:
        validation = validator.detect_data_insufficiency(
            _result("Found 40 records. XYZ Ltd leads the list by a wide margin this quarter.", "high"),
            "aggregation",
            has_aggregations=True,
        )
        assert "Aggregation request did not return aggregated data" in validation.issues

    def test_suspicious_patterns_floor(self, validator: DataValidator) -> None:
        result = _result("Found 2 records: $0 and $1,000,000 on 2024-01-01 and 01/02/2024", "low")
        validation = validator.detect_suspicious_patterns(result)
        assert len(validation.issues) == 3
        assert validation.confidence == pytest.approx(0.6)

    def test_record_count_swing(self, validator: DataValidator) -> None:
        previous = [_result("Found 500 records"), _result("Found 700 records")]
        validation = validator.detect_suspicious_patterns(_result("Found 5 records"), previous)
        assert any("dramatically different" in issue for issue in validation.issues)

    def test_missing_fields_checks_citations(self, validator: DataValidator) -> None:
        result = QueryResult(answer="Found 12 records", citations=("importCountry: US",), confidence="medium")
        validation = validator.detect_missing_fields(result, ["importCountry", "hsCode"])
        assert validation.missing_fields == ("hsCode",)

    def test_validity_expected_patterns(self, validator: DataValidator) -> None:
        validation = validator.analyze_data_validity(_result("Found 12 records in 2024"), ["2024", "USD"])
        assert validation.issues == ("Expected pattern not found: USD",)

    @pytest.mark.parametrize("answer", ["", " ", "\n\n", "💥" * 3])
    def test_degrades_without_raising(self, validator: DataValidator, answer: str) -> None:
        result = _result(answer)
        for validation in (
            validator.validate_data_quality(result),
            validator.detect_data_insufficiency(result, "detail"),
            validator.detect_suspicious_patterns(result, [result]),
            validator.detect_missing_fields(result, ["a"]),
            validator.analyze_data_validity(result),
        ):
            assert 0.0 <= validation.confidence <= 1.0
            assert validation.record_count == 0
