"""
session/validator.py

Best-effort heuristic quality checks for a round's answer text.

These heuristics mine free text with regular expressions (record counts,
date formats, antonym pairs, round monetary values). Their precision and
recall are unmeasured: the output is a soft confidence score for the
iteration controller, never a verdict on the data itself. Every check
degrades to "no signal" on empty or unusual input instead of raising.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Final

from app.config import ValidationSettings, get_validation_settings
from session.models import Confidence, DataValidationResult, QueryResult

_RECORD_COUNT_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"(\d+)\s+(?:records?|transactions?|results?|entries|items)", re.IGNORECASE),
    re.compile(r"found\s+(\d+)", re.IGNORECASE),
    re.compile(r"total\s+of\s+(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s+matches?", re.IGNORECASE),
)

_DATE_FORMAT_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(r"\d{2}/\d{2}/\d{4}"),
    re.compile(r"\d{2}-\d{2}-\d{4}"),
)

_ERROR_INDICATORS: Final[re.Pattern[str]] = re.compile(r"error|failed|unable|cannot|invalid", re.IGNORECASE)
_TOTAL_AMOUNT: Final[re.Pattern[str]] = re.compile(r"total.*?(\$[\d,]+)", re.IGNORECASE)
_ROUND_AMOUNTS: Final[re.Pattern[str]] = re.compile(r"\$1,000,000|\$100,000|\$10,000,000")

_CONTRADICTORY_PHRASES: Final[tuple[tuple[str, str], ...]] = (
    ("increase", "decrease"),
    ("rising", "falling"),
    ("higher", "lower"),
    ("more than", "less than"),
)

_AGGREGATION_MARKERS: Final[tuple[str, ...]] = ("aggregation", "total", "count", "average")

_QUERY_CONFIDENCE_BONUS: Final[dict[str, float]] = {"high": 0.3, "medium": 0.2, "low": 0.1}


# ---------------------------------------------------------------------------
# Text heuristics
# ---------------------------------------------------------------------------


def extract_record_count(answer: str) -> int:
    """
    Guess how many records an answer describes.

    Tries "N records"-style phrases first, then falls back on answer length:
    under 50 chars or an explicit "no data"/"no results" -> 0, over 500
    chars -> ``max(10, len // 100)``, otherwise 1.
    """

    for pattern in _RECORD_COUNT_PATTERNS:
        match = pattern.search(answer)
        if match:
            return int(match.group(1))

    if len(answer) < 50:
        return 0
    if "no data" in answer or "no results" in answer:
        return 0
    if len(answer) > 500:
        return max(10, len(answer) // 100)
    return 1


def calculate_validation_confidence(
    record_count: int,
    query_confidence: Confidence | str,
    issue_count: int,
    *,
    min_record_threshold: int = 10,
) -> float:
    confidence = 0.5
    if record_count >= min_record_threshold:
        confidence += 0.2
    elif record_count > 0:
        confidence += 0.1

    confidence += _QUERY_CONFIDENCE_BONUS.get(query_confidence, 0.0)
    confidence -= issue_count * 0.1
    return max(0.0, min(1.0, confidence))


def has_inconsistent_date_formats(answer: str) -> bool:
    """True when more than one date notation appears in *answer*."""

    active = [pattern for pattern in _DATE_FORMAT_PATTERNS if pattern.search(answer)]
    return len(active) > 1


def find_contradictions(answer: str) -> list[str]:
    contradictions: list[str] = []

    amounts = [match.group(1) for match in _TOTAL_AMOUNT.finditer(answer)]
    if len(amounts) > 1 and len(set(amounts)) != len(amounts):
        contradictions.append("Found conflicting total amounts in the same response")

    lowered = answer.lower()
    for first, second in _CONTRADICTORY_PHRASES:
        if first in lowered and second in lowered:
            contradictions.append(f'Contains both "{first}" and "{second}" which may be contradictory')
    return contradictions


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class DataValidator:
    """
    Heuristic assessments of a :class:`QueryResult`.

    Each method accepts an optional ``record_count``. When the caller knows
    the true number of records behind the answer it should pass it; it then
    replaces the count mined from the answer text.
    """

    def __init__(self, settings: ValidationSettings | None = None) -> None:
        self._settings = settings or get_validation_settings()

    @property
    def settings(self) -> ValidationSettings:
        return self._settings

    def _record_count(self, result: QueryResult, record_count: int | None) -> int:
        if record_count is not None:
            return max(0, int(record_count))
        return extract_record_count(result.answer)

    def _confidence(self, record_count: int, result: QueryResult, issue_count: int) -> float:
        return calculate_validation_confidence(
            record_count,
            result.confidence,
            issue_count,
            min_record_threshold=self._settings.min_record_threshold,
        )

    def detect_data_insufficiency(
        self,
        result: QueryResult,
        intent_type: str,
        *,
        has_aggregations: bool = False,
        record_count: int | None = None,
    ) -> DataValidationResult:
        """
        Judge whether enough data came back to answer the question.
        """

        issues: list[str] = []
        suggestions: list[str] = []
        count = self._record_count(result, record_count)

        has_enough_records = count >= self._settings.min_record_threshold
        if not has_enough_records:
            issues.append(f"Only {count} records found, may be insufficient for comprehensive analysis")
            suggestions.append("Consider broadening filter criteria or adjusting date ranges")

        if intent_type == "aggregation" and has_aggregations:
            if not any(marker in result.answer for marker in _AGGREGATION_MARKERS):
                issues.append("Aggregation request did not return aggregated data")
                suggestions.append("Verify aggregation fields and operations are valid")

        if result.confidence != "high":
            issues.append(f"Query confidence is {result.confidence}, may indicate data quality issues")
            suggestions.append("Consider refining filters or requesting different data perspectives")

        is_sufficient = (
            has_enough_records
            and (intent_type != "aggregation" or len(result.answer) > 50)
            and len(issues) < 2
        )
        return DataValidationResult(
            is_sufficient=is_sufficient,
            is_complete=True,
            is_valid=not issues,
            record_count=count,
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            confidence=self._confidence(count, result, len(issues)),
        )

    def validate_data_quality(
        self,
        result: QueryResult,
        expected_fields: Sequence[str] = (),
        *,
        record_count: int | None = None,
    ) -> DataValidationResult:
        """
        Check an answer for emptiness, missing fields, brevity and error wording.
        """

        issues: list[str] = []
        suggestions: list[str] = []
        count = self._record_count(result, record_count)
        answer = result.answer

        if count == 0:
            issues.append("No data found for the specified criteria")
            suggestions.append("Consider broadening search criteria or checking data availability")
        elif count < self._settings.min_record_threshold:
            issues.append(f"Limited data found ({count} records)")
            suggestions.append("Consider expanding filters or date ranges for more comprehensive analysis")

        lowered = answer.lower()
        missing = [name for name in expected_fields if name.lower() not in lowered]
        if missing:
            issues.append(f"Missing expected fields: {', '.join(missing)}")
            suggestions.append("Request data with specific field requirements or modify query intent")

        if len(answer) < 20:
            issues.append("Answer is very brief, may indicate insufficient data processing")
            suggestions.append("Request more detailed analysis or additional data perspectives")

        has_error_indicators = bool(_ERROR_INDICATORS.search(answer))
        if has_error_indicators:
            issues.append("Response indicates potential processing errors")
            suggestions.append("Verify query intent structure and try alternative approaches")

        is_valid = not has_error_indicators and len(issues) < 3
        return DataValidationResult(
            is_sufficient=count > 0 and is_valid and len(answer) > 20,
            is_complete=not missing,
            is_valid=is_valid,
            record_count=count,
            missing_fields=tuple(missing),
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            confidence=self._confidence(count, result, len(issues)),
        )

    def detect_suspicious_patterns(
        self,
        result: QueryResult,
        previous_results: Sequence[QueryResult] = (),
        *,
        record_count: int | None = None,
    ) -> DataValidationResult:
        """
        Flag zero prices, round amounts, record-count swings and mixed date formats.

        Confidence never drops below the suspicious-pattern floor.
        """

        issues: list[str] = []
        suggestions: list[str] = []
        count = self._record_count(result, record_count)
        answer = result.answer

        if "$0" in answer or "price: 0" in answer:
            issues.append("Found zero-value prices, which may indicate data quality issues")
            suggestions.append("Verify data integrity and consider filtering out zero-value transactions")

        if _ROUND_AMOUNTS.search(answer):
            issues.append("Found suspiciously round monetary values")
            suggestions.append("Verify if these are actual transaction values or aggregated estimates")

        if previous_results:
            previous_counts = [extract_record_count(previous.answer) for previous in previous_results]
            average_previous = sum(previous_counts) / len(previous_counts)
            if count > 0 and average_previous > 0:
                ratio = count / average_previous
                if ratio > 10 or ratio < 0.1:
                    issues.append(
                        f"Record count ({count}) dramatically different from previous queries "
                        f"(avg: {round(average_previous)})"
                    )
                    suggestions.append("Verify query filters and check for data consistency")

        if has_inconsistent_date_formats(answer):
            issues.append("Detected inconsistent data formats in the response")
            suggestions.append("Consider standardizing data format requirements in query intent")

        confidence = max(
            self._settings.suspicious_pattern_threshold,
            self._confidence(count, result, len(issues)),
        )
        return DataValidationResult(
            is_sufficient=not issues and count > 0,
            is_complete=True,
            is_valid=not issues,
            record_count=count,
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            confidence=confidence,
        )

    def detect_missing_fields(
        self,
        result: QueryResult,
        required_fields: Sequence[str],
        *,
        record_count: int | None = None,
    ) -> DataValidationResult:
        """
        Report required fields mentioned neither in the answer nor in its citations.
        """

        answer = result.answer.lower()
        citations = [citation.lower() for citation in result.citations]
        missing = [
            name
            for name in required_fields
            if name.lower() not in answer and not any(name.lower() in citation for citation in citations)
        ]

        issues: list[str] = []
        suggestions: list[str] = []
        if missing:
            issues.append(f"Missing required fields: {', '.join(missing)}")
            suggestions.append(f"Request data specifically including: {', '.join(missing)}")

        count = self._record_count(result, record_count)
        return DataValidationResult(
            is_sufficient=not missing and count > 0,
            is_complete=not missing,
            is_valid=True,
            record_count=count,
            missing_fields=tuple(missing),
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            confidence=self._confidence(count, result, len(issues)),
        )

    def analyze_data_validity(
        self,
        result: QueryResult,
        expected_patterns: Sequence[str] = (),
        *,
        record_count: int | None = None,
    ) -> DataValidationResult:
        """
        Look for contradictory statements and absent expected phrases.
        """

        issues = find_contradictions(result.answer)
        suggestions: list[str] = []
        if issues:
            suggestions.append("Verify data sources and consider requesting clarifying data")

        for pattern in expected_patterns:
            if pattern not in result.answer:
                issues.append(f"Expected pattern not found: {pattern}")
                suggestions.append(f"Request data that specifically includes {pattern}")

        count = self._record_count(result, record_count)
        return DataValidationResult(
            is_sufficient=not issues and count > 0,
            is_complete=True,
            is_valid=not issues,
            record_count=count,
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            confidence=self._confidence(count, result, len(issues)),
        )
