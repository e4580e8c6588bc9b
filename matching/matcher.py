"""
matching/matcher.py

Single-value matching under a chosen strategy.
"""

from __future__ import annotations

from typing import Any, Final

from matching.normalizer import edit_distance, normalize_text, stringify

MATCH_STRATEGIES: Final[frozenset[str]] = frozenset({"exact", "contains", "startsWith", "fuzzy"})


def matches_value(
    field_value: Any,
    filter_value: Any,
    *,
    match_strategy: str = "contains",
    fuzzy_threshold: int = 2,
    case_sensitive: bool = False,
    strip_diacritics: bool = False,
) -> bool:
    """
    Decide whether *field_value* matches *filter_value*.

    Both sides are stringified and normalized with the same options before
    comparison. ``None`` on either side never matches. An unrecognized
    strategy never matches.
    """

    if field_value is None or filter_value is None:
        return False

    field_text = normalize_text(
        stringify(field_value),
        case_sensitive=case_sensitive,
        strip_diacritics=strip_diacritics,
    )
    filter_text = normalize_text(
        stringify(filter_value),
        case_sensitive=case_sensitive,
        strip_diacritics=strip_diacritics,
    )

    if match_strategy == "exact":
        return field_text == filter_text
    if match_strategy == "contains":
        return filter_text in field_text
    if match_strategy == "startsWith":
        return field_text.startswith(filter_text)
    if match_strategy == "fuzzy":
        if edit_distance(field_text, filter_text) <= fuzzy_threshold:
            return True
        return filter_text in field_text or field_text in filter_text
    return False
