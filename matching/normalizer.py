"""
matching/normalizer.py

Text normalization primitives shared by filtering and synonym lookup.

All functions are pure and deterministic. Diacritic removal is opt-in:
it is lossy ("Mỹ" and "My" collapse) and ambiguous for short tokens.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Final

from rapidfuzz.distance import Levenshtein

_WHITESPACE_RUN: Final[re.Pattern[str]] = re.compile(r"\s+")

# Vietnamese base letters that NFKD does not decompose (đ) or that should
# collapse to their plain Latin base before the general accent pass.
VIETNAMESE_BASE_LETTERS: Final[dict[str, str]] = {
    "đ": "d",
    "Đ": "D",
    "ă": "a",
    "Ă": "A",
    "â": "a",
    "Â": "A",
    "ê": "e",
    "Ê": "E",
    "ô": "o",
    "Ô": "O",
    "ơ": "o",
    "Ơ": "O",
    "ư": "u",
    "Ư": "U",
}

_BASE_LETTER_TABLE: Final[dict[int, str]] = str.maketrans(VIETNAMESE_BASE_LETTERS)


def remove_diacritics(text: str) -> str:
    """
    Strip diacritics from *text*.

    Vietnamese-specific letters are mapped through a fixed table first,
    then every remaining combining mark is dropped after NFKD decomposition.

    Example: ``"điện tử" -> "dien tu"``, ``"Hà Nội" -> "Ha Noi"``.
    """

    mapped = text.translate(_BASE_LETTER_TABLE)
    decomposed = unicodedata.normalize("NFKD", mapped)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(
    text: str,
    *,
    case_sensitive: bool = False,
    trim_whitespace: bool = True,
    strip_diacritics: bool = False,
) -> str:
    """
    Normalize *text* for comparison.

    Args:
        text: Input text.
        case_sensitive: Keep original casing when True.
        trim_whitespace: Trim ends and collapse internal whitespace runs
            (spaces, tabs, newlines) to a single space.
        strip_diacritics: Strip diacritics (see :func:`remove_diacritics`).

    Returns:
        The normalized string.
    """

    normalized = text
    if trim_whitespace:
        normalized = _WHITESPACE_RUN.sub(" ", normalized.strip())
    if strip_diacritics:
        normalized = remove_diacritics(normalized)
    if not case_sensitive:
        normalized = normalized.lower()
    return normalized


def edit_distance(first: str, second: str) -> int:
    """
    Levenshtein distance between two strings (unit-cost insert/delete/substitute).

    Example: ``edit_distance("electonic", "electronic") == 1``.
    """

    return int(Levenshtein.distance(first, second))


def stringify(value: object) -> str:
    """
    Render a scalar record value as text for matching.

    Booleans render lowercase and integral floats drop their ``.0`` so
    ``True`` matches ``"true"`` and ``12345.0`` matches ``"12345"``.
    """

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
