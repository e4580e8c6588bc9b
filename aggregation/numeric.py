"""
aggregation/numeric.py

Permissive numeric coercion for record values.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

import numpy as np


def is_number(value: Any) -> bool:
    """
    True for real numeric scalars; booleans are not numbers here.
    """

    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float, np.integer, np.floating))


def coerce_number(value: Any) -> float | None:
    """
    Parse *value* as a finite float, or return None.

    Accepts numbers, booleans (1.0 / 0.0) and numeric strings with
    surrounding whitespace, thousands separators and a leading ``$``.

    Example: ``" $1,250.50 " -> 1250.5``, ``"n/a" -> None``.
    """

    if value is None:
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    text = value.strip().replace(",", "")
    if text.startswith("$"):
        text = text[1:].strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def numeric_column(records: Iterable[Mapping[str, Any]], field: str) -> np.ndarray:
    """
    Extract *field* from every record as a float64 array.

    Values that cannot be coerced become ``np.nan``.
    """

    values = [coerce_number(record.get(field)) for record in records]
    return np.array([np.nan if value is None else value for value in values], dtype=np.float64)
