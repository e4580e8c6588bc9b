"""
matching package exports.
"""

from matching.matcher import MATCH_STRATEGIES, matches_value
from matching.normalizer import edit_distance, normalize_text, remove_diacritics, stringify
from matching.synonyms import (
    BUILTIN_SYNONYMS,
    COMPANY_SYNONYMS,
    COUNTRY_SYNONYMS,
    SynonymTable,
    build_synonym_table,
    same_synonym_group,
)

__all__ = [
    "BUILTIN_SYNONYMS",
    "COMPANY_SYNONYMS",
    "COUNTRY_SYNONYMS",
    "MATCH_STRATEGIES",
    "SynonymTable",
    "build_synonym_table",
    "edit_distance",
    "matches_value",
    "normalize_text",
    "remove_diacritics",
    "same_synonym_group",
    "stringify",
]
