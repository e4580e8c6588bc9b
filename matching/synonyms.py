"""
matching/synonyms.py

Synonym groups used to treat textual variants as equivalent while filtering.

The built-in table is immutable. Caller overrides are merged once into a
new :class:`SynonymTable`; an override whose group id already exists
replaces that group wholesale.

Membership is substring-tolerant in both directions: a value belongs to a
group when its normalized form equals, contains, or is contained by one of
the group's normalized variants. Very short variants therefore widen a
group considerably ("us" is contained in "australia"), so the built-in
table avoids bare two-letter codes other than US and VN.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from matching.normalizer import normalize_text

# ---------------------------------------------------------------------------
# Built-in groups
# ---------------------------------------------------------------------------

COUNTRY_SYNONYMS: Final[Mapping[str, tuple[str, ...]]] = MappingProxyType(
    {
        "united_states": (
            "United States",
            "United States of America",
            "USA",
            "US",
            "U.S.",
            "U.S.A.",
            "America",
            "Hoa Kỳ",
            "Mỹ",
        ),
        "vietnam": ("Vietnam", "Viet Nam", "Việt Nam", "VN"),
        "china": ("China", "People's Republic of China", "Trung Quốc"),
        "japan": ("Japan", "Nhật Bản"),
        "south_korea": ("South Korea", "Republic of Korea", "Korea", "Hàn Quốc"),
        "united_kingdom": ("United Kingdom", "Great Britain", "Britain", "U.K.", "Vương quốc Anh"),
        "germany": ("Germany", "Deutschland", "CHLB Đức"),
        "thailand": ("Thailand", "Thái Lan"),
        "taiwan": ("Taiwan", "Đài Loan"),
        "india": ("India", "Ấn Độ"),
        "france": ("France", "Cộng hòa Pháp"),
    }
)

COMPANY_SYNONYMS: Final[Mapping[str, tuple[str, ...]]] = MappingProxyType(
    {
        "cong_ty": ("Công ty", "Cong ty", "Cty", "Cty."),
        "company": ("Company", "Co.", "Comp."),
        "corporation": ("Corporation", "Corp.", "Corp"),
        "limited": ("Limited", "Ltd", "Ltd.", "TNHH", "Trách nhiệm hữu hạn"),
        "joint_stock": ("Joint Stock Company", "JSC", "Cổ phần"),
        "incorporated": ("Incorporated", "Inc."),
    }
)


def _normalize_variants(variants: Iterable[str]) -> frozenset[str]:
    normalized = (normalize_text(str(variant)) for variant in variants)
    return frozenset(variant for variant in normalized if variant)


def _variant_matches(normalized_value: str, variants: frozenset[str]) -> bool:
    return any(
        variant == normalized_value or variant in normalized_value or normalized_value in variant
        for variant in variants
    )


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SynonymTable:
    """
    Tagged lookup of group id -> normalized variant set.
    """

    groups: Mapping[str, frozenset[str]]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> "SynonymTable":
        return cls(
            groups=MappingProxyType(
                {str(group_id): _normalize_variants(variants) for group_id, variants in mapping.items()}
            )
        )

    def merged(self, overrides: Mapping[str, Iterable[str]] | None) -> "SynonymTable":
        """
        Return a new table with *overrides* merged over this one.
        """

        if not overrides:
            return self
        merged: dict[str, frozenset[str]] = dict(self.groups)
        for group_id, variants in overrides.items():
            if isinstance(variants, str):
                variants = (variants,)
            merged[str(group_id)] = _normalize_variants(variants)
        return SynonymTable(groups=MappingProxyType(merged))

    def groups_for(self, value: str) -> list[str]:
        """
        Return ids of every group *value* belongs to.
        """

        normalized = normalize_text(value)
        if not normalized:
            return []
        return [group_id for group_id, variants in self.groups.items() if _variant_matches(normalized, variants)]

    def same_group(self, first: str, second: str) -> bool:
        """
        True when both values normalize equal or share a synonym group.
        """

        normalized_first = normalize_text(first)
        normalized_second = normalize_text(second)
        if normalized_first == normalized_second:
            return True
        if not normalized_first or not normalized_second:
            return False

        for variants in self.groups.values():
            if _variant_matches(normalized_first, variants) and _variant_matches(normalized_second, variants):
                return True
        return False


BUILTIN_SYNONYMS: Final[SynonymTable] = SynonymTable.from_mapping({**COUNTRY_SYNONYMS, **COMPANY_SYNONYMS})


def build_synonym_table(overrides: Mapping[str, Iterable[str]] | None = None) -> SynonymTable:
    """
    Merge caller *overrides* over the built-in table.
    """

    return BUILTIN_SYNONYMS.merged(overrides)


def same_synonym_group(
    first: str,
    second: str,
    overrides: Mapping[str, Iterable[str]] | SynonymTable | None = None,
) -> bool:
    """
    Check whether two values are synonyms.

    Example: ``same_synonym_group("US", "United States") -> True``.
    """

    table = overrides if isinstance(overrides, SynonymTable) else build_synonym_table(overrides)
    return table.same_group(first, second)
