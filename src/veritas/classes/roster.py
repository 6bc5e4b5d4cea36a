"""Per-side lineup capacity (roster settings) for a matchup."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from veritas.classes.category import CATEGORY_ORDER, validate_category

# `def` is a keyword, so DEF lives in `defense`.
_FIELD_BY_CATEGORY = {
    "QB": "qb",
    "RB": "rb",
    "WR": "wr",
    "TE": "te",
    "FLEX": "flex",
    "SUPERFLEX": "superflex",
    "K": "k",
    "DEF": "defense",
}


def _check_count(category: str, count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValueError(f"Slot count for {category} must be an integer, got {count!r}")
    if count < 0:
        raise ValueError(f"Slot count for {category} cannot be negative ({count})")
    return count


@dataclass(frozen=True)
class RosterSettings:
    """Slot count per category. Unknown categories and bad counts fail at construction."""

    qb: int = 1
    rb: int = 2
    wr: int = 2
    te: int = 1
    flex: int = 1
    superflex: int = 0
    k: int = 1
    defense: int = 1

    def __post_init__(self) -> None:
        for category, field_name in _FIELD_BY_CATEGORY.items():
            _check_count(category, getattr(self, field_name))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RosterSettings":
        """Build from a {category: count} mapping; missing categories keep their defaults."""
        if not data:
            return cls()
        values = {}
        for category, count in data.items():
            validate_category(category)
            values[_FIELD_BY_CATEGORY[category]] = _check_count(category, count)
        return cls(**values)

    def get(self, category: str) -> int:
        validate_category(category)
        return getattr(self, _FIELD_BY_CATEGORY[category])

    def with_count(self, category: str, count: int) -> "RosterSettings":
        validate_category(category)
        return replace(self, **{_FIELD_BY_CATEGORY[category]: _check_count(category, count)})

    def minimum(self, other: "RosterSettings") -> "RosterSettings":
        """Element-wise minimum; neither side can push a category above the other's request."""
        return RosterSettings(
            **{f.name: min(getattr(self, f.name), getattr(other, f.name)) for f in fields(self)}
        )

    def total_slots(self) -> int:
        return sum(self.get(category) for category in CATEGORY_ORDER)

    def to_dict(self) -> dict[str, int]:
        return {category: self.get(category) for category in CATEGORY_ORDER}
