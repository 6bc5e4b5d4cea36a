"""Lineup categories, position eligibility, and scoring formats."""

from __future__ import annotations

# Lineup order. Categories that draw from an earlier category's positions
# (FLEX, SUPERFLEX) must come after them so the base slots fill first.
CATEGORY_ORDER: tuple[str, ...] = ("QB", "RB", "WR", "TE", "FLEX", "SUPERFLEX", "K", "DEF")

POSITIONS: tuple[str, ...] = ("QB", "RB", "WR", "TE", "K", "DEF")

ELIGIBLE_POSITIONS: dict[str, tuple[str, ...]] = {
    "FLEX": ("RB", "WR", "TE"),
    "SUPERFLEX": ("QB", "RB", "WR", "TE"),
}

SCORING_FORMATS: tuple[str, ...] = ("STD", "PPR", "HALF")


def validate_category(category: str) -> str:
    if category not in CATEGORY_ORDER:
        raise ValueError(f"Unknown category '{category}'")
    return category


def eligible_positions(category: str) -> tuple[str, ...]:
    """Return the player positions that may fill a category's slots."""
    validate_category(category)
    return ELIGIBLE_POSITIONS.get(category, (category,))


def format_key(scoring_type: str) -> str:
    """Return the projection/stat map key ('std', 'ppr', 'half') for a scoring format."""
    normalized = str(scoring_type).strip().upper()
    if normalized not in SCORING_FORMATS:
        raise ValueError(f"Unknown scoring format '{scoring_type}'")
    return normalized.lower()
