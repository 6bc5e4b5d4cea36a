"""Create a Player object to represent an NFL player record."""

from __future__ import annotations

from dataclasses import dataclass, field

from veritas.classes.category import format_key

EMPTY_POINTS = {"std": 0.0, "ppr": 0.0, "half": 0.0}


@dataclass
class Player:
    """An NFL player with projections and the latest weekly stat line."""

    id: str
    position: str
    first_name: str = ""
    last_name: str = ""
    team: str = "FA"
    active: bool = True
    projections: dict[str, float] = field(default_factory=dict)
    current_week_stats: dict[str, float] = field(default_factory=dict)
    stats_week: int | None = None

    @property
    def full_name(self) -> str:
        if self.position == "DEF":
            return self.first_name
        return f"{self.first_name} {self.last_name}".strip()

    def projected(self, scoring_type: str) -> float:
        return float(self.projections.get(format_key(scoring_type)) or 0.0)

    def live_points(self, scoring_type: str, current_week: int | None) -> float:
        """Current-week points, or zero when the stat line belongs to another week."""
        if current_week is None or self.stats_week != current_week:
            return 0.0
        return float(self.current_week_stats.get(format_key(scoring_type)) or 0.0)

    def __str__(self) -> str:
        return "[Player] {} {} ({}) proj: {} week: {}".format(
            self.position, self.full_name, self.team, self.projections, self.stats_week
        )
