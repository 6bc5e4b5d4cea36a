from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

SLEEPER_BASE_URL = "https://api.sleeper.app/v1"
SCHEDULE_BASE_URL = "https://api.sleeper.app/schedule/nfl"


@dataclass(frozen=True)
class NFLState:
    season: str
    week: int
    season_type: str = "regular"

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "NFLState":
        return cls(
            season=str(data["season"]),
            week=int(data["week"]),
            season_type=str(data.get("season_type") or "regular"),
        )


@dataclass(frozen=True)
class Game:
    week: int
    start_time: datetime.datetime
    status: str = ""
    home: str = ""
    away: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Game":
        return cls(
            week=int(data.get("week") or 0),
            start_time=parse_start_time(data["start_time"]),
            status=str(data.get("status") or "").lower(),
            home=str(data.get("home") or ""),
            away=str(data.get("away") or ""),
        )


def parse_start_time(value: Any) -> datetime.datetime:
    """Parse a schedule start time (epoch milliseconds or ISO-8601) into an aware UTC datetime."""
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
        return datetime.datetime.fromtimestamp(float(value) / 1000, tz=datetime.timezone.utc)
    parsed = datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def stat_line_points(stat_line: dict[str, Any]) -> dict[str, float]:
    """Convert a Sleeper weekly stat line into points per scoring format."""
    return {
        "std": float(stat_line.get("pts_std") or 0),
        "ppr": float(stat_line.get("pts_ppr") or 0),
        "half": float(stat_line.get("pts_half_ppr") or 0),
    }


class SleeperClient:
    """
    Thin HTTP client for the Sleeper NFL endpoints. Owns a requests.Session
    unless one is provided.
    """

    def __init__(
        self,
        *,
        timeout_sec: int = 15,
        base_url: str = SLEEPER_BASE_URL,
        schedule_base_url: str = SCHEDULE_BASE_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout_sec = timeout_sec
        self.base_url = base_url.rstrip("/")
        self.schedule_base_url = schedule_base_url.rstrip("/")
        self.logger = logging.getLogger(self.__class__.__name__)

    def _get_json(self, url: str, timeout: Optional[int] = None) -> Any:
        self.logger.debug("GET %s", url)
        r = self.session.get(url, timeout=timeout or self.timeout_sec)
        r.raise_for_status()
        return r.json()

    def get_state(self) -> NFLState:
        """
        Fetch the current season, week and season type.
        """
        return NFLState.from_json(self._get_json(f"{self.base_url}/state/nfl"))

    def get_schedule(self, season_type: str, season: str) -> list[Game]:
        """
        Fetch the full schedule for a season ('post' maps to the postseason schedule).
        """
        kind = "postseason" if season_type == "post" else "regular"
        games = self._get_json(f"{self.schedule_base_url}/{kind}/{season}") or []
        return [Game.from_json(game) for game in games]

    def get_week_games(self, state: NFLState) -> list[Game]:
        return [game for game in self.get_schedule(state.season_type, state.season) if game.week == state.week]

    def get_weekly_stats(self, season: str, season_type: str, week: int) -> dict[str, dict[str, float]]:
        """
        Fetch weekly stat lines as {player_id: {std, ppr, half}}.
        """
        kind = "post" if season_type == "post" else "regular"
        stats = self._get_json(f"{self.base_url}/stats/nfl/{kind}/{season}/{week}") or {}
        return {player_id: stat_line_points(line or {}) for player_id, line in stats.items()}

    def get_players(self) -> dict[str, dict[str, Any]]:
        """
        Fetch the full Sleeper NFL player dictionary keyed by player id.
        """
        return self._get_json(f"{self.base_url}/players/nfl") or {}

    def get_projections(self, url: str) -> dict[str, dict[str, float]]:
        """
        Fetch third-party projections as {lower-case name: {std, ppr, half}}.
        """
        data = self._get_json(url)
        if not data.get("success"):
            raise ValueError(data.get("error") or "projections API reported failure")
        return {
            str(item["name"]).strip().lower(): dict(item.get("projections") or {})
            for item in data.get("projections", [])
            if item.get("name")
        }
