"""Head-to-head matchup record and its lifecycle transitions.

Status moves pending -> active -> final. Either side may edit its own roster
settings or confirm; the matchup becomes active only once both sides have
confirmed, and any edit reopens it. Transitions are pure and return a new
Matchup.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from veritas.classes.roster import RosterSettings

PENDING = "pending"
ACTIVE = "active"
FINAL = "final"
STATUSES = (PENDING, ACTIVE, FINAL)


class MatchupStateError(ValueError):
    """Raised for transitions the matchup's current state does not allow."""


@dataclass(frozen=True)
class Matchup:
    id: int | None
    user1_id: str
    user2_id: str
    scoring_type: str = "STD"
    status: str = PENDING
    user1_confirmed: bool = False
    user2_confirmed: bool = False
    user1_settings: RosterSettings = field(default_factory=RosterSettings)
    user2_settings: RosterSettings = field(default_factory=RosterSettings)
    user1_score: float | None = None
    user2_score: float | None = None
    winner_id: str | None = None

    def __post_init__(self) -> None:
        if self.status not in STATUSES:
            raise MatchupStateError(f"Unknown matchup status '{self.status}'")

    def side_of(self, user_id: str) -> int:
        if user_id == self.user1_id:
            return 1
        if user_id == self.user2_id:
            return 2
        raise MatchupStateError(f"User {user_id} is not part of matchup {self.id}")

    def opponent_of(self, user_id: str) -> str:
        return self.user2_id if self.side_of(user_id) == 1 else self.user1_id

    def settings_for(self, user_id: str) -> RosterSettings:
        return self.user1_settings if self.side_of(user_id) == 1 else self.user2_settings

    def confirmed(self, user_id: str) -> bool:
        return self.user1_confirmed if self.side_of(user_id) == 1 else self.user2_confirmed

    def effective_settings(self) -> RosterSettings:
        return self.user1_settings.minimum(self.user2_settings)

    @property
    def is_tie(self) -> bool:
        return self.status == FINAL and self.winner_id is None


def _require_open(matchup: Matchup) -> None:
    if matchup.status == FINAL:
        raise MatchupStateError(f"Matchup {matchup.id} is final")


def edit_settings(matchup: Matchup, user_id: str, settings: RosterSettings) -> Matchup:
    """Replace one side's settings; that side must confirm again and an active matchup reopens."""
    _require_open(matchup)
    side = matchup.side_of(user_id)
    changes = {f"user{side}_settings": settings, f"user{side}_confirmed": False, "status": PENDING}
    return replace(matchup, **changes)


def update_position_count(matchup: Matchup, user_id: str, category: str, delta: int) -> Matchup:
    _require_open(matchup)
    current = matchup.settings_for(user_id)
    new_count = current.get(category) + delta
    if new_count < 0:
        return matchup
    return edit_settings(matchup, user_id, current.with_count(category, new_count))


def confirm(matchup: Matchup, user_id: str) -> Matchup:
    _require_open(matchup)
    side = matchup.side_of(user_id)
    other_confirmed = matchup.user2_confirmed if side == 1 else matchup.user1_confirmed
    status = ACTIVE if other_confirmed else PENDING
    return replace(matchup, **{f"user{side}_confirmed": True, "status": status})


def decide_winner(matchup: Matchup, total1: float, total2: float) -> str | None:
    if total1 > total2:
        return matchup.user1_id
    if total2 > total1:
        return matchup.user2_id
    return None


def finalize(matchup: Matchup, total1: float, total2: float) -> Matchup:
    """Lock in final scores. Only an active matchup changes; anything else is returned as is."""
    if matchup.status != ACTIVE:
        return matchup
    return replace(
        matchup,
        status=FINAL,
        user1_score=total1,
        user2_score=total2,
        winner_id=decide_winner(matchup, total1, total2),
    )


def status_label(matchup: Matchup, user_id: str) -> str:
    if matchup.status == FINAL:
        return "final"
    if matchup.status == ACTIVE:
        return "live"
    if not matchup.confirmed(user_id):
        return "waiting on you"
    return "waiting on opponent"
