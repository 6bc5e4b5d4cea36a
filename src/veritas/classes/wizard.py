"""Ranking wizard session state and its persisted record."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from veritas.classes.player import Player
from veritas.classes.rank_engine import (
    RankingEntry,
    RankingStateError,
    advance_promotion,
    entries_from_ids,
    next_comparison_pair,
    ranked_ids,
    reset_entries,
    resolve_comparison,
    sort_entries,
)

AWAITING_COMPARISON = "awaiting-comparison"
PROMOTING = "promoting"
COMPLETE = "complete"


@dataclass(frozen=True)
class RankingRecord:
    """A user's stored ranking for one position and scoring format."""

    user_id: str
    position: str
    scoring_type: str
    ranked_ids: list[str] = field(default_factory=list)
    comparison_state: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_entries(
        cls, user_id: str, position: str, scoring_type: str, entries: Sequence[RankingEntry]
    ) -> "RankingRecord":
        ordered = sort_entries(entries)
        return cls(
            user_id=user_id,
            position=position,
            scoring_type=scoring_type,
            ranked_ids=[e.player_id for e in ordered],
            comparison_state={e.player_id: {"rank": e.rank, "isCompared": e.compared} for e in ordered},
        )

    def compared_ids(self) -> set[str]:
        return {pid for pid, state in self.comparison_state.items() if state.get("isCompared")}


@dataclass(frozen=True)
class WizardSession:
    user_id: str
    position: str
    scoring_type: str
    entries: tuple[RankingEntry, ...]
    promoted_id: str | None = None
    cycle_index: int | None = None
    origin_ids: tuple[str, ...] = ()
    needs_save: bool = False

    @property
    def state(self) -> str:
        if self.promoted_id is not None:
            return PROMOTING
        if next_comparison_pair(self.entries) is None:
            return COMPLETE
        return AWAITING_COMPARISON

    @property
    def compared_count(self) -> int:
        return sum(1 for e in self.entries if e.compared)

    def current_pair(self) -> tuple[RankingEntry, RankingEntry] | None:
        """The two entries the user must choose between next."""
        if self.promoted_id is None:
            return next_comparison_pair(self.entries)
        opponent = next(e for e in self.entries if e.rank == self.cycle_index)
        promoted = next(e for e in self.entries if e.player_id == self.promoted_id)
        return opponent, promoted

    def ranked_ids(self) -> list[str]:
        return ranked_ids(self.entries)

    def to_record(self) -> RankingRecord:
        return RankingRecord.from_entries(self.user_id, self.position, self.scoring_type, self.entries)


def apply_choice(session: WizardSession, chosen_id: str) -> WizardSession:
    """Apply the user's pick for the current pair and return the next session state."""
    pair = session.current_pair()
    if pair is None:
        raise RankingStateError("Ranking is already complete")
    upper, lower = pair
    if chosen_id not in (upper.player_id, lower.player_id):
        raise RankingStateError(f"Player {chosen_id} is not part of the current comparison")

    if session.promoted_id is not None:
        result = advance_promotion(
            session.entries, session.promoted_id, session.cycle_index, chosen_id, session.origin_ids
        )
        if result.continue_promotion:
            return replace(
                session, entries=tuple(result.entries), cycle_index=result.next_index, needs_save=False
            )
        return replace(
            session,
            entries=tuple(result.entries),
            promoted_id=None,
            cycle_index=None,
            origin_ids=(),
            needs_save=True,
        )

    loser_id = lower.player_id if chosen_id == upper.player_id else upper.player_id
    result = resolve_comparison(session.entries, chosen_id, loser_id)
    if result.should_promote:
        return replace(
            session,
            entries=tuple(result.entries),
            promoted_id=result.promoted_id,
            cycle_index=result.promotion_index,
            origin_ids=(upper.player_id, lower.player_id),
            needs_save=False,
        )
    return replace(session, entries=tuple(result.entries), needs_save=True)


def reset_session(session: WizardSession) -> WizardSession:
    return replace(
        session,
        entries=tuple(reset_entries(session.entries)),
        promoted_id=None,
        cycle_index=None,
        origin_ids=(),
        needs_save=False,
    )


def initial_order(players: Iterable[Player], scoring_type: str, record: RankingRecord | None = None) -> list[str]:
    """Player ids in starting order: saved order first, then unseen players by projection."""
    eligible = [p for p in players if p.projected(scoring_type) > 0]
    by_projection = sorted(eligible, key=lambda p: p.projected(scoring_type), reverse=True)
    if record is None or not record.ranked_ids:
        return [p.id for p in by_projection]

    known = {p.id for p in eligible}
    saved = [pid for pid in record.ranked_ids if pid in known]
    seen = set(saved)
    return saved + [p.id for p in by_projection if p.id not in seen]


def build_session(
    user_id: str,
    position: str,
    scoring_type: str,
    players: Iterable[Player],
    record: RankingRecord | None = None,
) -> WizardSession:
    order = initial_order(players, scoring_type, record)
    compared = record.compared_ids() if record else set()
    return WizardSession(
        user_id=user_id,
        position=position,
        scoring_type=scoring_type,
        entries=tuple(entries_from_ids(order, compared)),
    )
