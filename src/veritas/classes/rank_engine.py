"""Pairwise-comparison ranking.

A ranking is a list of ``RankingEntry`` objects whose ranks are always the
permutation 1..N. The user is repeatedly shown the highest uncompared entry
next to the entry directly above it. When a lower entry beats a higher one a
promotion cycle starts: the winner keeps challenging the next entry up until
it loses or reaches rank 1, and only then is it moved.

Every function here is pure: it takes a list of entries and returns a new
list, leaving the input untouched.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace


class RankingStateError(ValueError):
    """Raised for ids or indexes that do not belong to the ranking."""


@dataclass(frozen=True)
class RankingEntry:
    player_id: str
    rank: int
    compared: bool = False


@dataclass(frozen=True)
class ComparisonResult:
    entries: list[RankingEntry]
    promoted_id: str | None = None
    promotion_index: int | None = None

    @property
    def should_promote(self) -> bool:
        return self.promoted_id is not None


@dataclass(frozen=True)
class PromotionResult:
    entries: list[RankingEntry]
    continue_promotion: bool = False
    next_index: int | None = None


def sort_entries(entries: Iterable[RankingEntry]) -> list[RankingEntry]:
    return sorted(entries, key=lambda e: e.rank)


def entries_from_ids(player_ids: Sequence[str], compared_ids: Iterable[str] = ()) -> list[RankingEntry]:
    """Rank ids by their position; entries listed in compared_ids start compared."""
    compared = set(compared_ids)
    return [RankingEntry(pid, index + 1, pid in compared) for index, pid in enumerate(player_ids)]


def ranked_ids(entries: Iterable[RankingEntry]) -> list[str]:
    return [entry.player_id for entry in sort_entries(entries)]


def is_complete(entries: Sequence[RankingEntry]) -> bool:
    return all(entry.compared for entry in entries)


def _find(entries: Sequence[RankingEntry], player_id: str) -> RankingEntry:
    for entry in entries:
        if entry.player_id == player_id:
            return entry
    raise RankingStateError(f"Player {player_id} is not part of this ranking")


def _at_rank(entries: Sequence[RankingEntry], rank: int) -> RankingEntry | None:
    for entry in entries:
        if entry.rank == rank:
            return entry
    return None


def _mark_compared(entries: Sequence[RankingEntry], player_ids: Iterable[str]) -> list[RankingEntry]:
    ids = set(player_ids)
    return [replace(e, compared=True) if e.player_id in ids else e for e in entries]


def next_comparison_pair(entries: Sequence[RankingEntry]) -> tuple[RankingEntry, RankingEntry] | None:
    """Return (upper, lower) for the next comparison, or None when the ranking is settled."""
    ordered = sort_entries(entries)
    challenger = next((e for e in ordered if not e.compared), None)
    if challenger is None:
        return None

    if challenger.rank == 1:
        runner_up = _at_rank(ordered, 2)
        if runner_up is None:
            return None
        return challenger, runner_up

    upper = _at_rank(ordered, challenger.rank - 1)
    if upper is None:
        raise RankingStateError(f"No entry at rank {challenger.rank - 1}; ranks are not contiguous")
    return upper, challenger


def resolve_comparison(entries: Sequence[RankingEntry], winner_id: str, loser_id: str) -> ComparisonResult:
    winner = _find(entries, winner_id)
    loser = _find(entries, loser_id)
    if winner.player_id == loser.player_id:
        raise RankingStateError("Winner and loser must be different players")

    if loser.rank == 1 and winner.rank == 2:
        swapped = []
        for entry in entries:
            if entry.player_id == winner_id:
                swapped.append(replace(entry, rank=1, compared=True))
            elif entry.player_id == loser_id:
                swapped.append(replace(entry, rank=2, compared=True))
            else:
                swapped.append(entry)
        return ComparisonResult(sort_entries(swapped))

    if winner.rank > loser.rank:
        if loser.rank == 1:
            # Nobody left above the loser to duel.
            moved = move_to_rank(entries, winner_id, 1)
            return ComparisonResult(_mark_compared(moved, (winner_id, loser_id)))
        # The winner has already beaten the loser, so the cycle starts one above it.
        return ComparisonResult(list(entries), promoted_id=winner_id, promotion_index=loser.rank - 1)

    return ComparisonResult(_mark_compared(entries, (winner_id, loser_id)))


def move_to_rank(entries: Sequence[RankingEntry], player_id: str, new_rank: int) -> list[RankingEntry]:
    """Remove an entry, reinsert it at a 1-indexed rank, and renumber everyone by position."""
    ordered = sort_entries(entries)
    moving = _find(ordered, player_id)
    if not 1 <= new_rank <= len(ordered):
        raise RankingStateError(f"Rank {new_rank} is outside 1..{len(ordered)}")

    ordered.remove(moving)
    ordered.insert(new_rank - 1, moving)
    return [replace(entry, rank=index + 1) for index, entry in enumerate(ordered)]


def advance_promotion(
    entries: Sequence[RankingEntry],
    promoted_id: str,
    cycle_index: int,
    chosen_id: str,
    origin_ids: Iterable[str] = (),
) -> PromotionResult:
    """Play one duel of a promotion cycle against the entry ranked at cycle_index.

    Nothing moves while the promoted entry keeps winning; it is relocated once,
    to rank 1 or directly below the entry that beat it. When the cycle ends the
    promoted entry and origin_ids are marked compared.
    """
    promoted = _find(entries, promoted_id)
    opponent = _at_rank(entries, cycle_index)
    if opponent is None or opponent.player_id == promoted.player_id:
        raise RankingStateError(f"Invalid promotion index {cycle_index} for {promoted_id}")
    if chosen_id not in (promoted_id, opponent.player_id):
        raise RankingStateError(f"Player {chosen_id} is not part of the current promotion duel")

    if chosen_id == promoted_id:
        if cycle_index > 1:
            return PromotionResult(list(entries), continue_promotion=True, next_index=cycle_index - 1)
        settled = move_to_rank(entries, promoted_id, 1)
    else:
        settled = move_to_rank(entries, promoted_id, cycle_index + 1)

    return PromotionResult(_mark_compared(settled, (promoted_id, *origin_ids)))


def reset_entries(entries: Sequence[RankingEntry]) -> list[RankingEntry]:
    """Clear every compared flag; rank order is kept."""
    return [replace(entry, compared=False) for entry in sort_entries(entries)]
