"""Distribute players into two head-to-head lineups from each side's rankings.

For every slot each side's best remaining player is compared. When both sides
want the same player that player is burned: nobody gets him and the slot is
retried with the next players. One assigned set is shared by every category,
so a player used at RB can never come back at FLEX.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from veritas.classes.category import CATEGORY_ORDER, format_key, validate_category
from veritas.classes.player import Player
from veritas.classes.roster import RosterSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    category: str
    player: Player | None = None
    rank: int | None = None
    projected: float = 0.0
    live: float = 0.0
    conflict: bool = False

    @property
    def empty(self) -> bool:
        return self.player is None

    @property
    def player_id(self) -> str | None:
        return self.player.id if self.player else None


@dataclass
class Distribution:
    slots_a: list[Slot] = field(default_factory=list)
    slots_b: list[Slot] = field(default_factory=list)
    burned: list[str] = field(default_factory=list)

    @property
    def total_a(self) -> float:
        return sum(slot.live for slot in self.slots_a)

    @property
    def total_b(self) -> float:
        return sum(slot.live for slot in self.slots_b)

    @property
    def projected_a(self) -> float:
        return sum(slot.projected for slot in self.slots_a)

    @property
    def projected_b(self) -> float:
        return sum(slot.projected for slot in self.slots_b)


def _filled_slot(
    category: str,
    player: Player,
    rank: int,
    scoring_type: str,
    current_week: int | None,
    conflict: bool,
) -> Slot:
    return Slot(
        category=category,
        player=player,
        rank=rank,
        projected=player.projected(scoring_type),
        live=player.live_points(scoring_type, current_week),
        conflict=conflict,
    )


def _top_pick(pool: list[str], players: Mapping[str, Player]) -> Player | None:
    """First pool entry with a player record; ids missing from the snapshot are dropped."""
    while pool:
        player = players.get(pool[0])
        if player is not None:
            return player
        logger.debug("dropping %s from pool: no player record", pool[0])
        pool.pop(0)
    return None


def distribute_category(
    category: str,
    ranked_a: Sequence[str],
    ranked_b: Sequence[str],
    slot_count: int,
    players: Mapping[str, Player],
    assigned: set[str],
    scoring_type: str,
    current_week: int | None,
    burned: list[str] | None = None,
) -> tuple[list[Slot], list[Slot]]:
    """Fill slot_count slots for one category. Mutates assigned (and burned when given)."""
    slots_a: list[Slot] = []
    slots_b: list[Slot] = []
    pool_a = [pid for pid in ranked_a if pid not in assigned]
    pool_b = [pid for pid in ranked_b if pid not in assigned]
    rank_a = {pid: index + 1 for index, pid in reversed(list(enumerate(ranked_a)))}
    rank_b = {pid: index + 1 for index, pid in reversed(list(enumerate(ranked_b)))}

    filled = 0
    had_conflict = False
    while filled < slot_count:
        player_a = _top_pick(pool_a, players)
        player_b = _top_pick(pool_b, players)

        if player_a is None or player_b is None:
            slots_a.append(Slot(category))
            slots_b.append(Slot(category))
            filled += 1
            had_conflict = False
            continue

        if player_a.id == player_b.id:
            logger.debug("%s: both sides picked %s, burning", category, player_a.id)
            assigned.add(player_a.id)
            if burned is not None:
                burned.append(player_a.id)
            pool_a = [pid for pid in pool_a if pid != player_a.id]
            pool_b = [pid for pid in pool_b if pid != player_a.id]
            had_conflict = True
            continue

        taken = {player_a.id, player_b.id}
        assigned.update(taken)
        pool_a = [pid for pid in pool_a if pid not in taken]
        pool_b = [pid for pid in pool_b if pid not in taken]

        slots_a.append(
            _filled_slot(category, player_a, rank_a[player_a.id], scoring_type, current_week, had_conflict)
        )
        slots_b.append(
            _filled_slot(category, player_b, rank_b[player_b.id], scoring_type, current_week, had_conflict)
        )
        filled += 1
        had_conflict = False

    return slots_a, slots_b


def distribute(
    rankings_a: Mapping[str, Sequence[str]],
    rankings_b: Mapping[str, Sequence[str]],
    settings: RosterSettings,
    players: Mapping[str, Player],
    scoring_type: str,
    current_week: int | None,
    category_order: Sequence[str] = CATEGORY_ORDER,
) -> Distribution:
    """Build both lineups category by category in category_order."""
    format_key(scoring_type)
    for category in list(rankings_a) + list(rankings_b):
        validate_category(category)

    result = Distribution()
    assigned: set[str] = set()
    for category in category_order:
        slot_count = settings.get(category)
        if slot_count == 0:
            continue
        slots_a, slots_b = distribute_category(
            category,
            rankings_a.get(category, ()),
            rankings_b.get(category, ()),
            slot_count,
            players,
            assigned,
            scoring_type,
            current_week,
            result.burned,
        )
        result.slots_a.extend(slots_a)
        result.slots_b.extend(slots_b)

    logger.debug(
        "distributed %d slots per side, %d burned, totals %.2f / %.2f",
        len(result.slots_a),
        len(result.burned),
        result.total_a,
        result.total_b,
    )
    return result
