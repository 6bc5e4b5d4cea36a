"""Sync the NFL player table from Sleeper plus third-party projections."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests

from veritas.classes.category import POSITIONS
from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.outcome import SyncOutcome
from veritas.classes.player import EMPTY_POINTS, Player
from veritas.classes.sleeper import SleeperClient
from veritas.services.batch_writer import DEFAULT_BATCH_SIZE, write_in_batches

logger = logging.getLogger(__name__)


def projection_key(raw: Mapping[str, Any]) -> str:
    """Name used to match projections: team name for defenses, full name otherwise."""
    if raw.get("position") == "DEF":
        return str(raw.get("first_name") or "").strip().lower()
    return "{} {}".format(raw.get("first_name") or "", raw.get("last_name") or "").strip().lower()


def build_players(
    raw_players: Mapping[str, Mapping[str, Any]],
    projections: Mapping[str, Mapping[str, float]],
    stats: Mapping[str, Mapping[str, float]],
    week: int,
) -> list[Player]:
    """Keep active players at lineup positions who are on a team (defenses always qualify)."""
    players: list[Player] = []
    for player_id, raw in raw_players.items():
        position = raw.get("position")
        if not raw.get("active") or position not in POSITIONS:
            continue
        if not raw.get("team") and position != "DEF":
            continue

        pid = str(raw.get("player_id") or player_id)
        players.append(
            Player(
                id=pid,
                position=position,
                first_name=raw.get("first_name") or "",
                last_name=raw.get("last_name") or "",
                team=raw.get("team") or "FA",
                active=True,
                projections=dict(projections.get(projection_key(raw)) or EMPTY_POINTS),
                current_week_stats=dict(stats.get(pid) or EMPTY_POINTS),
                stats_week=week,
            )
        )
    return players


def sync_players(
    db: MatchupDatabase,
    client: SleeperClient,
    projections_url: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> SyncOutcome:
    """Fetch players, projections and current-week stats, then upsert them in batches."""
    try:
        state = client.get_state()
        logger.info("fetching player list from Sleeper")
        raw_players = client.get_players()
        stats = client.get_weekly_stats(state.season, state.season_type, state.week)
    except (requests.RequestException, ValueError, KeyError) as err:
        logger.error("player sync aborted, Sleeper fetch failed: %s", err)
        return SyncOutcome(False, 0, str(err))

    try:
        projections = client.get_projections(projections_url)
    except (requests.RequestException, ValueError) as err:
        logger.warning("projections unavailable, syncing with zero projections: %s", err)
        projections = {}

    players = build_players(raw_players, projections, stats, state.week)
    logger.info("updating %d players for %s week %d", len(players), state.season, state.week)
    return write_in_batches(players, db.upsert_players, batch_size, label="players")
