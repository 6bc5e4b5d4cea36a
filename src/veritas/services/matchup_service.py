"""Matchup orchestration: lineups from stored rankings, optimistic edits, finalization."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from typing import Any

from veritas.classes import matchup as transitions
from veritas.classes.category import CATEGORY_ORDER
from veritas.classes.distribution import Distribution, distribute
from veritas.classes.matchup import ACTIVE, Matchup
from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.outcome import Outcome
from veritas.classes.roster import RosterSettings


class MatchupService:
    def __init__(self, db: MatchupDatabase, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def get_or_create(self, user_id: str, friend_id: str, scoring_type: str = "STD") -> Outcome:
        try:
            return Outcome.ok(self.db.get_or_create_matchup(user_id, friend_id, scoring_type))
        except sqlite3.Error as err:
            self.logger.error("sqlite error loading matchup %s vs %s: %s", user_id, friend_id, err)
            return Outcome.failed(err)

    def load(self, matchup_id: int) -> Outcome:
        try:
            matchup = self.db.get_matchup_by_id(matchup_id)
        except sqlite3.Error as err:
            self.logger.error("sqlite error loading matchup %s: %s", matchup_id, err)
            return Outcome.failed(err)
        if matchup is None:
            return Outcome.failed(f"Matchup {matchup_id} not found")
        return Outcome.ok(matchup)

    def build_lineups(self, matchup: Matchup, current_week: int | None) -> Distribution:
        """Distribute both users' stored rankings under the matchup's effective settings."""
        settings = matchup.effective_settings()
        rankings_a = self.db.get_ranked_ids(matchup.user1_id, matchup.scoring_type)
        rankings_b = self.db.get_ranked_ids(matchup.user2_id, matchup.scoring_type)

        needed: set[str] = set()
        for category in CATEGORY_ORDER:
            if settings.get(category):
                needed.update(rankings_a.get(category, ()))
                needed.update(rankings_b.get(category, ()))
        if not needed:
            self.logger.warning("matchup %s: no ranked players to distribute", matchup.id)

        players = self.db.get_players(needed)
        return distribute(rankings_a, rankings_b, settings, players, matchup.scoring_type, current_week)

    def refresh_lineups(self, matchup_id: int, current_week: int | None) -> Outcome:
        loaded = self.load(matchup_id)
        if not loaded.success:
            return loaded
        try:
            return Outcome.ok(self.build_lineups(loaded.value, current_week))
        except sqlite3.Error as err:
            self.logger.error("sqlite error building lineups for matchup %s: %s", matchup_id, err)
            return Outcome.failed(err)

    def finalize(self, matchup_id: int, current_week: int | None) -> Outcome:
        """Score the matchup at current live totals and lock it. Non-active matchups are left alone."""
        loaded = self.load(matchup_id)
        if not loaded.success:
            return loaded
        matchup: Matchup = loaded.value
        if matchup.status != ACTIVE:
            self.logger.debug("matchup %s is %s, not finalizing", matchup_id, matchup.status)
            return Outcome.ok(matchup)

        try:
            lineups = self.build_lineups(matchup, current_week)
            final = transitions.finalize(matchup, lineups.total_a, lineups.total_b)
            if not self.db.finalize_matchup(final):
                self.logger.info("matchup %s was finalized elsewhere", matchup_id)
                return self.load(matchup_id)
        except sqlite3.Error as err:
            self.logger.error("sqlite error finalizing matchup %s: %s", matchup_id, err)
            return Outcome.failed(err)

        self.logger.info(
            "matchup %s final: %s %.2f - %.2f %s (winner: %s)",
            matchup_id,
            final.user1_id,
            final.user1_score,
            final.user2_score,
            final.user2_id,
            final.winner_id or "tie",
        )
        return Outcome.ok(final)

    def user_record(self, user_id: str) -> Outcome:
        try:
            return Outcome.ok(self.db.get_user_record(user_id))
        except sqlite3.Error as err:
            self.logger.error("sqlite error loading record for %s: %s", user_id, err)
            return Outcome.failed(err, {"wins": 0, "losses": 0, "ties": 0})

    def open_session(self, matchup: Matchup, user_id: str) -> "MatchupSession":
        return MatchupSession(self.db, matchup, user_id, logger=self.logger)


class MatchupSession:
    """
    One user's local view of a matchup.

    Edits are applied to ``self.matchup`` first and then written; when the
    write fails the local view is put back and a failed Outcome is returned.
    Only the acting user's fields are written; the store derives status from
    both stored confirmations and the session reloads the row it wrote.
    """

    def __init__(
        self,
        db: MatchupDatabase,
        matchup: Matchup,
        user_id: str,
        logger: logging.Logger | None = None,
    ) -> None:
        matchup.side_of(user_id)
        self.db = db
        self.matchup = matchup
        self.user_id = user_id
        self.logger = logger or logging.getLogger(__name__)

    @property
    def side(self) -> int:
        return self.matchup.side_of(self.user_id)

    @property
    def status_label(self) -> str:
        return transitions.status_label(self.matchup, self.user_id)

    def _apply(self, transition: Callable[[Matchup], Matchup], write_settings: bool) -> Outcome:
        previous = self.matchup
        tentative = transition(previous)
        if tentative == previous:
            return Outcome.ok(previous)

        self.matchup = tentative
        fields: dict[str, Any] = {"confirmed": tentative.confirmed(self.user_id)}
        if write_settings:
            fields["settings"] = tentative.settings_for(self.user_id)

        try:
            updated = self.db.update_matchup_side(tentative.id, self.side, **fields)
        except sqlite3.Error as err:
            self.logger.error("sqlite error saving matchup %s, reverting: %s", tentative.id, err)
            self.matchup = previous
            return Outcome.failed(err, previous)

        if not updated:
            self.logger.warning("matchup %s was not updated (missing or final), reverting", tentative.id)
            self.matchup = previous
            return Outcome.failed(f"Matchup {tentative.id} could not be updated", previous)

        try:
            stored = self.db.get_matchup_by_id(tentative.id)
        except sqlite3.Error as err:
            self.logger.warning("matchup %s saved but reload failed: %s", tentative.id, err)
            stored = None
        if stored is not None:
            self.matchup = stored
        return Outcome.ok(self.matchup)

    def refresh(self) -> Outcome:
        try:
            latest = self.db.get_matchup_by_id(self.matchup.id)
        except sqlite3.Error as err:
            self.logger.error("sqlite error refreshing matchup %s: %s", self.matchup.id, err)
            return Outcome.failed(err, self.matchup)
        if latest is None:
            return Outcome.failed(f"Matchup {self.matchup.id} not found", self.matchup)
        self.matchup = latest
        return Outcome.ok(latest)

    def edit_settings(self, settings: RosterSettings) -> Outcome:
        return self._apply(lambda m: transitions.edit_settings(m, self.user_id, settings), write_settings=True)

    def update_position_count(self, category: str, delta: int) -> Outcome:
        return self._apply(
            lambda m: transitions.update_position_count(m, self.user_id, category, delta),
            write_settings=True,
        )

    def confirm(self) -> Outcome:
        """Confirm this side. Reads the opponent's latest flag first so activation is not missed."""
        refreshed = self.refresh()
        if not refreshed.success:
            return refreshed
        return self._apply(lambda m: transitions.confirm(m, self.user_id), write_settings=False)
