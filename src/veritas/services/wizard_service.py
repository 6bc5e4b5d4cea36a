"""Load, advance, and persist ranking wizard sessions."""

from __future__ import annotations

import logging
import sqlite3

from veritas.classes.category import eligible_positions, format_key
from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.outcome import Outcome
from veritas.classes.wizard import COMPLETE, WizardSession, apply_choice, build_session, reset_session


class WizardService:
    def __init__(self, db: MatchupDatabase, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def start_session(self, user_id: str, category: str, scoring_type: str) -> Outcome:
        """Build a session from the user's saved ranking, or from projections when none exists."""
        format_key(scoring_type)
        positions = eligible_positions(category)
        try:
            record = self.db.load_ranking(user_id, category, scoring_type)
            players = self.db.get_players_by_positions(positions)
        except sqlite3.Error as err:
            self.logger.error("sqlite error starting wizard for %s %s/%s: %s", user_id, category, scoring_type, err)
            return Outcome.failed(err)

        session = build_session(user_id, category, scoring_type, players, record)
        self.logger.debug(
            "wizard %s %s/%s: %d players, %d compared, restored=%s",
            user_id,
            category,
            scoring_type,
            len(session.entries),
            session.compared_count,
            record is not None,
        )
        return Outcome.ok(session)

    def choose(self, session: WizardSession, chosen_id: str) -> Outcome:
        """
        Apply a pick. Settled states are saved; if the save fails the previous
        session is returned with the failure.
        """
        updated = apply_choice(session, chosen_id)
        if not updated.needs_save:
            return Outcome.ok(updated)
        try:
            self.db.save_ranking(updated.to_record())
        except sqlite3.Error as err:
            self.logger.error("sqlite error saving wizard state for %s: %s", session.user_id, err)
            return Outcome.failed(err, session)

        if updated.state == COMPLETE:
            self.logger.info(
                "wizard complete for %s %s/%s", updated.user_id, updated.position, updated.scoring_type
            )
        return Outcome.ok(updated)

    def reset(self, session: WizardSession) -> Outcome:
        """Clear compared flags locally and in the store; ranked order is kept."""
        try:
            self.db.reset_ranking(session.user_id, session.position, session.scoring_type)
        except sqlite3.Error as err:
            self.logger.error("sqlite error resetting wizard state for %s: %s", session.user_id, err)
            return Outcome.failed(err, session)
        return Outcome.ok(reset_session(session))
