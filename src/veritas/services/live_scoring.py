"""Live scoring: poll-window decisions, stat refresh, and the matchup poller."""

from __future__ import annotations

import datetime
import logging
import threading
from collections.abc import Callable, Mapping, Sequence

import requests

from veritas.classes.distribution import Distribution
from veritas.classes.matchup import ACTIVE
from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.outcome import SyncOutcome
from veritas.classes.sleeper import Game, SleeperClient
from veritas.services.batch_writer import DEFAULT_BATCH_SIZE, write_in_batches
from veritas.services.matchup_service import MatchupService

logger = logging.getLogger(__name__)

FINAL_GAME_STATUSES = ("complete", "closed")
POLL_LEAD = datetime.timedelta(hours=2)
# measured from the last kickoff, not the last final whistle
POLL_TAIL = datetime.timedelta(hours=4)

TICK_FINALIZED = "finalized"
TICK_REFRESHED = "refreshed"
TICK_IDLE = "idle"
TICK_FAILED = "failed"
TICK_STOPPED = "stopped"
TICK_CRASHED = "crashed"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def should_poll(
    games: Sequence[Game],
    now: datetime.datetime | None = None,
    lead: datetime.timedelta = POLL_LEAD,
    tail: datetime.timedelta = POLL_TAIL,
) -> bool:
    """True while now is between lead before the first kickoff and tail after the last kickoff."""
    if not games:
        return False
    now = now or _utcnow()
    kickoffs = [game.start_time for game in games]
    return min(kickoffs) - lead <= now <= max(kickoffs) + tail


def all_games_final(games: Sequence[Game]) -> bool:
    if not games:
        return False
    return all(game.status in FINAL_GAME_STATUSES for game in games)


def update_current_week_stats(
    db: MatchupDatabase,
    live_stats: Mapping[str, Mapping[str, float]],
    week: int,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> SyncOutcome:
    """Store this week's stat lines in batches, tagging each with the week they belong to."""
    rows = [(player_id, dict(points), week) for player_id, points in live_stats.items()]
    if not rows:
        return SyncOutcome(True, 0)
    outcome = write_in_batches(rows, db.update_player_stats, batch_size, label="player stats")
    logger.info("week %d stats: wrote %d/%d (success=%s)", week, outcome.count, len(rows), outcome.success)
    return outcome


class LiveScorePoller:
    """
    Polls live scores for one active matchup on a background thread.

    Every interval it finalizes the matchup once all of the week's games are
    final, otherwise refreshes stats and lineups while inside the poll window.
    The thread stops on cancel(), when the matchup is finalized, when the
    matchup is no longer active, or when a tick raises; last_action then holds
    the reason.
    """

    def __init__(
        self,
        service: MatchupService,
        client: SleeperClient,
        matchup_id: int,
        *,
        interval_sec: float = 60,
        batch_size: int = DEFAULT_BATCH_SIZE,
        lead: datetime.timedelta = POLL_LEAD,
        tail: datetime.timedelta = POLL_TAIL,
        clock: Callable[[], datetime.datetime] = _utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self.service = service
        self.client = client
        self.matchup_id = matchup_id
        self.interval_sec = interval_sec
        self.batch_size = batch_size
        self.lead = lead
        self.tail = tail
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

        self.latest: Distribution | None = None
        self.last_action: str | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> str:
        """Run one polling step and return what it did."""
        loaded = self.service.load(self.matchup_id)
        if not loaded.success:
            self.logger.error("matchup %s: could not load (%s)", self.matchup_id, loaded.error)
            return TICK_FAILED
        if loaded.value.status != ACTIVE:
            self.logger.info("matchup %s is %s, polling stops", self.matchup_id, loaded.value.status)
            return TICK_STOPPED

        try:
            state = self.client.get_state()
            games = self.client.get_week_games(state)
        except (requests.RequestException, ValueError, KeyError) as err:
            self.logger.error("matchup %s: schedule fetch failed: %s", self.matchup_id, err)
            return TICK_FAILED

        if all_games_final(games):
            finalized = self.service.finalize(self.matchup_id, state.week)
            if not finalized.success:
                return TICK_FAILED
            return TICK_FINALIZED

        if not should_poll(games, self.clock(), self.lead, self.tail):
            self.logger.debug("matchup %s: outside poll window for week %d", self.matchup_id, state.week)
            return TICK_IDLE

        try:
            live_stats = self.client.get_weekly_stats(state.season, state.season_type, state.week)
        except (requests.RequestException, ValueError) as err:
            self.logger.error("matchup %s: stats fetch failed: %s", self.matchup_id, err)
            return TICK_FAILED

        synced = update_current_week_stats(self.service.db, live_stats, state.week, self.batch_size)
        if not synced.success:
            return TICK_FAILED

        lineups = self.service.refresh_lineups(self.matchup_id, state.week)
        if not lineups.success:
            return TICK_FAILED
        self.latest = lineups.value
        self.logger.info(
            "matchup %s live: %.2f - %.2f", self.matchup_id, self.latest.total_a, self.latest.total_b
        )
        return TICK_REFRESHED

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.last_action = self.tick()
            except Exception:
                self.logger.exception("matchup %s: poller crashed", self.matchup_id)
                self.last_action = TICK_CRASHED
                return
            if self.last_action in (TICK_FINALIZED, TICK_STOPPED):
                break
            if self._stop.wait(self.interval_sec):
                break

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"live-score-poller-{self.matchup_id}", daemon=True
        )
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
