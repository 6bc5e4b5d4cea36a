import datetime

import pytest
import requests
from veritas.classes.matchup import ACTIVE, FINAL
from veritas.classes.sleeper import Game, NFLState
from veritas.services.live_scoring import (
    TICK_CRASHED,
    TICK_FAILED,
    TICK_FINALIZED,
    TICK_IDLE,
    TICK_REFRESHED,
    TICK_STOPPED,
    LiveScorePoller,
    all_games_final,
    should_poll,
    update_current_week_stats,
)
from veritas.services.matchup_service import MatchupService

UTC = datetime.timezone.utc
SUNDAY = datetime.datetime(2025, 9, 14, 17, 0, tzinfo=UTC)


def _game(start: datetime.datetime, status: str = "in_game") -> Game:
    return Game(week=3, start_time=start, status=status)


class _FakeClient:
    def __init__(self, games, stats=None, error: Exception | None = None):
        self.games = games
        self.stats = stats or {}
        self.error = error
        self.stats_calls = 0

    def get_state(self):
        if self.error:
            raise self.error
        return NFLState(season="2025", week=3)

    def get_week_games(self, _state):
        return self.games

    def get_weekly_stats(self, _season, _season_type, _week):
        self.stats_calls += 1
        return self.stats


@pytest.mark.parametrize(
    "now, expected",
    [
        (SUNDAY - datetime.timedelta(hours=2, minutes=1), False),
        (SUNDAY - datetime.timedelta(hours=2), True),
        (SUNDAY + datetime.timedelta(hours=7), True),
        (SUNDAY + datetime.timedelta(hours=3, minutes=20) + datetime.timedelta(hours=4), True),
        (SUNDAY + datetime.timedelta(hours=3, minutes=21) + datetime.timedelta(hours=4), False),
    ],
)
def test_should_poll_window_spans_first_kickoff_to_last_kickoff(now, expected):
    games = [_game(SUNDAY), _game(SUNDAY + datetime.timedelta(hours=3, minutes=20))]

    assert should_poll(games, now) is expected


def test_should_poll_false_without_games():
    assert not should_poll([], SUNDAY)


def test_all_games_final():
    assert all_games_final([_game(SUNDAY, "complete"), _game(SUNDAY, "closed")])
    assert not all_games_final([_game(SUNDAY, "complete"), _game(SUNDAY, "in_game")])
    assert not all_games_final([])


def test_update_current_week_stats_tags_rows_with_week(matchup_db, active_matchup):
    outcome = update_current_week_stats(matchup_db, {"r1": {"std": 3.0}, "unknown": {"std": 1.0}}, week=4)

    assert outcome.success
    assert outcome.count == 2
    player = matchup_db.get_players(["r1"])["r1"]
    assert player.stats_week == 4
    assert player.current_week_stats == {"std": 3.0}


def _poller(matchup_db, matchup, client, now=SUNDAY, **kwargs):
    return LiveScorePoller(MatchupService(matchup_db), client, matchup.id, clock=lambda: now, **kwargs)


def test_tick_refreshes_stats_and_lineups_inside_window(matchup_db, active_matchup):
    client = _FakeClient(
        [_game(SUNDAY)], stats={"r1": {"std": 21.0, "ppr": 0, "half": 0}, "r2": {"std": 4.0, "ppr": 0, "half": 0}}
    )
    poller = _poller(matchup_db, active_matchup, client, now=SUNDAY + datetime.timedelta(hours=1))

    assert poller.tick() == TICK_REFRESHED
    assert (poller.latest.total_a, poller.latest.total_b) == (21.0, 4.0)


def test_tick_idles_outside_window(matchup_db, active_matchup):
    client = _FakeClient([_game(SUNDAY, "pre_game")])
    poller = _poller(matchup_db, active_matchup, client, now=SUNDAY - datetime.timedelta(days=2))

    assert poller.tick() == TICK_IDLE
    assert client.stats_calls == 0
    assert poller.latest is None


def test_tick_finalizes_when_every_game_is_final(matchup_db, active_matchup):
    client = _FakeClient([_game(SUNDAY, "complete"), _game(SUNDAY, "closed")])
    poller = _poller(matchup_db, active_matchup, client)

    assert poller.tick() == TICK_FINALIZED
    stored = matchup_db.get_matchup_by_id(active_matchup.id)
    assert stored.status == FINAL
    assert stored.winner_id == "alice"
    assert poller.tick() == TICK_STOPPED


def test_tick_reports_failure_on_http_error(matchup_db, active_matchup, caplog):
    client = _FakeClient([], error=requests.ConnectionError("offline"))
    poller = _poller(matchup_db, active_matchup, client)

    assert poller.tick() == TICK_FAILED
    assert "offline" in caplog.text


def test_tick_stops_for_pending_matchup(matchup_db):
    pending = matchup_db.create_matchup("alice", "bob", "STD")
    poller = _poller(matchup_db, pending, _FakeClient([_game(SUNDAY)]))

    assert poller.tick() == TICK_STOPPED


def test_thread_exits_after_finalizing(matchup_db, active_matchup):
    client = _FakeClient([_game(SUNDAY, "complete")])
    poller = _poller(matchup_db, active_matchup, client, interval_sec=0.01)

    poller.start()
    poller.join(timeout=5)

    assert not poller.is_running
    assert poller.last_action == TICK_FINALIZED


def test_cancel_stops_idle_thread(matchup_db, active_matchup):
    client = _FakeClient([_game(SUNDAY)])
    poller = _poller(matchup_db, active_matchup, client, now=SUNDAY + datetime.timedelta(days=3), interval_sec=30)

    poller.start()
    assert poller.is_running
    poller.cancel()
    poller.join(timeout=5)

    assert not poller.is_running


class _BrokenScheduleClient(_FakeClient):
    def get_week_games(self, _state):
        raise TypeError("schedule entry is not a mapping")


def test_thread_records_crash_instead_of_dying_silently(matchup_db, active_matchup, caplog):
    poller = _poller(matchup_db, active_matchup, _BrokenScheduleClient([]), interval_sec=0.01)

    poller.start()
    poller.join(timeout=5)

    assert not poller.is_running
    assert poller.last_action == TICK_CRASHED
    assert "poller crashed" in caplog.text
    assert matchup_db.get_matchup_by_id(active_matchup.id).status == ACTIVE
