import sqlite3

import pytest
from veritas.classes.matchup import ACTIVE, FINAL, PENDING, finalize
from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.player import Player
from veritas.classes.roster import RosterSettings
from veritas.classes.wizard import RankingRecord


@pytest.fixture
def matchup_db():
    db = MatchupDatabase(":memory:")
    db.create_tables()
    try:
        yield db
    finally:
        db.close()


def _player(pid: str, position: str = "RB", **kwargs) -> Player:
    return Player(id=pid, position=position, first_name=pid, last_name="Test", **kwargs)


def test_upsert_players_inserts_then_updates(matchup_db):
    matchup_db.upsert_players([_player("1", projections={"std": 5.0}), _player("2", "WR")])
    matchup_db.upsert_players([_player("1", team="KC", projections={"std": 7.5})])

    players = matchup_db.get_players(["1", "2", "missing"])

    assert set(players) == {"1", "2"}
    assert players["1"].team == "KC"
    assert players["1"].projections == {"std": 7.5}


def test_update_player_stats_only_touches_known_players(matchup_db):
    matchup_db.upsert_players([_player("1")])

    updated = matchup_db.update_player_stats([("1", {"std": 12.0}, 6), ("404", {"std": 1.0}, 6)])

    assert updated == 1
    player = matchup_db.get_players(["1"])["1"]
    assert player.current_week_stats == {"std": 12.0}
    assert player.stats_week == 6


def test_get_players_by_positions_filters_inactive(matchup_db):
    matchup_db.upsert_players(
        [_player("1", "RB"), _player("2", "WR"), _player("3", "RB", active=False), _player("4", "QB")]
    )

    ids = [p.id for p in matchup_db.get_players_by_positions(("RB", "WR"))]

    assert ids == ["1", "2"]
    assert len(matchup_db.get_players_by_positions(("RB",), active_only=False)) == 2


def test_ranking_save_load_and_reset(matchup_db):
    record = RankingRecord(
        "u1", "RB", "PPR", ranked_ids=["b", "a"], comparison_state={"b": {"rank": 1, "isCompared": True}}
    )
    matchup_db.save_ranking(record)
    matchup_db.save_ranking(RankingRecord("u1", "WR", "PPR", ranked_ids=["w"]))

    assert matchup_db.load_ranking("u1", "RB", "PPR") == record
    assert matchup_db.load_ranking("u1", "RB", "STD") is None
    assert matchup_db.get_ranked_ids("u1", "PPR") == {"RB": ["b", "a"], "WR": ["w"]}

    assert matchup_db.reset_ranking("u1", "RB", "PPR") == 1
    reloaded = matchup_db.load_ranking("u1", "RB", "PPR")
    assert reloaded.ranked_ids == ["b", "a"]
    assert reloaded.comparison_state == {}


def test_get_or_create_matchup_ignores_user_order(matchup_db):
    created = matchup_db.get_or_create_matchup("alice", "bob", "STD")
    again = matchup_db.get_or_create_matchup("bob", "alice", "STD")
    other_format = matchup_db.get_or_create_matchup("bob", "alice", "PPR")

    assert created.id == again.id
    assert created.status == PENDING
    assert created.user1_settings == RosterSettings()
    assert other_format.id != created.id
    assert other_format.user1_id == "bob"


def test_update_matchup_side_writes_only_given_fields(matchup_db):
    matchup = matchup_db.create_matchup("alice", "bob", "STD")

    rows = matchup_db.update_matchup_side(matchup.id, 2, settings=RosterSettings(te=2), confirmed=True)

    assert rows == 1
    stored = matchup_db.get_matchup_by_id(matchup.id)
    assert stored.user2_settings.get("TE") == 2
    assert stored.user2_confirmed
    assert not stored.user1_confirmed
    assert stored.status == PENDING
    assert matchup_db.update_matchup_side(matchup.id, 1) == 0
    with pytest.raises(ValueError):
        matchup_db.update_matchup_side(matchup.id, 3, confirmed=True)


def test_finalize_applies_once_and_locks_matchup(matchup_db):
    matchup = matchup_db.create_matchup("alice", "bob", "STD")
    matchup_db.update_matchup_side(matchup.id, 1, confirmed=True)
    matchup_db.update_matchup_side(matchup.id, 2, confirmed=True)
    active = matchup_db.get_matchup_by_id(matchup.id)
    assert active.status == ACTIVE
    assert [m.id for m in matchup_db.get_active_matchups()] == [matchup.id]

    final = finalize(active, 70.0, 64.5)
    assert matchup_db.finalize_matchup(final)
    assert not matchup_db.finalize_matchup(final)

    stored = matchup_db.get_matchup_by_id(matchup.id)
    assert stored.status == FINAL
    assert stored.winner_id == "alice"
    assert stored.user2_score == 64.5
    assert matchup_db.update_matchup_side(matchup.id, 1, confirmed=False) == 0
    assert matchup_db.get_active_matchups() == []


def test_user_record_counts_final_matchups(matchup_db):
    def _final(user1, user2, score1, score2):
        m = matchup_db.create_matchup(user1, user2, "STD")
        matchup_db.update_matchup_side(m.id, 1, confirmed=True)
        matchup_db.update_matchup_side(m.id, 2, confirmed=True)
        matchup_db.finalize_matchup(finalize(matchup_db.get_matchup_by_id(m.id), score1, score2))

    _final("alice", "bob", 10.0, 5.0)
    _final("carol", "alice", 20.0, 5.0)
    _final("alice", "dave", 7.0, 7.0)
    matchup_db.create_matchup("alice", "erin", "STD")

    assert matchup_db.get_user_record("alice") == {"wins": 1, "losses": 1, "ties": 1}
    assert matchup_db.get_user_record("nobody") == {"wins": 0, "losses": 0, "ties": 0}


def test_status_follows_both_stored_confirmations(matchup_db):
    matchup = matchup_db.create_matchup("alice", "bob", "STD")

    matchup_db.update_matchup_side(matchup.id, 2, confirmed=True)
    assert matchup_db.get_matchup_by_id(matchup.id).status == PENDING

    matchup_db.update_matchup_side(matchup.id, 1, confirmed=True)
    assert matchup_db.get_matchup_by_id(matchup.id).status == ACTIVE

    matchup_db.update_matchup_side(matchup.id, 1, settings=RosterSettings(k=0))
    reopened = matchup_db.get_matchup_by_id(matchup.id)
    assert reopened.status == PENDING
    assert not reopened.user1_confirmed
    assert reopened.user2_confirmed


def test_pair_and_format_are_unique_in_either_order(matchup_db):
    matchup_db.create_matchup("alice", "bob", "STD")

    with pytest.raises(sqlite3.IntegrityError):
        matchup_db.create_matchup("bob", "alice", "STD")


def test_get_or_create_returns_row_written_by_concurrent_creator(matchup_db, monkeypatch):
    winner = matchup_db.create_matchup("alice", "bob", "STD")
    real_get_matchup = matchup_db.get_matchup
    lookups = []

    def _missed_first_lookup(*args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_get_matchup(*args)

    monkeypatch.setattr(matchup_db, "get_matchup", _missed_first_lookup)

    matchup = matchup_db.get_or_create_matchup("bob", "alice", "STD")

    assert matchup.id == winner.id
    assert len(lookups) == 2
    cur = matchup_db.conn.execute("SELECT COUNT(*) FROM matchups")
    assert cur.fetchone()[0] == 1
