import sqlite3

import pytest
from veritas.classes.matchup import ACTIVE, FINAL, PENDING
from veritas.classes.outcome import Outcome
from veritas.classes.roster import RosterSettings
from veritas.services.matchup_service import MatchupService


@pytest.fixture
def service(matchup_db):
    return MatchupService(matchup_db)


def test_load_missing_matchup_fails(service):
    outcome = service.load(999)

    assert not outcome.success
    assert "999" in outcome.error


def test_refresh_lineups_uses_stored_rankings(service, active_matchup):
    outcome = service.refresh_lineups(active_matchup.id, current_week=3)

    assert outcome.success
    lineups = outcome.value
    assert [s.player_id for s in lineups.slots_a] == ["r1"]
    assert [s.player_id for s in lineups.slots_b] == ["r2"]
    assert (lineups.total_a, lineups.total_b) == (14.0, 9.0)


def test_finalize_scores_and_locks_once(service, active_matchup, caplog):
    caplog.set_level("INFO")

    first = service.finalize(active_matchup.id, current_week=3)
    second = service.finalize(active_matchup.id, current_week=3)

    assert first.success and second.success
    assert first.value.status == FINAL
    assert first.value.winner_id == "alice"
    assert (first.value.user1_score, first.value.user2_score) == (14.0, 9.0)
    assert second.value == service.load(active_matchup.id).value
    assert "winner: alice" in caplog.text


def test_finalize_leaves_pending_matchup_alone(service, matchup_db):
    matchup = matchup_db.create_matchup("alice", "bob", "STD")

    outcome = service.finalize(matchup.id, current_week=1)

    assert outcome.success
    assert outcome.value.status == PENDING


def test_confirm_reads_opponent_confirmation_before_writing(service, matchup_db):
    matchup = service.get_or_create("alice", "bob").value
    alice = service.open_session(matchup, "alice")
    bob = service.open_session(matchup, "bob")

    assert bob.confirm().success
    outcome = alice.confirm()

    assert outcome.success
    assert outcome.value.status == ACTIVE
    assert alice.status_label == "live"
    assert matchup_db.get_matchup_by_id(matchup.id).status == ACTIVE


def test_edit_writes_settings_and_reopens(service, matchup_db, active_matchup):
    session = service.open_session(active_matchup, "bob")

    outcome = session.update_position_count("RB", 1)

    assert outcome.success
    stored = matchup_db.get_matchup_by_id(active_matchup.id)
    assert stored.status == PENDING
    assert stored.user2_settings.get("RB") == 2
    assert not stored.user2_confirmed
    assert stored.user1_confirmed
    assert session.status_label == "waiting on you"


def test_failed_write_reverts_local_view(service, matchup_db, active_matchup, monkeypatch):
    session = service.open_session(active_matchup, "alice")

    def _locked(*_args, **_kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(matchup_db, "update_matchup_side", _locked)

    outcome = session.edit_settings(RosterSettings(rb=5))

    assert not outcome.success
    assert outcome.value == active_matchup
    assert session.matchup == active_matchup


def test_write_against_finalized_matchup_reverts(service, matchup_db, active_matchup):
    session = service.open_session(active_matchup, "alice")
    service.finalize(active_matchup.id, current_week=3)

    outcome = session.update_position_count("RB", 1)

    assert not outcome.success
    assert session.matchup == active_matchup
    assert matchup_db.get_matchup_by_id(active_matchup.id).status == FINAL


def test_no_op_edit_skips_the_store(service, matchup_db, active_matchup, monkeypatch):
    session = service.open_session(active_matchup, "alice")
    monkeypatch.setattr(matchup_db, "update_matchup_side", lambda *_a, **_k: pytest.fail("unexpected write"))

    outcome = session.update_position_count("QB", -1)

    assert outcome.success
    assert outcome.value is active_matchup


def test_user_record(service, active_matchup):
    service.finalize(active_matchup.id, current_week=3)

    assert service.user_record("bob").value == {"wins": 0, "losses": 1, "ties": 0}


def test_simultaneous_confirms_from_stale_views_activate(service, matchup_db, monkeypatch):
    snapshot = service.get_or_create("alice", "bob").value
    alice = service.open_session(snapshot, "alice")
    bob = service.open_session(snapshot, "bob")
    # both sides read the matchup before either confirmation lands
    monkeypatch.setattr(alice, "refresh", lambda: Outcome.ok(snapshot))
    monkeypatch.setattr(bob, "refresh", lambda: Outcome.ok(snapshot))

    assert alice.confirm().success
    outcome = bob.confirm()

    stored = matchup_db.get_matchup_by_id(snapshot.id)
    assert (stored.user1_confirmed, stored.user2_confirmed, stored.status) == (True, True, ACTIVE)
    assert outcome.value.status == ACTIVE
    assert bob.status_label == "live"
