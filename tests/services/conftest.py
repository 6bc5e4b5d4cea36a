import pytest
from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.player import Player
from veritas.classes.roster import RosterSettings
from veritas.classes.wizard import RankingRecord

ONLY_RB = RosterSettings(qb=0, rb=1, wr=0, te=0, flex=0, superflex=0, k=0, defense=0)


@pytest.fixture
def matchup_db():
    db = MatchupDatabase(":memory:")
    db.create_tables()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def active_matchup(matchup_db):
    """Alice (r1, 14 pts) vs Bob (r2, 9 pts) at one RB slot, already active."""
    matchup_db.upsert_players(
        [
            Player(id="r1", position="RB", first_name="Run", last_name="One", current_week_stats={"std": 14.0}, stats_week=3),
            Player(id="r2", position="RB", first_name="Run", last_name="Two", current_week_stats={"std": 9.0}, stats_week=3),
        ]
    )
    matchup_db.save_ranking(RankingRecord("alice", "RB", "STD", ranked_ids=["r1", "r2"]))
    matchup_db.save_ranking(RankingRecord("bob", "RB", "STD", ranked_ids=["r2", "r1"]))
    matchup = matchup_db.create_matchup("alice", "bob", "STD")
    matchup_db.update_matchup_side(matchup.id, 1, settings=ONLY_RB, confirmed=True)
    matchup_db.update_matchup_side(matchup.id, 2, settings=ONLY_RB, confirmed=True)
    return matchup_db.get_matchup_by_id(matchup.id)
