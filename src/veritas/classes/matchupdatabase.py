import json
import logging
import sqlite3
from collections.abc import Iterable, Sequence
from typing import Any

from veritas.classes.matchup import ACTIVE, FINAL, PENDING, Matchup
from veritas.classes.player import Player
from veritas.classes.roster import RosterSettings
from veritas.classes.wizard import RankingRecord

_UNSET = object()

# sqlite caps bound parameters per statement
_IN_CHUNK = 500

_PLAYER_COLUMNS = (
    "id",
    "first_name",
    "last_name",
    "position",
    "team",
    "active",
    "projections",
    "current_week_stats",
    "stats_week",
)

_MATCHUP_COLUMNS = (
    "id",
    "user1_id",
    "user2_id",
    "scoring_type",
    "status",
    "user1_confirmed",
    "user2_confirmed",
    "user1_settings",
    "user2_settings",
    "user1_score",
    "user2_score",
    "winner_id",
)


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


def _loads(value: str | None, default: Any) -> Any:
    if not value:
        return default
    return json.loads(value)


class MatchupDatabase:
    def __init__(self, sqlite3_database: str, logger: logging.Logger | None = None) -> None:
        """
        Initialize MatchupDatabase with SQLite database file.

        Args:
            sqlite3_database (str): Path to SQLite database file.
            logger (logging.Logger, optional): Logger instance.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.sqlite_path = sqlite3_database
        self.logger.info("Connecting to matchups DB %s", self.sqlite_path)
        # the live-score poller writes from its own thread
        self.conn: sqlite3.Connection = sqlite3.connect(sqlite3_database, check_same_thread=False)

    def create_tables(self) -> None:
        """
        Create the players, rankings and matchups tables if they do not exist.
        """
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS "nfl_players" (
                "id"    TEXT PRIMARY KEY,
                "first_name"    TEXT NOT NULL DEFAULT '',
                "last_name"     TEXT NOT NULL DEFAULT '',
                "position"      varchar(4) NOT NULL,
                "team"  varchar(4) NOT NULL DEFAULT 'FA',
                "active"        INTEGER NOT NULL DEFAULT 1,
                "projections"   TEXT NOT NULL DEFAULT '{}',
                "current_week_stats"    TEXT NOT NULL DEFAULT '{}',
                "stats_week"    INTEGER,
                "updated_at"    datetime NOT NULL DEFAULT (datetime('now', 'localtime'))
            );
            CREATE TABLE IF NOT EXISTS "user_rankings" (
                "user_id"       TEXT NOT NULL,
                "position"      varchar(10) NOT NULL,
                "scoring_type"  varchar(4) NOT NULL,
                "ranked_ids"    TEXT NOT NULL DEFAULT '[]',
                "comparison_state"      TEXT NOT NULL DEFAULT '{}',
                "updated_at"    datetime NOT NULL DEFAULT (datetime('now', 'localtime')),
                UNIQUE ("user_id", "position", "scoring_type")
            );
            CREATE TABLE IF NOT EXISTS "matchups" (
                "id"    INTEGER PRIMARY KEY AUTOINCREMENT,
                "user1_id"      TEXT NOT NULL,
                "user2_id"      TEXT NOT NULL,
                "scoring_type"  varchar(4) NOT NULL DEFAULT 'STD',
                "status"        TEXT NOT NULL DEFAULT 'pending',
                "user1_confirmed"       INTEGER NOT NULL DEFAULT 0,
                "user2_confirmed"       INTEGER NOT NULL DEFAULT 0,
                "user1_settings"        TEXT NOT NULL DEFAULT '{}',
                "user2_settings"        TEXT NOT NULL DEFAULT '{}',
                "user1_score"   REAL,
                "user2_score"   REAL,
                "winner_id"     TEXT,
                "updated_at"    datetime NOT NULL DEFAULT (datetime('now', 'localtime'))
            );
            CREATE INDEX IF NOT EXISTS idx_matchups_status ON matchups(status);
            CREATE INDEX IF NOT EXISTS idx_matchups_users ON matchups(user1_id, user2_id);
            CREATE UNIQUE INDEX IF NOT EXISTS idx_matchups_pair
                ON matchups(min(user1_id, user2_id), max(user1_id, user2_id), scoring_type);
            """
        )
        self.conn.commit()

    def close(self) -> None:
        """
        Close the database connection.
        """
        self.conn.close()

    # -----------------------
    # Players
    # -----------------------

    @staticmethod
    def _player_from_row(row: Sequence[Any]) -> Player:
        pid, first_name, last_name, position, team, active, projections, stats, stats_week = row
        return Player(
            id=pid,
            position=position,
            first_name=first_name,
            last_name=last_name,
            team=team,
            active=bool(active),
            projections=_loads(projections, {}),
            current_week_stats=_loads(stats, {}),
            stats_week=stats_week,
        )

    def upsert_players(self, players: Iterable[Player]) -> int:
        """
        Insert players or refresh every column of existing ones.

        Returns:
            int: Number of players written.
        """
        sql = """
        INSERT INTO nfl_players ({cols}) VALUES ({marks})
        ON CONFLICT (id) DO UPDATE SET
            first_name=excluded.first_name,
            last_name=excluded.last_name,
            position=excluded.position,
            team=excluded.team,
            active=excluded.active,
            projections=excluded.projections,
            current_week_stats=excluded.current_week_stats,
            stats_week=excluded.stats_week,
            updated_at=datetime('now', 'localtime')
        """.format(cols=", ".join(_PLAYER_COLUMNS), marks=", ".join("?" for _ in _PLAYER_COLUMNS))
        rows = [
            (
                p.id,
                p.first_name,
                p.last_name,
                p.position,
                p.team,
                int(p.active),
                _dumps(p.projections),
                _dumps(p.current_week_stats),
                p.stats_week,
            )
            for p in players
        ]
        self.conn.executemany(sql, rows)
        self.conn.commit()
        return len(rows)

    def update_player_stats(self, stats: Sequence[tuple[str, dict[str, float], int]]) -> int:
        """
        Write current-week stat lines for known players.

        Args:
            stats: (player_id, {std, ppr, half}, week) tuples.

        Returns:
            int: Number of player rows updated.
        """
        cur = self.conn.cursor()
        updated = 0
        for player_id, points, week in stats:
            cur.execute(
                "UPDATE nfl_players SET current_week_stats=?, stats_week=?, "
                "updated_at=datetime('now', 'localtime') WHERE id=?",
                (_dumps(points), week, player_id),
            )
            updated += cur.rowcount
        self.conn.commit()
        return updated

    def get_players(self, player_ids: Iterable[str]) -> dict[str, Player]:
        ids = list(dict.fromkeys(player_ids))
        players: dict[str, Player] = {}
        cur = self.conn.cursor()
        for start in range(0, len(ids), _IN_CHUNK):
            chunk = ids[start : start + _IN_CHUNK]
            sql = "SELECT {} FROM nfl_players WHERE id IN ({})".format(
                ", ".join(_PLAYER_COLUMNS), ", ".join("?" for _ in chunk)
            )
            cur.execute(sql, chunk)
            for row in cur.fetchall():
                player = self._player_from_row(row)
                players[player.id] = player
        self.logger.debug("loaded %d of %d requested players", len(players), len(ids))
        return players

    def get_players_by_positions(self, positions: Sequence[str], active_only: bool = True) -> list[Player]:
        sql = "SELECT {} FROM nfl_players WHERE position IN ({})".format(
            ", ".join(_PLAYER_COLUMNS), ", ".join("?" for _ in positions)
        )
        if active_only:
            sql += " AND active=1"
        cur = self.conn.cursor()
        cur.execute(sql + " ORDER BY id", list(positions))
        return [self._player_from_row(row) for row in cur.fetchall()]

    # -----------------------
    # Rankings
    # -----------------------

    def save_ranking(self, record: RankingRecord) -> None:
        """
        Upsert a user's ranking for one position and scoring format.
        """
        self.conn.execute(
            """
            INSERT INTO user_rankings (user_id, position, scoring_type, ranked_ids, comparison_state)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (user_id, position, scoring_type) DO UPDATE SET
                ranked_ids=excluded.ranked_ids,
                comparison_state=excluded.comparison_state,
                updated_at=datetime('now', 'localtime')
            """,
            (
                record.user_id,
                record.position,
                record.scoring_type,
                _dumps(record.ranked_ids),
                _dumps(record.comparison_state),
            ),
        )
        self.conn.commit()

    def load_ranking(self, user_id: str, position: str, scoring_type: str) -> RankingRecord | None:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT ranked_ids, comparison_state FROM user_rankings "
            "WHERE user_id=? AND position=? AND scoring_type=? LIMIT 1",
            (user_id, position, scoring_type),
        )
        row = cur.fetchone()
        if row is None:
            return None
        return RankingRecord(
            user_id=user_id,
            position=position,
            scoring_type=scoring_type,
            ranked_ids=_loads(row[0], []),
            comparison_state=_loads(row[1], {}),
        )

    def reset_ranking(self, user_id: str, position: str, scoring_type: str) -> int:
        """
        Clear the stored comparison state. The ranked order is left as it is.

        Returns:
            int: Number of rows updated.
        """
        cur = self.conn.execute(
            "UPDATE user_rankings SET comparison_state='{}', updated_at=datetime('now', 'localtime') "
            "WHERE user_id=? AND position=? AND scoring_type=?",
            (user_id, position, scoring_type),
        )
        self.conn.commit()
        return cur.rowcount

    def get_ranked_ids(self, user_id: str, scoring_type: str) -> dict[str, list[str]]:
        """Return {position: ranked player ids} for every ranking the user saved in a format."""
        cur = self.conn.cursor()
        cur.execute(
            "SELECT position, ranked_ids FROM user_rankings WHERE user_id=? AND scoring_type=?",
            (user_id, scoring_type),
        )
        return {position: _loads(ids, []) for position, ids in cur.fetchall()}

    # -----------------------
    # Matchups
    # -----------------------

    @staticmethod
    def _matchup_from_row(row: Sequence[Any]) -> Matchup:
        (
            matchup_id,
            user1_id,
            user2_id,
            scoring_type,
            status,
            user1_confirmed,
            user2_confirmed,
            user1_settings,
            user2_settings,
            user1_score,
            user2_score,
            winner_id,
        ) = row
        return Matchup(
            id=matchup_id,
            user1_id=user1_id,
            user2_id=user2_id,
            scoring_type=scoring_type,
            status=status,
            user1_confirmed=bool(user1_confirmed),
            user2_confirmed=bool(user2_confirmed),
            user1_settings=RosterSettings.from_mapping(_loads(user1_settings, {})),
            user2_settings=RosterSettings.from_mapping(_loads(user2_settings, {})),
            user1_score=user1_score,
            user2_score=user2_score,
            winner_id=winner_id,
        )

    def _select_matchups(self, where: str, params: Sequence[Any]) -> list[Matchup]:
        cur = self.conn.cursor()
        cur.execute("SELECT {} FROM matchups WHERE {}".format(", ".join(_MATCHUP_COLUMNS), where), params)
        return [self._matchup_from_row(row) for row in cur.fetchall()]

    def get_matchup_by_id(self, matchup_id: int) -> Matchup | None:
        rows = self._select_matchups("id=? LIMIT 1", (matchup_id,))
        return rows[0] if rows else None

    def get_matchup(self, user_a: str, user_b: str, scoring_type: str) -> Matchup | None:
        """
        Find the matchup for an unordered user pair and scoring format.
        """
        rows = self._select_matchups(
            "scoring_type=? AND ((user1_id=? AND user2_id=?) OR (user1_id=? AND user2_id=?)) "
            "ORDER BY id LIMIT 1",
            (scoring_type, user_a, user_b, user_b, user_a),
        )
        return rows[0] if rows else None

    def create_matchup(self, user1_id: str, user2_id: str, scoring_type: str) -> Matchup:
        defaults = _dumps(RosterSettings().to_dict())
        cur = self.conn.execute(
            "INSERT INTO matchups (user1_id, user2_id, scoring_type, user1_settings, user2_settings) "
            "VALUES (?, ?, ?, ?, ?)",
            (user1_id, user2_id, scoring_type, defaults, defaults),
        )
        self.conn.commit()
        self.logger.info("created matchup %d for %s vs %s (%s)", cur.lastrowid, user1_id, user2_id, scoring_type)
        return self.get_matchup_by_id(cur.lastrowid)

    def get_or_create_matchup(self, user_id: str, friend_id: str, scoring_type: str) -> Matchup:
        """
        Return the pair's matchup for a format, creating it when missing.

        A concurrent creator can win the insert; the unique pair index rejects
        ours and the row it wrote is returned instead.
        """
        existing = self.get_matchup(user_id, friend_id, scoring_type)
        if existing is not None:
            return existing
        try:
            return self.create_matchup(user_id, friend_id, scoring_type)
        except sqlite3.IntegrityError:
            self.conn.rollback()
            self.logger.info("matchup %s vs %s (%s) already created, reloading", user_id, friend_id, scoring_type)
            return self.get_matchup(user_id, friend_id, scoring_type)

    def get_active_matchups(self) -> list[Matchup]:
        return self._select_matchups("status=? ORDER BY id", (ACTIVE,))

    def update_matchup_side(
        self,
        matchup_id: int,
        side: int,
        *,
        settings: RosterSettings | object = _UNSET,
        confirmed: bool | object = _UNSET,
    ) -> int:
        """
        Write one side's settings/confirmation.

        Status is derived in the same statement from this side's new flag and
        the other side's stored flag, so concurrent confirms from both sides end
        up active. A settings change always clears this side's confirmation.
        Final matchups are never touched.

        Returns:
            int: Number of rows updated (0 when the matchup is missing or final).
        """
        if side not in (1, 2):
            raise ValueError(f"side must be 1 or 2, got {side}")
        assignments: list[str] = []
        params: list[Any] = []
        if settings is not _UNSET:
            assignments.append(f"user{side}_settings=?")
            params.append(_dumps(settings.to_dict()))
            if confirmed is _UNSET:
                confirmed = False
        if confirmed is _UNSET:
            return 0

        flag = int(bool(confirmed))
        other = 2 if side == 1 else 1
        assignments.append(f"user{side}_confirmed=?")
        params.append(flag)
        assignments.append(f"status=CASE WHEN ? = 1 AND user{other}_confirmed = 1 THEN ? ELSE ? END")
        params.extend((flag, ACTIVE, PENDING))

        assignments.append("updated_at=datetime('now', 'localtime')")
        cur = self.conn.execute(
            "UPDATE matchups SET {} WHERE id=? AND status!=?".format(", ".join(assignments)),
            (*params, matchup_id, FINAL),
        )
        self.conn.commit()
        return cur.rowcount

    def finalize_matchup(self, matchup: Matchup) -> bool:
        """
        Persist final scores and winner. Only applies while the stored matchup is active.

        Returns:
            bool: True if this call moved the matchup to final.
        """
        cur = self.conn.execute(
            "UPDATE matchups SET status=?, user1_score=?, user2_score=?, winner_id=?, "
            "updated_at=datetime('now', 'localtime') WHERE id=? AND status=?",
            (FINAL, matchup.user1_score, matchup.user2_score, matchup.winner_id, matchup.id, ACTIVE),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def get_user_record(self, user_id: str) -> dict[str, int]:
        """
        Count wins, losses and ties across the user's final matchups.
        """
        cur = self.conn.cursor()
        cur.execute(
            """
            SELECT
                SUM(CASE WHEN winner_id = ? THEN 1 ELSE 0 END),
                SUM(CASE WHEN winner_id IS NOT NULL AND winner_id != ? THEN 1 ELSE 0 END),
                SUM(CASE WHEN winner_id IS NULL THEN 1 ELSE 0 END)
            FROM matchups
            WHERE status=? AND (user1_id=? OR user2_id=?)
            """,
            (user_id, user_id, FINAL, user_id, user_id),
        )
        wins, losses, ties = cur.fetchone()
        return {"wins": wins or 0, "losses": losses or 0, "ties": ties or 0}
