"""DuckDB archive of matches and their event history."""

import json
import logging

import duckdb

from courtside.models.match import Match
from courtside.models.team import format_time, utcnow

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS matches (
        id VARCHAR PRIMARY KEY,
        team1_id VARCHAR NOT NULL,
        team1_name VARCHAR NOT NULL,
        team2_id VARCHAR NOT NULL,
        team2_name VARCHAR NOT NULL,
        score1 INTEGER NOT NULL,
        score2 INTEGER NOT NULL,
        target_score INTEGER NOT NULL,
        match_type VARCHAR NOT NULL,
        status VARCHAR NOT NULL,
        winner_id VARCHAR,
        resolved_by VARCHAR,
        start_time VARCHAR NOT NULL,
        end_time VARCHAR,
        revision INTEGER NOT NULL
    )
    """,
    "CREATE SEQUENCE IF NOT EXISTS match_event_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS match_events (
        seq BIGINT PRIMARY KEY DEFAULT nextval('match_event_seq'),
        match_id VARCHAR NOT NULL,
        event_type VARCHAR NOT NULL,
        event_data VARCHAR NOT NULL,
        created_at VARCHAR NOT NULL
    )
    """,
]


class MatchArchive:
    """Data access layer for the match history.

    Live state stays in the services; this only records what happened. One
    connection is held for the archive's lifetime, so ":memory:" works.
    """

    def __init__(self, database_path: str = ":memory:"):
        """Open (or create) the archive.

        Args:
            database_path: DuckDB file path, or ":memory:" for a process-local archive
        """
        self._db_path = database_path
        self._conn = duckdb.connect(database_path)
        for statement in SCHEMA:
            self._conn.execute(statement)
        logger.info(f"MatchArchive: Using {database_path}")

    def close(self) -> None:
        self._conn.close()

    def save_match(self, match: Match) -> None:
        """Insert or replace the archived copy of a match."""
        self._conn.execute(
            """
            INSERT OR REPLACE INTO matches VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                match.id,
                match.team1.id,
                match.team1.name,
                match.team2.id,
                match.team2.name,
                match.score1,
                match.score2,
                match.target_score,
                match.match_type.value,
                match.status.value,
                match.winner_id,
                match.resolved_by,
                format_time(match.start_time),
                format_time(match.end_time),
                match.revision,
            ],
        )

    def record_event(self, match_id: str, event_type: str, event_data: dict) -> None:
        self._conn.execute(
            "INSERT INTO match_events (match_id, event_type, event_data, created_at) VALUES (?, ?, ?, ?)",
            [match_id, event_type, json.dumps(event_data), format_time(utcnow())],
        )

    def get_match(self, match_id: str) -> dict | None:
        """Archived summary of a match, or None."""
        cursor = self._conn.execute("SELECT * FROM matches WHERE id = ?", [match_id])
        columns = [col[0] for col in cursor.description]
        row = cursor.fetchone()
        if row is None:
            return None
        return self._summary(dict(zip(columns, row)))

    def get_events(self, match_id: str) -> list[dict]:
        """Event history for a match, oldest first."""
        rows = self._conn.execute(
            """
            SELECT seq, match_id, event_type, event_data, created_at
            FROM match_events
            WHERE match_id = ?
            ORDER BY seq
            """,
            [match_id],
        ).fetchall()
        return [
            {
                "id": seq,
                "matchId": mid,
                "eventType": event_type,
                "eventData": json.loads(event_data),
                "timestamp": created_at,
            }
            for seq, mid, event_type, event_data, created_at in rows
        ]

    def recent_matches(self, limit: int = 10) -> list[dict]:
        cursor = self._conn.execute(
            "SELECT * FROM matches ORDER BY start_time DESC LIMIT ?",
            [limit],
        )
        columns = [col[0] for col in cursor.description]
        return [self._summary(dict(zip(columns, row))) for row in cursor.fetchall()]

    def team_record(self, team_id: str) -> dict:
        """Wins and matches played by a team across the archive."""
        played, wins = self._conn.execute(
            """
            SELECT
                COUNT(*),
                COALESCE(SUM(CASE WHEN winner_id = ? THEN 1 ELSE 0 END), 0)
            FROM matches
            WHERE team1_id = ? OR team2_id = ?
            """,
            [team_id, team_id, team_id],
        ).fetchone()
        return {"teamId": team_id, "matchesPlayed": int(played), "wins": int(wins)}

    @staticmethod
    def _summary(row: dict) -> dict:
        return {
            "id": row["id"],
            "team1": {"id": row["team1_id"], "name": row["team1_name"]},
            "team2": {"id": row["team2_id"], "name": row["team2_name"]},
            "score1": row["score1"],
            "score2": row["score2"],
            "targetScore": row["target_score"],
            "matchType": row["match_type"],
            "status": row["status"],
            "winnerId": row["winner_id"],
            "resolvedBy": row["resolved_by"],
            "startTime": row["start_time"],
            "endTime": row["end_time"],
            "revision": row["revision"],
        }
