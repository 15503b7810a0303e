"""Match model and result-confirmation state machine table."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from courtside.models.team import Team, format_time, parse_time, utcnow


class MatchStatus(str, Enum):
    """Lifecycle of a match on the court."""

    ACTIVE = "active"  # Scores may change
    CONFIRMING = "confirming"  # Target reached, awaiting both teams
    COMPLETED = "completed"  # Agreed, or force-resolved
    DISPUTED = "disputed"  # Confirmations disagree
    TIMEOUT_RESOLVED = "timeout_resolved"  # Window elapsed, resolved unilaterally


class MatchType(str, Enum):
    REGULAR = "regular"
    CHAMPION_RETURN = "champion-return"


class MatchEvent(str, Enum):
    """Delta kinds carried by `match-updated`."""

    MATCH_STARTED = "match_started"
    SCORE_UPDATED = "score_updated"
    MATCH_ENDED = "match_ended"
    CONFIRMATION_RECEIVED = "confirmation_received"
    MATCH_COMPLETED = "match_completed"
    MATCH_DISPUTED = "match_disputed"
    MATCH_TIMEOUT_RESOLVED = "match_timeout_resolved"
    MATCH_FORCE_RESOLVED = "match_force_resolved"
    MATCH_UPDATED_BY_ADMIN = "match_updated_by_admin"


# Valid organic transitions: {current: {next, ...}}. Force-resolve is handled separately.
TRANSITIONS: dict[MatchStatus, set[MatchStatus]] = {
    MatchStatus.ACTIVE: {MatchStatus.CONFIRMING},
    MatchStatus.CONFIRMING: {
        MatchStatus.COMPLETED,
        MatchStatus.DISPUTED,
        MatchStatus.TIMEOUT_RESOLVED,
    },
    # Only reachable when disputes are not parked
    MatchStatus.DISPUTED: {MatchStatus.TIMEOUT_RESOLVED},
    MatchStatus.COMPLETED: set(),
    MatchStatus.TIMEOUT_RESOLVED: set(),
}


def can_transition(current: MatchStatus, target: MatchStatus, forced: bool = False) -> bool:
    """Check whether `current -> target` is a legal transition.

    A forced transition is the administrative force-resolve, which may move any
    match that is not already completed to COMPLETED.
    """
    if current == target:
        return True
    if forced:
        return target == MatchStatus.COMPLETED and current != MatchStatus.COMPLETED
    return target in TRANSITIONS.get(current, set())


@dataclass
class Confirmation:
    """Per-team result acknowledgement flags."""

    team1: bool = False
    team2: bool = False

    @property
    def both(self) -> bool:
        return self.team1 and self.team2

    def to_dict(self) -> dict:
        return {"team1": self.team1, "team2": self.team2}


@dataclass
class Match:
    """A match between exactly two teams.

    `team1`/`team2` are detached copies taken when the match was created; the
    queue service owns the canonical team records.
    """

    id: str
    team1: Team
    team2: Team
    score1: int = 0
    score2: int = 0
    target_score: int = 21
    match_type: MatchType = MatchType.REGULAR
    status: MatchStatus = MatchStatus.ACTIVE
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    confirmed: Confirmation = field(default_factory=Confirmation)
    revision: int = 0

    # Confirmation protocol bookkeeping
    confirmation_deadline: datetime | None = None
    confirming_score: tuple[int, int] | None = None
    reported_scores: dict[str, tuple[int, int]] = field(default_factory=dict)
    dispute_parked: bool = False

    # Resolution
    winner_id: str | None = None
    resolved_by: str | None = None

    @property
    def is_terminal(self) -> bool:
        if self.status in (MatchStatus.COMPLETED, MatchStatus.TIMEOUT_RESOLVED):
            return True
        return self.status == MatchStatus.DISPUTED and self.dispute_parked

    @property
    def score_line(self) -> str:
        return f"{self.score1}-{self.score2}"

    @property
    def has_reached_target(self) -> bool:
        return self.score1 >= self.target_score or self.score2 >= self.target_score

    def has_team(self, team_id: str) -> bool:
        return team_id in (self.team1.id, self.team2.id)

    def side_of(self, team_id: str) -> str | None:
        """Return "team1"/"team2" for a participant, else None."""
        if team_id == self.team1.id:
            return "team1"
        if team_id == self.team2.id:
            return "team2"
        return None

    def leader(self, score: tuple[int, int] | None = None) -> Team:
        """Team ahead on `score` (current score by default); team1 on a tie."""
        score1, score2 = score if score is not None else (self.score1, self.score2)
        return self.team2 if score2 > score1 else self.team1

    def opponent_of(self, team_id: str) -> Team:
        return self.team2 if team_id == self.team1.id else self.team1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "team1": self.team1.to_dict(),
            "team2": self.team2.to_dict(),
            "score1": self.score1,
            "score2": self.score2,
            "targetScore": self.target_score,
            "matchType": self.match_type.value,
            "status": self.status.value,
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
            "confirmed": self.confirmed.to_dict(),
            "revision": self.revision,
            "confirmationDeadline": format_time(self.confirmation_deadline),
            "confirmingScore": list(self.confirming_score) if self.confirming_score else None,
            "reportedScores": {
                team_id: {"score1": s1, "score2": s2}
                for team_id, (s1, s2) in self.reported_scores.items()
            },
            "disputeParked": self.dispute_parked,
            "isTerminal": self.is_terminal,
            "winnerId": self.winner_id,
            "resolvedBy": self.resolved_by,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Match":
        confirmed = data.get("confirmed") or {}
        confirming_score = data.get("confirmingScore")
        return cls(
            id=data["id"],
            team1=Team.from_dict(data["team1"]),
            team2=Team.from_dict(data["team2"]),
            score1=data.get("score1", 0),
            score2=data.get("score2", 0),
            target_score=data.get("targetScore", 21),
            match_type=MatchType(data.get("matchType", MatchType.REGULAR.value)),
            status=MatchStatus(data.get("status", MatchStatus.ACTIVE.value)),
            start_time=parse_time(data.get("startTime")) or utcnow(),
            end_time=parse_time(data.get("endTime")),
            confirmed=Confirmation(
                team1=bool(confirmed.get("team1", False)),
                team2=bool(confirmed.get("team2", False)),
            ),
            revision=data.get("revision", 0),
            confirmation_deadline=parse_time(data.get("confirmationDeadline")),
            confirming_score=tuple(confirming_score) if confirming_score else None,
            reported_scores={
                team_id: (claim["score1"], claim["score2"])
                for team_id, claim in (data.get("reportedScores") or {}).items()
            },
            dispute_parked=data.get("disputeParked", False),
            winner_id=data.get("winnerId"),
            resolved_by=data.get("resolvedBy"),
        )
