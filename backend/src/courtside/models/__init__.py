"""Data models for the court queue and match coordinator."""

from courtside.models.connection import ConnectionState, ConnectionStatus
from courtside.models.court import CourtMode, CourtStatus, QueueSnapshot
from courtside.models.match import (
    Confirmation,
    Match,
    MatchEvent,
    MatchStatus,
    MatchType,
    can_transition,
)
from courtside.models.team import Team, TeamStatus

__all__ = [
    "ConnectionState",
    "ConnectionStatus",
    "CourtMode",
    "CourtStatus",
    "QueueSnapshot",
    "Confirmation",
    "Match",
    "MatchEvent",
    "MatchStatus",
    "MatchType",
    "can_transition",
    "Team",
    "TeamStatus",
]
