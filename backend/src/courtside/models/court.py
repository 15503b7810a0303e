"""Court status and queue snapshot models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from courtside.models.team import Team, format_time, parse_time, utcnow


class CourtMode(str, Enum):
    REGULAR = "regular"
    CHAMPION_RETURN = "champion-return"


@dataclass
class CourtStatus:
    """Singleton court state. Clients hold a read-only replica."""

    is_open: bool = True
    mode: CourtMode = CourtMode.REGULAR
    timezone: str = "Asia/Bangkok"
    cooldown_end: datetime | None = None
    current_time: datetime = field(default_factory=utcnow)
    active_matches: int = 0
    revision: int = 0

    def to_dict(self) -> dict:
        return {
            "isOpen": self.is_open,
            "mode": self.mode.value,
            "timezone": self.timezone,
            "cooldownEnd": format_time(self.cooldown_end),
            "currentTime": format_time(self.current_time),
            "activeMatches": self.active_matches,
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CourtStatus":
        return cls(
            is_open=data.get("isOpen", True),
            mode=CourtMode(data.get("mode", CourtMode.REGULAR.value)),
            timezone=data.get("timezone", "Asia/Bangkok"),
            cooldown_end=parse_time(data.get("cooldownEnd")),
            current_time=parse_time(data.get("currentTime")) or utcnow(),
            active_matches=data.get("activeMatches", 0),
            revision=data.get("revision", 0),
        )


@dataclass
class QueueSnapshot:
    """Ordered waiting teams. Insertion order is queue order."""

    teams: list[Team] = field(default_factory=list)
    capacity: int = 10
    revision: int = 0
    event: str | None = None

    @property
    def total_teams(self) -> int:
        return len(self.teams)

    @property
    def available_slots(self) -> int:
        return max(0, self.capacity - len(self.teams))

    def to_dict(self) -> dict:
        return {
            "teams": [team.to_dict() for team in self.teams],
            "totalTeams": self.total_teams,
            "availableSlots": self.available_slots,
            "maxSize": self.capacity,
            "revision": self.revision,
            "event": self.event,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QueueSnapshot":
        teams = [Team.from_dict(t) for t in data.get("teams") or []]
        capacity = data.get("maxSize")
        if capacity is None:
            capacity = len(teams) + data.get("availableSlots", 0)
        return cls(
            teams=teams,
            capacity=capacity,
            revision=data.get("revision", 0),
            event=data.get("event"),
        )
