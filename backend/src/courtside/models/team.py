"""Team model."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class TeamStatus(str, Enum):
    """Where a team currently is in the court rotation."""

    WAITING = "waiting"  # In the queue
    PLAYING = "playing"  # Referenced by the current non-terminal match
    COOLDOWN = "cooldown"  # Champion resting before returning to the queue


@dataclass
class Team:
    """A team registered with the court."""

    id: str
    name: str
    members: int
    status: TeamStatus = TeamStatus.WAITING
    wins: int = 0
    last_seen: datetime = field(default_factory=utcnow)
    position: int | None = None  # 1-based queue position while waiting
    contact_info: str | None = None
    cooldown_until: datetime | None = None

    def copy(self) -> "Team":
        """Detached copy, used wherever another entity holds a reference."""
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "members": self.members,
            "status": self.status.value,
            "wins": self.wins,
            "lastSeen": format_time(self.last_seen),
            "position": self.position,
            "contactInfo": self.contact_info,
            "cooldownUntil": format_time(self.cooldown_until),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Team":
        return cls(
            id=data["id"],
            name=data["name"],
            members=data["members"],
            status=TeamStatus(data.get("status", TeamStatus.WAITING.value)),
            wins=data.get("wins", 0),
            last_seen=parse_time(data.get("lastSeen")) or utcnow(),
            position=data.get("position"),
            contact_info=data.get("contactInfo"),
            cooldown_until=parse_time(data.get("cooldownUntil")),
        )
