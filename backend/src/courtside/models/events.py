"""Channel event names, rooms and payload builders."""

from enum import Enum

from courtside.errors import CourtsideError
from courtside.models.court import CourtStatus, QueueSnapshot
from courtside.models.match import Match, MatchEvent
from courtside.models.team import format_time, utcnow

# Client -> server
JOIN_QUEUE = "join-queue"
LEAVE_QUEUE = "leave-queue"
CONFIRM_RESULT = "confirm-result"
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
ADMIN_ACTION = "admin-action"

# Server -> client
QUEUE_UPDATED = "queue-updated"
MATCH_UPDATED = "match-updated"
COURT_STATUS = "court-status"
NOTIFICATION = "notification"
ERROR = "error"


class Room(str, Enum):
    PUBLIC = "public"
    ADMIN = "admin"


class QueueEvent(str, Enum):
    """Causes annotated on `queue-updated`."""

    TEAM_JOINED = "team_joined"
    TEAM_LEFT = "team_left"
    TEAM_REMOVED = "team_removed"
    TEAM_PROMOTED = "team_promoted"
    TEAM_REQUEUED = "team_requeued"
    TEAM_RETURNED = "team_returned"
    QUEUE_REORDERED = "queue_reordered"
    TEAM_UPDATED = "team_updated"


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


def encode_frame(event: str, data: dict | None) -> dict:
    """Wire frame for both directions of the channel."""
    return {"event": event, "data": data if data is not None else {}}


def queue_update(snapshot: QueueSnapshot, event: QueueEvent, **extra) -> dict:
    payload = snapshot.to_dict()
    payload["event"] = event.value
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


def match_update(match: Match, event: MatchEvent, **extra) -> dict:
    payload = {"match": match.to_dict(), "event": event.value, "revision": match.revision}
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


def court_status(status: CourtStatus) -> dict:
    return status.to_dict()


def notification(
    kind: NotificationType,
    title: str,
    message: str,
    duration: int | None = None,
) -> dict:
    payload = {
        "type": kind.value,
        "title": title,
        "message": message,
        "timestamp": format_time(utcnow()),
    }
    if duration is not None:
        payload["duration"] = duration
    return payload


def error_event(error: CourtsideError, action: str | None = None) -> dict:
    payload = error.to_dict()
    if action:
        payload["action"] = action
    return payload
