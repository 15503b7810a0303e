"""Error taxonomy shared by the authority and the client library."""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error kinds delivered in `error` events and envelopes."""

    # Input / validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TEAM_NAME_EXISTS = "TEAM_NAME_EXISTS"
    QUEUE_FULL = "QUEUE_FULL"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    TEAM_NOT_IN_QUEUE = "TEAM_NOT_IN_QUEUE"
    COURT_CLOSED = "COURT_CLOSED"

    # Match protocol
    MATCH_NOT_FOUND = "MATCH_NOT_FOUND"
    MATCH_NOT_CONFIRMING = "MATCH_NOT_CONFIRMING"
    MATCH_NOT_ACTIVE = "MATCH_NOT_ACTIVE"
    TEAM_NOT_IN_MATCH = "TEAM_NOT_IN_MATCH"
    MATCH_IN_PROGRESS = "MATCH_IN_PROGRESS"
    NOT_ENOUGH_TEAMS = "NOT_ENOUGH_TEAMS"
    MATCH_ALREADY_COMPLETED = "MATCH_ALREADY_COMPLETED"

    # Transport / session
    NETWORK_ERROR = "NETWORK_ERROR"
    NOT_CONNECTED = "NOT_CONNECTED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INVALID_ROOM = "INVALID_ROOM"
    ADMIN_REQUIRED = "ADMIN_REQUIRED"
    UNKNOWN_ACTION = "UNKNOWN_ACTION"
    UNKNOWN_EVENT = "UNKNOWN_EVENT"

    # Authority-internal
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status used when a code is surfaced through the REST layer
HTTP_STATUS = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.TEAM_NAME_EXISTS: 409,
    ErrorCode.QUEUE_FULL: 409,
    ErrorCode.TEAM_NOT_FOUND: 404,
    ErrorCode.TEAM_NOT_IN_QUEUE: 400,
    ErrorCode.COURT_CLOSED: 409,
    ErrorCode.MATCH_NOT_FOUND: 404,
    ErrorCode.MATCH_NOT_CONFIRMING: 400,
    ErrorCode.MATCH_NOT_ACTIVE: 400,
    ErrorCode.TEAM_NOT_IN_MATCH: 400,
    ErrorCode.MATCH_IN_PROGRESS: 409,
    ErrorCode.NOT_ENOUGH_TEAMS: 409,
    ErrorCode.MATCH_ALREADY_COMPLETED: 400,
    ErrorCode.NETWORK_ERROR: 503,
    ErrorCode.NOT_CONNECTED: 503,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.INVALID_ROOM: 400,
    ErrorCode.ADMIN_REQUIRED: 403,
    ErrorCode.UNKNOWN_ACTION: 400,
    ErrorCode.UNKNOWN_EVENT: 400,
    ErrorCode.INTERNAL_ERROR: 500,
}


class CourtsideError(Exception):
    """A rejected action. Non-fatal; the affected state is left unchanged."""

    def __init__(self, code: ErrorCode, message: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.code, 400)

    def to_dict(self) -> dict:
        data = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data

    def __repr__(self) -> str:
        return f"CourtsideError({self.code.value}, {self.message!r})"
