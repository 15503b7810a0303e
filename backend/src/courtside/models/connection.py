"""Client connection status model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ConnectionState(str, Enum):
    """States of the client channel connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"  # Retry budget exhausted, waiting for a manual retry


@dataclass(frozen=True)
class ConnectionStatus:
    """Read-only view of the connection. Only the connection manager builds these."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    last_error: str | None = None
    reconnect_attempts: int = 0
    last_connected_at: datetime | None = None

    @property
    def connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED
