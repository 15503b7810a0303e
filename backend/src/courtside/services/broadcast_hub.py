"""In-memory rooms and outbound fan-out for channel connections."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from courtside.models.events import Room, encode_frame
from courtside.models.team import utcnow

logger = logging.getLogger(__name__)

# publish(event_name, payload, room="public")
Publisher = Callable[..., None]

# Placed on an outbox to make its writer close the socket
CLOSE_SENTINEL = None


@dataclass
class ChannelConnection:
    """One connected client socket."""

    id: str
    websocket: Any = None
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    rooms: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=utcnow)
    overflowed: bool = False

    def send(self, event: str, data: dict) -> bool:
        """Queue a frame for the writer. Returns False if the client is too slow."""
        if self.overflowed:
            return False
        try:
            self.outbox.put_nowait(encode_frame(event, data))
            return True
        except asyncio.QueueFull:
            # Drop the backlog and close; the client catches up from snapshots
            self.overflowed = True
            while not self.outbox.empty():
                self.outbox.get_nowait()
            self.outbox.put_nowait(CLOSE_SENTINEL)
            logger.warning(f"Connection {self.id} outbox overflowed, closing")
            return False


class BroadcastHub:
    """Registry of live connections and the rooms they subscribe to.

    `publish` never awaits: it only enqueues frames, so a state mutation and the
    deltas it emits complete as one uninterrupted step on the event loop.
    """

    def __init__(self, outbox_size: int = 256):
        self.outbox_size = outbox_size
        self.connections: dict[str, ChannelConnection] = {}
        self.rooms: dict[str, set[str]] = {room.value: set() for room in Room}

    def register(self, websocket: Any = None) -> ChannelConnection:
        connection = ChannelConnection(
            id=uuid.uuid4().hex[:12],
            websocket=websocket,
            outbox=asyncio.Queue(maxsize=self.outbox_size),
        )
        self.connections[connection.id] = connection
        logger.info(f"Client connected: {connection.id}")
        return connection

    def unregister(self, connection_id: str) -> None:
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return
        for room in connection.rooms:
            self.rooms.get(room, set()).discard(connection_id)
        logger.info(f"Client disconnected: {connection_id}")

    def join(self, connection_id: str, room: str) -> None:
        connection = self.connections.get(connection_id)
        if connection is None:
            return
        connection.rooms.add(room)
        self.rooms.setdefault(room, set()).add(connection_id)
        logger.debug(f"Connection {connection_id} joined room: {room}")

    def leave(self, connection_id: str, room: str) -> None:
        connection = self.connections.get(connection_id)
        if connection is None:
            return
        connection.rooms.discard(room)
        self.rooms.get(room, set()).discard(connection_id)
        logger.debug(f"Connection {connection_id} left room: {room}")

    def in_room(self, connection_id: str, room: str) -> bool:
        return connection_id in self.rooms.get(room, set())

    def publish(self, event: str, data: dict, room: str = Room.PUBLIC.value) -> int:
        """Send an event to every connection in `room`. Returns the delivery count."""
        delivered = 0
        for connection_id in list(self.rooms.get(room, set())):
            connection = self.connections.get(connection_id)
            if connection and connection.send(event, data):
                delivered += 1
        logger.debug(f"{event} emitted to room {room} ({delivered} connections)")
        return delivered

    def stats(self) -> dict:
        return {
            "total": len(self.connections),
            "rooms": {room: len(members) for room, members in self.rooms.items()},
        }
