"""Shared fixtures and fakes."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from courtside.api.websockets.channel_ws import handle_frame
from courtside.client.transport import ChannelClosed
from courtside.config import Settings
from courtside.models.events import Room
from courtside.services.court_authority import CourtAuthority
from courtside.services.broadcast_hub import CLOSE_SENTINEL


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Settable clock for services that take `clock=`."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class Recorder:
    """Collects `publish(event, data, room)` calls."""

    def __init__(self):
        self.events: list[tuple[str, dict, str]] = []

    def __call__(self, event: str, data: dict, room: str = Room.PUBLIC.value) -> int:
        self.events.append((event, data, room))
        return 1

    def named(self, event: str) -> list[dict]:
        return [data for name, data, _ in self.events if name == event]

    def clear(self) -> None:
        self.events.clear()


class FakeChannel:
    """In-memory channel driven by the test."""

    def __init__(self):
        self.sent: list[dict] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send(self, text: str) -> None:
        if self.closed:
            raise ChannelClosed("closed")
        self.sent.append(json.loads(text))

    async def recv(self) -> str:
        item = await self.inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def push(self, event: str, data: dict) -> None:
        self.inbox.put_nowait(json.dumps({"event": event, "data": data}))

    def drop(self, reason: str = "connection lost") -> None:
        self.inbox.put_nowait(ChannelClosed(reason))

    def sent_events(self, event: str) -> list[dict]:
        return [frame["data"] for frame in self.sent if frame["event"] == event]


class HubChannel:
    """Client channel wired straight into an authority's broadcast hub."""

    def __init__(self, authority: CourtAuthority):
        self.authority = authority
        self.connection = authority.hub.register()
        authority.hub.join(self.connection.id, Room.PUBLIC.value)
        self.closed = False

    async def send(self, text: str) -> None:
        if self.closed:
            raise ChannelClosed("closed")
        handle_frame(self.authority, self.connection, text)

    async def recv(self) -> str:
        frame = await self.connection.outbox.get()
        if frame is CLOSE_SENTINEL:
            raise ChannelClosed("closed by server")
        return json.dumps(frame)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.authority.hub.unregister(self.connection.id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def settings():
    return Settings(
        archive_path=":memory:",
        confirmation_timeout_seconds=60.0,
        court_status_interval_seconds=3600.0,
    )


@pytest.fixture
async def authority(settings, clock):
    """Authority whose timers run on the test's event loop."""
    authority = CourtAuthority(settings, clock=clock)
    yield authority
    authority.shutdown()
