"""Client-side channel connection with bounded, backed-off reconnection."""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Awaitable, Callable

from courtside.client.event_router import CONNECT, DISCONNECT, EventRouter
from courtside.client.transport import Channel, ChannelClosed, ChannelFactory, open_websocket
from courtside.models.connection import ConnectionState, ConnectionStatus
from courtside.models.events import JOIN_ROOM, Room, encode_frame
from courtside.models.team import utcnow

logger = logging.getLogger(__name__)

StatusListener = Callable[[ConnectionStatus], None]


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Delay after the `attempt`-th consecutive failure (1-based)."""
    return min(base * 2 ** (attempt - 1), maximum)


class ConnectionManager:
    """Owns the client's single channel to the authority.

    States: disconnected -> connecting -> connected; connected -> reconnecting
    on transport loss; reconnecting -> connected | failed. `failed` waits for
    `retry()`. Every inbound frame is handed to the event router, and the
    lifecycle is republished there as `connect` / `disconnect`.
    """

    def __init__(
        self,
        url: str,
        router: EventRouter,
        factory: ChannelFactory = open_websocket,
        reconnection_attempts: int = 5,
        reconnection_delay: float = 1.0,
        reconnection_delay_max: float = 5.0,
        connection_timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.router = router
        self.reconnection_attempts = reconnection_attempts
        self.reconnection_delay = reconnection_delay
        self.reconnection_delay_max = reconnection_delay_max
        self.connection_timeout = connection_timeout
        self._factory = factory
        self._sleep = sleep
        self._status = ConnectionStatus()
        self._listeners: list[StatusListener] = []
        self._changed = asyncio.Event()
        self._channel: Channel | None = None
        self._outgoing: asyncio.Queue[str] = asyncio.Queue()
        self._supervisor: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def connected(self) -> bool:
        return self._status.connected

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    async def wait_for_state(self, *states: ConnectionState, timeout: float | None = None) -> ConnectionStatus:
        """Block until the status enters one of `states`."""

        async def _wait() -> ConnectionStatus:
            while self._status.state not in states:
                self._changed.clear()
                await self._changed.wait()
            return self._status

        return await asyncio.wait_for(_wait(), timeout)

    def _set_status(self, **changes) -> None:
        self._status = replace(self._status, **changes)
        self._changed.set()
        for listener in list(self._listeners):
            try:
                listener(self._status)
            except Exception:
                logger.exception("Connection status listener failed")

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Start connecting. No-op if already connected or in progress."""
        if self._supervisor is not None and not self._supervisor.done():
            return
        self._set_status(state=ConnectionState.CONNECTING, reconnect_attempts=0, last_error=None)
        self._supervisor = asyncio.create_task(self._run())

    async def retry(self) -> None:
        """Manual retry after the attempt budget ran out."""
        if self._supervisor is not None and not self._supervisor.done():
            return
        logger.info("Manual reconnection requested")
        await self.connect()

    async def disconnect(self) -> None:
        """Close the channel and stop reconnecting."""
        was_connected = self.connected
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None and not supervisor.done():
            supervisor.cancel()
            try:
                await supervisor
            except asyncio.CancelledError:
                pass
        await self._close_channel()
        self._set_status(state=ConnectionState.DISCONNECTED)
        if was_connected:
            self.router.dispatch(DISCONNECT, {"reason": "client disconnect"})
        logger.info("Disconnected from server")

    def send(self, event: str, payload: dict | None = None) -> bool:
        """Queue an outbound event. Returns False, and queues nothing, when not connected."""
        if not self.connected or self._channel is None:
            logger.warning(f"Cannot send {event}: not connected")
            return False
        self._outgoing.put_nowait(json.dumps(encode_frame(event, payload)))
        return True

    # ------------------------------------------------------------------
    # Supervisor
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        attempts = 0
        while True:
            try:
                channel = await asyncio.wait_for(self._factory(self.url), self.connection_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                attempts += 1
                reason = str(e) or type(e).__name__
                logger.warning(f"Connection attempt {attempts} to {self.url} failed: {reason}")
                if attempts >= self.reconnection_attempts:
                    self._set_status(
                        state=ConnectionState.FAILED,
                        last_error=reason,
                        reconnect_attempts=attempts,
                    )
                    logger.error(f"Giving up after {attempts} attempts")
                    return
                self._set_status(
                    state=ConnectionState.RECONNECTING,
                    last_error=reason,
                    reconnect_attempts=attempts,
                )
                await self._sleep(
                    backoff_delay(attempts, self.reconnection_delay, self.reconnection_delay_max)
                )
                continue

            attempts = 0
            self._channel = channel
            self._set_status(
                state=ConnectionState.CONNECTED,
                last_error=None,
                reconnect_attempts=0,
                last_connected_at=utcnow(),
            )
            logger.info(f"Connected to {self.url}")
            self.send(JOIN_ROOM, {"room": Room.PUBLIC.value})
            self.router.dispatch(CONNECT, {})

            reason = await self._pump(channel)

            await self._close_channel()
            self._set_status(state=ConnectionState.RECONNECTING, last_error=reason)
            logger.warning(f"Connection lost: {reason}")
            self.router.dispatch(DISCONNECT, {"reason": reason})

    async def _pump(self, channel: Channel) -> str:
        """Run reader and writer until either fails. Returns the loss reason."""
        reader = asyncio.create_task(self._read(channel))
        writer = asyncio.create_task(self._write(channel))
        try:
            done, _ = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (reader, writer):
                task.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)
        exc = next(iter(done)).exception()
        if exc is None:
            return "transport closed"
        return str(exc) or type(exc).__name__

    async def _read(self, channel: Channel) -> None:
        while True:
            raw = await channel.recv()
            try:
                frame = json.loads(raw)
                event = frame["event"]
                data = frame.get("data") or {}
            except (ValueError, KeyError, TypeError):
                logger.warning(f"Ignoring malformed frame: {raw[:200]!r}")
                continue
            self.router.dispatch(event, data)

    async def _write(self, channel: Channel) -> None:
        while True:
            text = await self._outgoing.get()
            await channel.send(text)

    async def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        while not self._outgoing.empty():
            self._outgoing.get_nowait()
        if channel is None:
            return
        try:
            await channel.close()
        except (ChannelClosed, OSError) as e:
            logger.debug(f"Error closing channel: {e}")
