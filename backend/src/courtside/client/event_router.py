"""Handle-based pub/sub between the connection and the stores."""

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Pseudo-events republished from the connection lifecycle
CONNECT = "connect"
DISCONNECT = "disconnect"

Handler = Callable[[dict], Any]
Sender = Callable[[str, dict], bool]


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token returned by `subscribe`."""

    id: int
    event: str


class EventRouter:
    """Routes inbound events to subscribers and outbound events to the connection.

    A failing handler is logged and skipped; the remaining subscribers still
    receive the event. Coroutine handlers are scheduled as tasks.
    """

    def __init__(self):
        self._subscribers: dict[str, dict[int, Handler]] = {}
        self._ids = itertools.count(1)
        self._sender: Sender | None = None
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, event: str, handler: Handler) -> SubscriptionHandle:
        handle = SubscriptionHandle(id=next(self._ids), event=event)
        self._subscribers.setdefault(event, {})[handle.id] = handler
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        handlers = self._subscribers.get(handle.event)
        if not handlers or handle.id not in handlers:
            return False
        del handlers[handle.id]
        return True

    def subscriber_count(self, event: str) -> int:
        return len(self._subscribers.get(event, {}))

    def dispatch(self, event: str, data: dict | None = None) -> int:
        """Deliver an event to its current subscribers. Returns how many ran."""
        data = data if data is not None else {}
        delivered = 0
        for handler in list(self._subscribers.get(event, {}).values()):
            try:
                result = handler(data)
            except Exception:
                logger.exception(f"Handler for {event} failed")
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)
            delivered += 1
        return delivered

    def attach_sender(self, sender: Sender | None) -> None:
        self._sender = sender

    def emit(self, event: str, payload: dict | None = None) -> bool:
        """Send an outbound event. False when there is no live connection."""
        if self._sender is None:
            return False
        return self._sender(event, payload if payload is not None else {})

    async def drain(self) -> None:
        """Wait for scheduled coroutine handlers to finish."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _schedule(self, event: str, awaitable) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error(f"Async handler for {event} failed: {exc!r}")

        task.add_done_callback(_done)
