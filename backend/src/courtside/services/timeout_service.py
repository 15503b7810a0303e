"""Confirmation-window timers for matches awaiting result confirmation."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass
class TimeoutEntry:
    """A running confirmation timer."""

    match_id: str
    task: asyncio.Task
    started_at: float  # time.monotonic()
    duration: float


class MatchTimeoutService:
    """One background task per match; expiry calls `on_expire(match_id)`.

    The callback re-checks match state itself, so a timer that fires after the
    match was already resolved is harmless.
    """

    def __init__(
        self,
        on_expire: Callable[[str], None] | None = None,
        default_duration: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.on_expire = on_expire
        self.default_duration = default_duration
        self._timeouts: dict[str, TimeoutEntry] = {}

    def start(self, match_id: str, duration: float | None = None) -> float:
        """Start (or restart) the timer for a match. Must run inside an event loop."""
        self.clear(match_id)
        duration = self.default_duration if duration is None else duration
        task = asyncio.get_running_loop().create_task(self._expire_after(match_id, duration))
        self._timeouts[match_id] = TimeoutEntry(
            match_id=match_id,
            task=task,
            started_at=time.monotonic(),
            duration=duration,
        )
        logger.info(f"Started confirmation timeout for match {match_id} ({duration:.0f}s)")
        return duration

    def clear(self, match_id: str) -> bool:
        entry = self._timeouts.pop(match_id, None)
        if entry is None:
            return False
        if not entry.task.done():
            entry.task.cancel()
        logger.info(f"Cleared timeout for match {match_id}")
        return True

    def remaining(self, match_id: str) -> float | None:
        """Seconds left on a match's timer, or None if there is none."""
        entry = self._timeouts.get(match_id)
        if entry is None:
            return None
        elapsed = time.monotonic() - entry.started_at
        return max(0.0, entry.duration - elapsed)

    def has_timeout(self, match_id: str) -> bool:
        return match_id in self._timeouts

    def active_timeouts(self) -> list[str]:
        return list(self._timeouts)

    def cleanup(self) -> None:
        """Cancel every timer (shutdown)."""
        logger.info(f"Cleaning up {len(self._timeouts)} active timeouts")
        for entry in self._timeouts.values():
            if not entry.task.done():
                entry.task.cancel()
        self._timeouts.clear()

    async def _expire_after(self, match_id: str, duration: float) -> None:
        await asyncio.sleep(duration)
        self._timeouts.pop(match_id, None)
        logger.info(f"Handling timeout for match {match_id}")
        if self.on_expire is None:
            return
        try:
            self.on_expire(match_id)
        except Exception:
            logger.exception(f"Error handling timeout for match {match_id}")
