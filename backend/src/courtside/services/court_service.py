"""Authoritative court status."""

import logging
from datetime import datetime, timedelta
from typing import Callable

from courtside.errors import CourtsideError, ErrorCode
from courtside.models.court import CourtMode, CourtStatus
from courtside.models.events import COURT_STATUS, court_status
from courtside.models.team import utcnow
from courtside.services.broadcast_hub import Publisher

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_MINUTES = 15


class CourtService:
    """Holds open/closed state, rotation mode and the champion cooldown.

    The revision only moves on real changes. Periodic pushes repeat the current
    revision with a fresh `currentTime`.
    """

    def __init__(
        self,
        timezone: str = "Asia/Bangkok",
        publish: Publisher | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._status = CourtStatus(timezone=timezone)
        self._publish = publish
        self._clock = clock

    @property
    def revision(self) -> int:
        return self._status.revision

    @property
    def is_open(self) -> bool:
        return self._status.is_open

    @property
    def mode(self) -> CourtMode:
        return self._status.mode

    @property
    def cooldown_end(self) -> datetime | None:
        return self._status.cooldown_end

    def snapshot(self, active_matches: int = 0) -> CourtStatus:
        return CourtStatus(
            is_open=self._status.is_open,
            mode=self._status.mode,
            timezone=self._status.timezone,
            cooldown_end=self._status.cooldown_end,
            current_time=self._clock(),
            active_matches=active_matches,
            revision=self._status.revision,
        )

    def require_open(self) -> None:
        if not self._status.is_open:
            raise CourtsideError(ErrorCode.COURT_CLOSED, "Court is closed")

    def update(
        self,
        is_open: bool | None = None,
        mode: CourtMode | None = None,
        cooldown_end: datetime | None = None,
        clear_cooldown: bool = False,
    ) -> bool:
        """Apply changes. Returns True if anything changed (and bumped the revision)."""
        status = self._status
        changed = False
        if is_open is not None and is_open != status.is_open:
            status.is_open = is_open
            changed = True
        if mode is not None and mode != status.mode:
            status.mode = mode
            changed = True
        if clear_cooldown and status.cooldown_end is not None:
            status.cooldown_end = None
            changed = True
        elif cooldown_end is not None and cooldown_end != status.cooldown_end:
            status.cooldown_end = cooldown_end
            changed = True
        if changed:
            status.revision += 1
            logger.info(
                f"Court status updated: open={status.is_open} mode={status.mode.value} "
                f"cooldownEnd={status.cooldown_end}"
            )
        return changed

    def open(self) -> bool:
        return self.update(is_open=True)

    def close(self) -> bool:
        return self.update(is_open=False)

    def set_champion_return_mode(self, cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES) -> bool:
        if cooldown_minutes < 0:
            raise CourtsideError(
                ErrorCode.VALIDATION_ERROR,
                "Cooldown minutes must not be negative",
                {"cooldownMinutes": cooldown_minutes},
            )
        return self.update(
            mode=CourtMode.CHAMPION_RETURN,
            cooldown_end=self._clock() + timedelta(minutes=cooldown_minutes),
        )

    def set_regular_mode(self) -> bool:
        return self.update(mode=CourtMode.REGULAR, clear_cooldown=True)

    def expire_cooldown(self, now: datetime | None = None) -> bool:
        """Clear a cooldown end that has passed."""
        now = now or self._clock()
        if self._status.cooldown_end is not None and self._status.cooldown_end <= now:
            return self.update(clear_cooldown=True)
        return False

    def broadcast(self, active_matches: int = 0) -> CourtStatus:
        snapshot = self.snapshot(active_matches)
        if self._publish:
            self._publish(COURT_STATUS, court_status(snapshot))
        return snapshot
