"""Read-only client mirror of the court status."""

from datetime import datetime, timedelta

from courtside.client.event_router import EventRouter
from courtside.client.stores import ReplicaStore, SnapshotFetcher
from courtside.models.court import CourtMode, CourtStatus
from courtside.models.events import COURT_STATUS
from courtside.models.team import utcnow


class CourtStatusTracker(ReplicaStore):
    """Mirrors `court-status`. Time-dependent views are computed at read time
    against the server clock, estimated from the last `currentTime` seen.
    """

    entity = "court"
    delta_event = COURT_STATUS

    def __init__(self, router: EventRouter, fetch: SnapshotFetcher):
        self.status: CourtStatus | None = None
        self.clock_offset = timedelta(0)  # server time - local time
        super().__init__(router, fetch)

    def _apply_snapshot(self, data: dict) -> None:
        self._apply_status(CourtStatus.from_dict(data))

    def _apply_delta(self, data: dict) -> None:
        self._apply_status(CourtStatus.from_dict(data))

    def _apply_status(self, status: CourtStatus) -> None:
        self.status = status
        self.revision = status.revision
        self.clock_offset = status.current_time - utcnow()

    def server_now(self, now: datetime | None = None) -> datetime:
        return (now or utcnow()) + self.clock_offset

    @property
    def is_open(self) -> bool:
        return self.status is not None and self.status.is_open

    @property
    def is_regular_mode(self) -> bool:
        return self.status is not None and self.status.mode == CourtMode.REGULAR

    @property
    def is_champion_return_mode(self) -> bool:
        return self.status is not None and self.status.mode == CourtMode.CHAMPION_RETURN

    def is_in_cooldown(self, now: datetime | None = None) -> bool:
        return self.cooldown_seconds_remaining(now) > 0

    def cooldown_seconds_remaining(self, now: datetime | None = None) -> int:
        if self.status is None or self.status.cooldown_end is None:
            return 0
        remaining = (self.status.cooldown_end - self.server_now(now)).total_seconds()
        return max(0, int(remaining))

    def formatted_cooldown(self, now: datetime | None = None) -> str:
        """Remaining cooldown as m:ss."""
        minutes, seconds = divmod(self.cooldown_seconds_remaining(now), 60)
        return f"{minutes}:{seconds:02d}"
