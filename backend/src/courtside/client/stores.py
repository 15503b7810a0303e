"""Client replicas of the queue and the current match.

Each store follows the same catch-up protocol: on every `connect` it fetches
a snapshot, discards deltas that arrive while the fetch is in flight, replaces
its value wholesale with the snapshot, and from then on applies deltas whose
revision is not lower than its own.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable

from courtside.client.event_router import CONNECT, EventRouter, SubscriptionHandle
from courtside.client.snapshot import SnapshotResult
from courtside.errors import CourtsideError, ErrorCode
from courtside.models.court import QueueSnapshot
from courtside.models.events import (
    CONFIRM_RESULT,
    ERROR,
    JOIN_QUEUE,
    LEAVE_QUEUE,
    MATCH_UPDATED,
    QUEUE_UPDATED,
)
from courtside.models.match import Match, MatchEvent, MatchStatus, can_transition
from courtside.models.team import Team, utcnow

logger = logging.getLogger(__name__)

SnapshotFetcher = Callable[[], Awaitable[SnapshotResult]]
ChangeListener = Callable[["ReplicaStore"], None]


class ReplicaStore:
    """Shared catch-up and revision-guard logic."""

    entity = "entity"
    delta_event = ""
    error_actions: frozenset[str] = frozenset()

    def __init__(self, router: EventRouter, fetch: SnapshotFetcher):
        self.router = router
        self.revision: int | None = None
        self.error: CourtsideError | None = None
        self.is_loading = False
        self._fetch = fetch
        self._generation = 0
        self._syncing = False
        self._listeners: list[ChangeListener] = []
        self._handles: list[SubscriptionHandle] = [
            router.subscribe(self.delta_event, self._on_delta),
            router.subscribe(CONNECT, self._on_connect),
            router.subscribe(ERROR, self._on_error),
        ]

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def refresh(self) -> bool:
        """Fetch and apply a snapshot. Returns False if it failed or was superseded."""
        return await self._complete_sync(self._begin_sync())

    def close(self) -> None:
        for handle in self._handles:
            self.router.unsubscribe(handle)
        self._handles.clear()

    # ------------------------------------------------------------------
    # Catch-up
    # ------------------------------------------------------------------

    def _on_connect(self, data: dict):
        # Start discarding deltas now, before the fetch task gets to run
        return self._complete_sync(self._begin_sync())

    def _begin_sync(self) -> int:
        self._generation += 1
        self._syncing = True
        self.is_loading = True
        return self._generation

    async def _complete_sync(self, generation: int) -> bool:
        try:
            result = await self._fetch()
        except Exception as e:
            logger.exception(f"{self.entity} snapshot fetch raised")
            result = SnapshotResult(
                error=CourtsideError(ErrorCode.NETWORK_ERROR, "Snapshot fetch failed", {"reason": repr(e)})
            )
        if generation != self._generation:
            logger.debug(f"{self.entity} snapshot superseded, discarding")
            return False
        self._syncing = False
        self.is_loading = False
        if not result.ok:
            self.error = result.error
            logger.warning(f"{self.entity} snapshot failed: {result.error.message}")
            self._changed()
            return False
        self.error = None
        self._apply_snapshot(result.data or {})
        self._changed()
        return True

    # ------------------------------------------------------------------
    # Deltas
    # ------------------------------------------------------------------

    def _on_delta(self, data: dict) -> None:
        if self._syncing:
            logger.debug(f"Discarding {self.delta_event} received during catch-up")
            return
        revision = data.get("revision")
        if revision is not None and self.revision is not None and revision < self.revision:
            logger.warning(f"Ignoring stale {self.delta_event} (revision {revision} < {self.revision})")
            return
        self._apply_delta(data)
        if revision is not None:
            self.revision = revision
        self._changed()

    def _on_error(self, data: dict) -> None:
        if data.get("action") not in self.error_actions:
            return
        try:
            code = ErrorCode(data.get("code"))
        except ValueError:
            code = ErrorCode.INTERNAL_ERROR
        self.error = CourtsideError(code, data.get("message", ""), data.get("details"))
        self._changed()

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(f"{self.entity} listener failed")

    def _apply_snapshot(self, data: dict) -> None:
        raise NotImplementedError

    def _apply_delta(self, data: dict) -> None:
        raise NotImplementedError


class QueueStore(ReplicaStore):
    """Replica of the waiting teams."""

    entity = "queue"
    delta_event = QUEUE_UPDATED
    error_actions = frozenset({JOIN_QUEUE, LEAVE_QUEUE})

    def __init__(self, router: EventRouter, fetch: SnapshotFetcher):
        self.snapshot = QueueSnapshot()
        self.last_event: str | None = None
        super().__init__(router, fetch)

    def _apply_snapshot(self, data: dict) -> None:
        self.snapshot = QueueSnapshot.from_dict(data)
        self.revision = self.snapshot.revision

    def _apply_delta(self, data: dict) -> None:
        self.snapshot = QueueSnapshot.from_dict(data)
        self.last_event = data.get("event")

    @property
    def teams(self) -> list[Team]:
        return self.snapshot.teams

    @property
    def total_teams(self) -> int:
        return self.snapshot.total_teams

    @property
    def available_slots(self) -> int:
        return self.snapshot.available_slots

    @property
    def is_queue_full(self) -> bool:
        return self.snapshot.available_slots == 0

    @property
    def has_teams(self) -> bool:
        return self.snapshot.total_teams > 0

    def team_position(self, team_id: str) -> int | None:
        for index, team in enumerate(self.snapshot.teams):
            if team.id == team_id:
                return index + 1
        return None

    def team_by_name(self, name: str) -> Team | None:
        key = name.strip().casefold()
        return next((t for t in self.snapshot.teams if t.name.casefold() == key), None)


class MatchStore(ReplicaStore):
    """Replica of the current match."""

    entity = "match"
    delta_event = MATCH_UPDATED
    error_actions = frozenset({CONFIRM_RESULT})

    def __init__(self, router: EventRouter, fetch: SnapshotFetcher):
        self.match: Match | None = None
        self.last_update: dict | None = None
        super().__init__(router, fetch)

    def _apply_snapshot(self, data: dict) -> None:
        match = data.get("match")
        self.match = Match.from_dict(match) if match else None
        self.revision = data.get("revision", 0)

    def _apply_delta(self, data: dict) -> None:
        incoming = Match.from_dict(data["match"])
        event = data.get("event")
        previous = self.match
        if previous is not None and previous.id == incoming.id:
            forced = event == MatchEvent.MATCH_FORCE_RESOLVED.value
            if not can_transition(previous.status, incoming.status, forced=forced):
                logger.warning(
                    f"Match {incoming.id} moved {previous.status.value} -> {incoming.status.value}, "
                    f"which is not a legal transition; taking the server's state"
                )
        self.match = incoming
        self.last_update = {key: value for key, value in data.items() if key != "match"}

    # Derived views

    @property
    def is_active(self) -> bool:
        return self.match is not None and self.match.status == MatchStatus.ACTIVE

    @property
    def is_awaiting_confirmation(self) -> bool:
        return self.match is not None and self.match.status == MatchStatus.CONFIRMING

    @property
    def winning_team(self) -> Team | None:
        if self.match is None:
            return None
        if self.match.winner_id is not None:
            return self.match.team1 if self.match.winner_id == self.match.team1.id else self.match.team2
        if self.match.score1 == self.match.score2:
            return None
        return self.match.leader()

    @property
    def has_reached_target_score(self) -> bool:
        return self.match is not None and self.match.has_reached_target

    def confirmation_status(self) -> dict | None:
        if self.match is None:
            return None
        confirmed = self.match.confirmed
        return {"team1": confirmed.team1, "team2": confirmed.team2, "both": confirmed.both}

    def needs_confirmation_from(self, team_id: str) -> bool:
        if not self.is_awaiting_confirmation:
            return False
        side = self.match.side_of(team_id)
        return side is not None and not getattr(self.match.confirmed, side)

    def duration_minutes(self, now: datetime | None = None) -> int | None:
        if self.match is None:
            return None
        end = self.match.end_time or now or utcnow()
        return int((end - self.match.start_time).total_seconds() // 60)

    def confirmation_seconds_remaining(self, now: datetime | None = None) -> float | None:
        if self.match is None or self.match.confirmation_deadline is None:
            return None
        remaining = (self.match.confirmation_deadline - (now or utcnow())).total_seconds()
        return max(0.0, remaining)
