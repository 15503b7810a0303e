"""Authoritative queue of waiting teams."""

import logging
import uuid
from datetime import datetime
from typing import Callable

from courtside.errors import CourtsideError, ErrorCode
from courtside.models.court import QueueSnapshot
from courtside.models.events import QUEUE_UPDATED, QueueEvent, queue_update
from courtside.models.team import Team, TeamStatus, utcnow
from courtside.services.broadcast_hub import Publisher

logger = logging.getLogger(__name__)

MAX_TEAM_NAME_LENGTH = 50
MAX_TEAM_MEMBERS = 10
MINUTES_PER_TEAM_AHEAD = 15  # Rough wait estimate per team in front


class QueueService:
    """Strict FIFO queue plus the registry of every active team.

    The registry holds waiting, playing and cooldown teams; the queue order only
    holds waiting teams. Each mutation bumps the queue revision and publishes one
    `queue-updated` delta.
    """

    def __init__(
        self,
        capacity: int = 10,
        publish: Publisher | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if capacity < 2:
            raise ValueError("Queue capacity must allow at least two teams")
        self.capacity = capacity
        self._publish = publish
        self._clock = clock
        self._teams: dict[str, Team] = {}
        self._order: list[str] = []
        self.revision = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def waiting_teams(self) -> list[Team]:
        return [self._teams[team_id] for team_id in self._order]

    @property
    def total_teams(self) -> int:
        return len(self._order)

    @property
    def available_slots(self) -> int:
        return self.capacity - len(self._order)

    def get_team(self, team_id: str) -> Team | None:
        return self._teams.get(team_id)

    def find_by_name(self, name: str) -> Team | None:
        key = name.strip().casefold()
        for team in self._teams.values():
            if team.name.casefold() == key:
                return team
        return None

    def snapshot(self, event: str | None = None) -> QueueSnapshot:
        return QueueSnapshot(
            teams=[team.copy() for team in self.waiting_teams],
            capacity=self.capacity,
            revision=self.revision,
            event=event,
        )

    def position_of(self, team_id: str) -> dict:
        """Position details for a waiting team."""
        team = self._require_team(team_id)
        if team.status != TeamStatus.WAITING:
            raise CourtsideError(
                ErrorCode.TEAM_NOT_IN_QUEUE,
                "Team is not in queue",
                {"teamId": team_id, "status": team.status.value},
            )
        teams_ahead = self._order.index(team_id)
        return {
            "team": {"id": team.id, "name": team.name, "position": team.position},
            "teamsAhead": teams_ahead,
            "estimatedWaitTime": f"{teams_ahead * MINUTES_PER_TEAM_AHEAD} minutes",
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def admit(self, name: str, members: int, contact_info: str | None = None) -> Team:
        """Admit a new team at the tail of the queue."""
        name = (name or "").strip()
        if not name or len(name) > MAX_TEAM_NAME_LENGTH:
            raise CourtsideError(
                ErrorCode.VALIDATION_ERROR,
                f"Team name must be 1-{MAX_TEAM_NAME_LENGTH} characters",
                {"field": "name"},
            )
        if not 1 <= members <= MAX_TEAM_MEMBERS:
            raise CourtsideError(
                ErrorCode.VALIDATION_ERROR,
                f"Team must have 1-{MAX_TEAM_MEMBERS} members",
                {"field": "members"},
            )
        if self.find_by_name(name):
            raise CourtsideError(
                ErrorCode.TEAM_NAME_EXISTS,
                "Team name already exists",
                {"teamName": name},
            )
        if len(self._order) >= self.capacity:
            raise CourtsideError(
                ErrorCode.QUEUE_FULL,
                "Queue is full",
                {"maxSize": self.capacity, "currentSize": len(self._order)},
            )

        team = Team(
            id=str(uuid.uuid4()),
            name=name,
            members=members,
            contact_info=contact_info,
            last_seen=self._clock(),
        )
        self._teams[team.id] = team
        self._order.append(team.id)
        self._renumber()
        logger.info(f"Team '{name}' joined queue at position {team.position}")
        self._emit(QueueEvent.TEAM_JOINED, teamId=team.id)
        return team

    def withdraw(self, team_id: str) -> Team:
        """Remove a waiting team at its own request."""
        team = self._require_team(team_id)
        if team.status != TeamStatus.WAITING:
            raise CourtsideError(
                ErrorCode.TEAM_NOT_IN_QUEUE,
                "Team is not in queue",
                {"teamId": team_id, "status": team.status.value},
            )
        self._drop(team_id)
        logger.info(f"Team '{team.name}' left the queue")
        self._emit(QueueEvent.TEAM_LEFT, teamId=team.id)
        return team

    def evict(self, team_id: str, removed_by: str | None = None) -> Team:
        """Administrative removal of a waiting or cooldown team."""
        team = self._require_team(team_id)
        if team.status == TeamStatus.PLAYING:
            raise CourtsideError(
                ErrorCode.TEAM_NOT_IN_QUEUE,
                "Cannot remove a team that is playing",
                {"teamId": team_id, "status": team.status.value},
            )
        self._drop(team_id)
        logger.info(f"Team '{team.name}' removed by {removed_by or 'system'}")
        self._emit(QueueEvent.TEAM_REMOVED, teamId=team.id, removedBy=removed_by)
        return team

    def promote_two(self) -> tuple[Team, Team] | None:
        """Take the two earliest-admitted teams out of the queue.

        Callers must ensure no non-terminal match exists; the match service is
        the only caller.
        """
        if len(self._order) < 2:
            return None
        first_id, second_id = self._order[0], self._order[1]
        del self._order[:2]
        promoted = []
        for team_id in (first_id, second_id):
            team = self._teams[team_id]
            team.status = TeamStatus.PLAYING
            team.position = None
            team.last_seen = self._clock()
            promoted.append(team)
        self._renumber()
        logger.info(f"Promoted '{promoted[0].name}' and '{promoted[1].name}' to the court")
        self._emit(QueueEvent.TEAM_PROMOTED, promoted=[first_id, second_id])
        return promoted[0], promoted[1]

    def reorder(self, team_ids: list[str], reordered_by: str | None = None) -> list[Team]:
        """Replace the queue order. `team_ids` must be a permutation of the waiting teams."""
        if len(team_ids) != len(set(team_ids)) or set(team_ids) != set(self._order):
            raise CourtsideError(
                ErrorCode.VALIDATION_ERROR,
                "Reorder must list every waiting team exactly once",
                {"expected": list(self._order), "received": list(team_ids)},
            )
        self._order = list(team_ids)
        self._renumber()
        logger.info(f"Queue reordered by {reordered_by or 'system'}")
        self._emit(QueueEvent.QUEUE_REORDERED, reorderedBy=reordered_by)
        return self.waiting_teams

    def release_teams(
        self,
        team_ids: list[str],
        winner_id: str | None = None,
        cooldown_until: datetime | None = None,
    ) -> list[Team]:
        """Return teams leaving the court to the queue tail, in the given order.

        The winner gets its win recorded. With `cooldown_until`, the winner rests
        in cooldown instead of re-joining. Teams that no longer fit are evicted.
        """
        now = self._clock()
        requeued: list[str] = []
        evicted: list[str] = []
        for team_id in team_ids:
            team = self._teams.get(team_id)
            if team is None:
                continue
            team.last_seen = now
            if team_id == winner_id:
                team.wins += 1
                if cooldown_until is not None:
                    team.status = TeamStatus.COOLDOWN
                    team.cooldown_until = cooldown_until
                    team.position = None
                    continue
            if len(self._order) >= self.capacity:
                self._drop(team_id)
                evicted.append(team.name)
                logger.warning(f"Queue full, evicted '{team.name}' after match")
                continue
            team.status = TeamStatus.WAITING
            self._order.append(team_id)
            requeued.append(team_id)
        self._renumber()
        self._emit(QueueEvent.TEAM_REQUEUED, requeued=requeued, evicted=evicted or None)
        return [self._teams[team_id] for team_id in requeued]

    def record_win(self, team_id: str) -> Team | None:
        """Credit a win to a team already released from the court."""
        team = self._teams.get(team_id)
        if team is None:
            logger.warning(f"Cannot record win, team {team_id} is no longer registered")
            return None
        team.wins += 1
        self._emit(QueueEvent.TEAM_UPDATED, teamId=team_id)
        return team

    def revoke_win(self, team_id: str) -> Team | None:
        """Take back a win credited by a resolution an admin has overturned."""
        team = self._teams.get(team_id)
        if team is None:
            logger.warning(f"Cannot revoke win, team {team_id} is no longer registered")
            return None
        team.wins = max(0, team.wins - 1)
        self._emit(QueueEvent.TEAM_UPDATED, teamId=team_id)
        return team

    def release_cooldowns(self, now: datetime | None = None) -> list[Team]:
        """Move champions whose cooldown has ended back to the queue tail."""
        now = now or self._clock()
        due = [
            team
            for team in self._teams.values()
            if team.status == TeamStatus.COOLDOWN
            and team.cooldown_until is not None
            and team.cooldown_until <= now
        ]
        if not due:
            return []
        returned: list[Team] = []
        for team in sorted(due, key=lambda t: t.cooldown_until):
            team.cooldown_until = None
            if len(self._order) >= self.capacity:
                self._drop(team.id)
                logger.warning(f"Queue full, champion '{team.name}' could not return")
                continue
            team.status = TeamStatus.WAITING
            team.last_seen = now
            self._order.append(team.id)
            returned.append(team)
        self._renumber()
        self._emit(QueueEvent.TEAM_RETURNED, returned=[t.id for t in returned])
        return returned

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_team(self, team_id: str) -> Team:
        team = self._teams.get(team_id)
        if team is None:
            raise CourtsideError(ErrorCode.TEAM_NOT_FOUND, "Team not found", {"teamId": team_id})
        return team

    def _drop(self, team_id: str) -> None:
        self._teams.pop(team_id, None)
        if team_id in self._order:
            self._order.remove(team_id)
        self._renumber()

    def _renumber(self) -> None:
        for index, team_id in enumerate(self._order):
            self._teams[team_id].position = index + 1

    def _emit(self, event: QueueEvent, **extra) -> None:
        self.revision += 1
        if self._publish:
            self._publish(QUEUE_UPDATED, queue_update(self.snapshot(event.value), event, **extra))
