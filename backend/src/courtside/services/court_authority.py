"""The court authority: single owner of queue, match and court state."""

import logging
from datetime import datetime, timedelta
from typing import Callable

from courtside.config import Settings, get_settings
from courtside.errors import CourtsideError, ErrorCode
from courtside.models.court import CourtMode, CourtStatus, QueueSnapshot
from courtside.models.events import NOTIFICATION, NotificationType, Room, notification
from courtside.models.match import Match, MatchStatus, MatchType
from courtside.models.team import Team, utcnow
from courtside.repositories.match_archive import MatchArchive
from courtside.services.broadcast_hub import BroadcastHub
from courtside.services.court_service import CourtService
from courtside.services.match_service import MatchService
from courtside.services.queue_service import QueueService
from courtside.services.rate_limiter import RateLimiter
from courtside.services.timeout_service import MatchTimeoutService

logger = logging.getLogger(__name__)


class CourtAuthority:
    """Composes the authoritative services for one court.

    All mutations run synchronously on the event loop and only enqueue outbound
    frames, so each action and the deltas it emits are applied atomically with
    respect to every other action. HTTP routes and channel handlers both call
    into this object.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        hub: BroadcastHub | None = None,
        archive: MatchArchive | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self._clock = clock
        self.hub = hub or BroadcastHub(self.settings.outbox_size)
        self.archive = archive or MatchArchive(self.settings.archive_path)
        self.rate_limiter = RateLimiter(
            self.settings.rate_limit_max_events,
            self.settings.rate_limit_window_seconds,
        )
        self.queue = QueueService(
            capacity=self.settings.queue_capacity,
            publish=self.publish,
            clock=clock,
        )
        self.timeouts = MatchTimeoutService(
            on_expire=self._on_confirmation_timeout,
            default_duration=self.settings.confirmation_timeout_seconds,
        )
        self.matches = MatchService(
            self.queue,
            publish=self.publish,
            timeouts=self.timeouts,
            default_target_score=self.settings.default_target_score,
            confirmation_timeout=self.settings.confirmation_timeout_seconds,
            park_disputes=self.settings.park_disputes,
            on_resolved=self._on_match_resolved,
            record=self.archive.record_event,
            clock=clock,
        )
        self.court = CourtService(
            timezone=self.settings.timezone,
            publish=self.publish,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def publish(self, event: str, data: dict, room: str = Room.PUBLIC.value) -> int:
        return self.hub.publish(event, data, room)

    def notify(
        self,
        kind: NotificationType,
        title: str,
        message: str,
        duration: int | None = None,
        room: str = Room.PUBLIC.value,
    ) -> None:
        self.publish(NOTIFICATION, notification(kind, title, message, duration), room)

    def broadcast_court_status(self) -> CourtStatus:
        return self.court.broadcast(self.active_match_count)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @property
    def active_match_count(self) -> int:
        return 1 if self.matches.active_match is not None else 0

    def queue_snapshot(self) -> QueueSnapshot:
        return self.queue.snapshot()

    def court_snapshot(self) -> CourtStatus:
        return self.court.snapshot(self.active_match_count)

    def current_match_snapshot(self) -> dict:
        """Latest match (terminal or not) with the match revision."""
        current = self.matches.current
        active = self.matches.active_match
        return {
            "match": current.to_dict() if current else None,
            "revision": self.matches.revision,
            "activeMatches": [active.to_dict()] if active else [],
        }

    def get_match(self, match_id: str) -> dict:
        match = self.matches.find(match_id)
        if match is not None:
            return match.to_dict()
        archived = self.archive.get_match(match_id)
        if archived is None:
            raise CourtsideError(ErrorCode.MATCH_NOT_FOUND, "Match not found", {"matchId": match_id})
        return archived

    def match_events(self, match_id: str) -> list[dict]:
        self.get_match(match_id)
        return self.archive.get_events(match_id)

    # ------------------------------------------------------------------
    # Team actions
    # ------------------------------------------------------------------

    def join_queue(self, name: str, members: int, contact_info: str | None = None) -> Team:
        self.court.require_open()
        team = self.queue.admit(name, members, contact_info)
        self.notify(
            NotificationType.SUCCESS,
            "Team Joined",
            f"{team.name} joined the queue at position {team.position}",
            duration=3000,
        )
        return team

    def leave_queue(self, team_id: str) -> Team:
        team = self.queue.withdraw(team_id)
        self.notify(NotificationType.INFO, "Team Left", f"{team.name} left the queue", duration=3000)
        return team

    def confirm_result(
        self,
        match_id: str,
        team_id: str,
        confirmed: bool,
        final_score: tuple[int, int] | None = None,
    ) -> Match:
        return self.matches.confirm(match_id, team_id, confirmed, final_score)

    def update_score(self, match_id: str, score1: int, score2: int) -> Match:
        return self.matches.update_score(match_id, score1, score2)

    # ------------------------------------------------------------------
    # Administrative actions
    # ------------------------------------------------------------------

    def start_next_match(self, target_score: int | None = None, started_by: str | None = None) -> Match:
        self.court.require_open()
        match_type = (
            MatchType.CHAMPION_RETURN
            if self.court.mode == CourtMode.CHAMPION_RETURN
            else MatchType.REGULAR
        )
        match = self.matches.start_next_match(target_score, match_type)
        self.archive.save_match(match)
        self.notify(
            NotificationType.INFO,
            "Match Started",
            f"{match.team1.name} vs {match.team2.name}",
            duration=4000,
        )
        self.broadcast_court_status()
        logger.info(f"Match {match.id} started by {started_by or 'system'}")
        return match

    def correct_score(self, match_id: str, score1: int, score2: int, updated_by: str | None = None) -> Match:
        return self.matches.correct_score(match_id, score1, score2, updated_by)

    def force_resolve(
        self,
        match_id: str,
        resolved_by: str,
        score1: int | None = None,
        score2: int | None = None,
    ) -> Match:
        match = self.matches.force_resolve(match_id, resolved_by, score1, score2)
        self.archive.save_match(match)
        return match

    def remove_team(self, team_id: str, removed_by: str | None = None) -> Team:
        team = self.queue.evict(team_id, removed_by)
        self.notify(
            NotificationType.WARNING,
            "Team Removed",
            f"{team.name} was removed from the queue",
            duration=4000,
        )
        return team

    def reorder_queue(self, team_ids: list[str], reordered_by: str | None = None) -> list[Team]:
        return self.queue.reorder(team_ids, reordered_by)

    def open_court(self) -> CourtStatus:
        self.court.open()
        return self.broadcast_court_status()

    def close_court(self) -> CourtStatus:
        self.court.close()
        return self.broadcast_court_status()

    def set_champion_return_mode(self, cooldown_minutes: int | None = None) -> CourtStatus:
        if cooldown_minutes is None:
            cooldown_minutes = self.settings.champion_cooldown_minutes
        self.court.set_champion_return_mode(cooldown_minutes)
        return self.broadcast_court_status()

    def set_regular_mode(self) -> CourtStatus:
        self.court.set_regular_mode()
        return self.broadcast_court_status()

    def update_court(
        self,
        is_open: bool | None = None,
        mode: CourtMode | None = None,
        cooldown_minutes: int | None = None,
    ) -> CourtStatus:
        self.court.update(is_open=is_open)
        if mode == CourtMode.CHAMPION_RETURN:
            return self.set_champion_return_mode(cooldown_minutes)
        if mode == CourtMode.REGULAR:
            return self.set_regular_mode()
        return self.broadcast_court_status()

    # ------------------------------------------------------------------
    # Periodic work
    # ------------------------------------------------------------------

    def tick(self) -> CourtStatus:
        """Return rested champions to the queue and push the court status."""
        now = self._clock()
        returned = self.queue.release_cooldowns(now)
        for team in returned:
            self.notify(
                NotificationType.INFO,
                "Champion Returns",
                f"{team.name} is back in the queue at position {team.position}",
                duration=4000,
            )
        self.court.expire_cooldown(now)
        return self.broadcast_court_status()

    def shutdown(self) -> None:
        self.timeouts.cleanup()
        self.archive.close()

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _on_confirmation_timeout(self, match_id: str) -> None:
        self.matches.handle_timeout(match_id)

    def _on_match_resolved(self, match: Match, teams_already_released: bool) -> None:
        """Free the court: release both teams, credit the winner, archive the match."""
        self.archive.save_match(match)

        if teams_already_released:
            if match.winner_id is not None:
                self.queue.record_win(match.winner_id)
        else:
            winner_id = match.winner_id
            if winner_id is not None:
                loser_id = match.opponent_of(winner_id).id
                order = [winner_id, loser_id]
            else:
                order = [match.team1.id, match.team2.id]
            cooldown_until = None
            if winner_id is not None and match.match_type == MatchType.CHAMPION_RETURN:
                cooldown_until = self._clock() + timedelta(minutes=self.settings.champion_cooldown_minutes)
                self.court.update(cooldown_end=cooldown_until)
            self.queue.release_teams(order, winner_id=winner_id, cooldown_until=cooldown_until)

        self._notify_resolution(match)
        self.broadcast_court_status()

    def _notify_resolution(self, match: Match) -> None:
        score = match.score_line
        if match.status == MatchStatus.DISPUTED:
            message = f"{match.team1.name} vs {match.team2.name} ({score}) needs an admin decision"
            self.notify(NotificationType.WARNING, "Match Disputed", message, duration=6000)
            self.notify(NotificationType.WARNING, "Match Disputed", message, room=Room.ADMIN.value)
            return
        winner = match.team1 if match.winner_id == match.team1.id else match.team2
        if match.status == MatchStatus.TIMEOUT_RESOLVED:
            self.notify(
                NotificationType.INFO,
                "Match Auto-Resolved",
                f"{winner.name} wins {score} (confirmation timed out)",
                duration=5000,
            )
        else:
            self.notify(NotificationType.SUCCESS, "Match Complete", f"{winner.name} wins {score}", duration=5000)
