"""Authoritative match lifecycle and two-sided result confirmation."""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable

from courtside.errors import CourtsideError, ErrorCode
from courtside.models.events import MATCH_UPDATED, match_update
from courtside.models.match import Match, MatchEvent, MatchStatus, MatchType, can_transition
from courtside.models.team import TeamStatus, utcnow
from courtside.services.broadcast_hub import Publisher
from courtside.services.queue_service import QueueService
from courtside.services.timeout_service import MatchTimeoutService

logger = logging.getLogger(__name__)

# on_resolved(match, teams_already_released)
ResolvedHook = Callable[[Match, bool], None]
# record(match_id, event_type, event_data)
EventRecorder = Callable[[str, str, dict], None]


class MatchService:
    """Runs the match state machine for the single court.

    Every transition bumps the match revision and publishes exactly one
    `match-updated` delta carrying the full match. A repeated confirmation is a
    no-op and publishes nothing.
    """

    def __init__(
        self,
        queue: QueueService,
        publish: Publisher | None = None,
        timeouts: MatchTimeoutService | None = None,
        default_target_score: int = 21,
        confirmation_timeout: float = 60.0,
        park_disputes: bool = True,
        on_resolved: ResolvedHook | None = None,
        record: EventRecorder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.queue = queue
        self.timeouts = timeouts
        self.default_target_score = default_target_score
        self.confirmation_timeout = confirmation_timeout
        self.park_disputes = park_disputes
        self.on_resolved = on_resolved
        self._publish = publish
        self._record = record
        self._clock = clock
        self._matches: dict[str, Match] = {}
        self.current: Match | None = None  # Latest match, terminal or not
        self.revision = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def active_match(self) -> Match | None:
        """The non-terminal match, if any."""
        if self.current is not None and not self.current.is_terminal:
            return self.current
        return None

    def get(self, match_id: str) -> Match:
        match = self._matches.get(match_id)
        if match is None:
            raise CourtsideError(ErrorCode.MATCH_NOT_FOUND, "Match not found", {"matchId": match_id})
        return match

    def find(self, match_id: str) -> Match | None:
        return self._matches.get(match_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_next_match(
        self,
        target_score: int | None = None,
        match_type: MatchType = MatchType.REGULAR,
    ) -> Match:
        """Promote the two earliest-admitted teams into a new active match."""
        if self.active_match is not None:
            raise CourtsideError(
                ErrorCode.MATCH_IN_PROGRESS,
                "A match is already in progress",
                {"matchId": self.active_match.id, "status": self.active_match.status.value},
            )
        if self.queue.total_teams < 2:
            raise CourtsideError(
                ErrorCode.NOT_ENOUGH_TEAMS,
                "At least two teams must be waiting to start a match",
                {"totalTeams": self.queue.total_teams},
            )
        target_score = target_score or self.default_target_score
        if target_score < 1:
            raise CourtsideError(
                ErrorCode.VALIDATION_ERROR, "Target score must be at least 1", {"targetScore": target_score}
            )

        team1, team2 = self.queue.promote_two()
        match = Match(
            id=str(uuid.uuid4()),
            team1=team1.copy(),
            team2=team2.copy(),
            target_score=target_score,
            match_type=match_type,
            start_time=self._clock(),
        )
        self._matches[match.id] = match
        self.current = match
        logger.info(f"Match {match.id} started: {team1.name} vs {team2.name} (to {target_score})")
        self._log(match, "status_change", {"status": MatchStatus.ACTIVE.value, "reason": "match_started"})
        self._emit(match, MatchEvent.MATCH_STARTED, teams=f"{team1.name} vs {team2.name}")
        return match

    def update_score(self, match_id: str, score1: int, score2: int) -> Match:
        """Live scoring. Reaching the target score moves the match to confirming."""
        match = self.get(match_id)
        if match.status != MatchStatus.ACTIVE:
            raise CourtsideError(
                ErrorCode.MATCH_NOT_ACTIVE,
                "Cannot update score for inactive match",
                {"matchId": match_id, "currentStatus": match.status.value},
            )
        self._validate_scores(score1, score2)

        previous = (match.score1, match.score2)
        match.score1, match.score2 = score1, score2
        self._log(match, "score_update", {
            "score1": score1,
            "score2": score2,
            "previousScore1": previous[0],
            "previousScore2": previous[1],
        })

        if match.has_reached_target:
            self._enter_confirming(match)
            self._emit(match, MatchEvent.MATCH_ENDED, score=match.score_line)
        else:
            self._emit(match, MatchEvent.SCORE_UPDATED, score=match.score_line)
        return match

    def correct_score(self, match_id: str, score1: int, score2: int, updated_by: str | None = None) -> Match:
        """Administrative score correction for an active or confirming match.

        A correction while confirming restarts the confirmation protocol on the
        corrected score.
        """
        match = self.get(match_id)
        self._validate_scores(score1, score2)
        if match.status == MatchStatus.ACTIVE:
            if score1 >= match.target_score or score2 >= match.target_score:
                return self.update_score(match_id, score1, score2)
            match.score1, match.score2 = score1, score2
        elif match.status == MatchStatus.CONFIRMING:
            if score1 < match.target_score and score2 < match.target_score:
                raise CourtsideError(
                    ErrorCode.VALIDATION_ERROR,
                    "A confirming match must keep a score at the target",
                    {"targetScore": match.target_score},
                )
            match.score1, match.score2 = score1, score2
            self._enter_confirming(match)
        else:
            raise CourtsideError(
                ErrorCode.MATCH_NOT_ACTIVE,
                "Only active or confirming matches can be corrected",
                {"matchId": match_id, "currentStatus": match.status.value},
            )
        self._log(match, "score_update", {"score1": score1, "score2": score2, "adminId": updated_by})
        self._emit(match, MatchEvent.MATCH_UPDATED_BY_ADMIN, score=match.score_line, updatedBy=updated_by)
        return match

    def confirm(
        self,
        match_id: str,
        team_id: str,
        confirmed: bool,
        final_score: tuple[int, int] | None = None,
    ) -> Match:
        """Record one team's acknowledgement of the final score."""
        match = self.current
        if match is None or match.id != match_id:
            raise CourtsideError(ErrorCode.MATCH_NOT_FOUND, "Match not found", {"matchId": match_id})
        if match.status != MatchStatus.CONFIRMING:
            raise CourtsideError(
                ErrorCode.MATCH_NOT_CONFIRMING,
                "Match is not awaiting confirmation",
                {"matchId": match_id, "currentStatus": match.status.value},
            )
        side = match.side_of(team_id)
        if side is None:
            raise CourtsideError(
                ErrorCode.TEAM_NOT_IN_MATCH,
                "Team is not part of this match",
                {"teamId": team_id, "matchId": match_id},
            )
        if final_score is not None:
            final_score = (int(final_score[0]), int(final_score[1]))

        already = getattr(match.confirmed, side)
        if confirmed and already and (final_score is None or final_score == match.confirming_score):
            logger.debug(f"Duplicate confirmation from team {team_id} for match {match_id} ignored")
            return match

        team = match.team1 if side == "team1" else match.team2
        self._log(match, "confirmation", {
            "teamId": team_id,
            "teamName": team.name,
            "confirmed": confirmed,
            "finalScore": list(final_score) if final_score else None,
        })

        if not confirmed:
            return self._dispute(match, team_id, "result_rejected")

        if final_score is not None:
            match.reported_scores[team_id] = final_score
            if final_score != match.confirming_score:
                return self._dispute(match, team_id, "conflicting_score")

        setattr(match.confirmed, side, True)

        if match.confirmed.both:
            self._resolve(match, MatchStatus.COMPLETED, reason="both_teams_confirmed")
            winner = self._winner(match)
            self._emit(
                match,
                MatchEvent.MATCH_COMPLETED,
                winner=winner.name,
                finalScore=match.score_line,
            )
            self._after_resolution(match, teams_released=False)
        else:
            waiting_for = match.opponent_of(team_id).name
            logger.info(f"Match {match_id} confirmation from {team.name}, waiting for {waiting_for}")
            self._emit(match, MatchEvent.CONFIRMATION_RECEIVED, waitingFor=waiting_for)
        return match

    def handle_timeout(self, match_id: str) -> Match | None:
        """Resolve a match whose confirmation window elapsed.

        Returns None when the match no longer awaits confirmation.
        """
        match = self._matches.get(match_id)
        if match is None:
            logger.warning(f"Match {match_id} not found during timeout handling")
            return None
        if match.is_terminal or match.status not in (MatchStatus.CONFIRMING, MatchStatus.DISPUTED):
            logger.info(f"Match {match_id} is no longer awaiting confirmation, skipping timeout")
            return None

        if match.confirming_score is not None:
            match.score1, match.score2 = match.confirming_score
        self._resolve(match, MatchStatus.TIMEOUT_RESOLVED, reason="confirmation_timeout")
        match.resolved_by = "timeout"
        winner = self._winner(match)
        self._emit(
            match,
            MatchEvent.MATCH_TIMEOUT_RESOLVED,
            winner=winner.name,
            finalScore=match.score_line,
            resolvedBy="timeout",
        )
        logger.info(f"Match {match_id} resolved due to timeout. Winner: {winner.name}")
        self._after_resolution(match, teams_released=False)
        return match

    def force_resolve(
        self,
        match_id: str,
        resolved_by: str,
        score1: int | None = None,
        score2: int | None = None,
    ) -> Match:
        """Administrative resolution from any state except completed."""
        match = self.get(match_id)
        if match.status == MatchStatus.COMPLETED:
            raise CourtsideError(
                ErrorCode.MATCH_ALREADY_COMPLETED,
                "Match is already completed",
                {"matchId": match_id},
            )
        if score1 is not None or score2 is not None:
            new_score = (
                match.score1 if score1 is None else score1,
                match.score2 if score2 is None else score2,
            )
            self._validate_scores(*new_score)
            match.score1, match.score2 = new_score

        teams_released = match.is_terminal
        previous_winner = match.winner_id
        self._resolve(match, MatchStatus.COMPLETED, reason="force_resolved", forced=True)
        if teams_released:
            self._sync_copies(match)
        match.confirmed.team1 = match.confirmed.team2 = True
        match.resolved_by = resolved_by
        if previous_winner is not None and previous_winner != match.winner_id:
            # The first resolution already credited a win; move it to the new winner
            self.queue.revoke_win(previous_winner)
            self.queue.record_win(match.winner_id)
            logger.info(f"Match {match_id} winner changed from {previous_winner} to {match.winner_id}")
        winner = self._winner(match)
        self._emit(
            match,
            MatchEvent.MATCH_FORCE_RESOLVED,
            resolvedBy=resolved_by,
            winner=winner.name,
            finalScore=match.score_line,
        )
        logger.info(f"Match {match_id} force resolved by {resolved_by}")
        if previous_winner is None:
            self._after_resolution(match, teams_released=teams_released)
        return match

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enter_confirming(self, match: Match) -> None:
        self._check_transition(match, MatchStatus.CONFIRMING)
        previous = match.status
        match.status = MatchStatus.CONFIRMING
        match.confirmed.team1 = match.confirmed.team2 = False
        match.reported_scores.clear()
        match.confirming_score = (match.score1, match.score2)
        match.confirmation_deadline = self._clock() + timedelta(seconds=self.confirmation_timeout)
        if self.timeouts is not None:
            self.timeouts.start(match.id, self.confirmation_timeout)
        if previous != MatchStatus.CONFIRMING:
            self._log(match, "status_change", {
                "status": MatchStatus.CONFIRMING.value,
                "previousStatus": previous.value,
                "reason": "target_score_reached",
                "targetScore": match.target_score,
            })

    def _dispute(self, match: Match, team_id: str, reason: str) -> Match:
        self._check_transition(match, MatchStatus.DISPUTED)
        match.status = MatchStatus.DISPUTED
        match.dispute_parked = self.park_disputes
        if self.park_disputes:
            match.end_time = self._clock()
            match.confirmation_deadline = None
            self._release_copies(match)
            if self.timeouts is not None:
                self.timeouts.clear(match.id)
        team = match.team1 if team_id == match.team1.id else match.team2
        self._log(match, "status_change", {
            "status": MatchStatus.DISPUTED.value,
            "previousStatus": MatchStatus.CONFIRMING.value,
            "reason": reason,
            "teamId": team_id,
        })
        logger.warning(f"Match {match.id} disputed by {team.name} ({reason})")
        self._emit(match, MatchEvent.MATCH_DISPUTED, disputedBy=team.name, reason=reason)
        if self.park_disputes:
            self._after_resolution(match, teams_released=False)
        return match

    def _resolve(self, match: Match, status: MatchStatus, reason: str, forced: bool = False) -> None:
        self._check_transition(match, status, forced=forced)
        previous = match.status
        match.status = status
        match.dispute_parked = False
        match.end_time = match.end_time or self._clock()
        match.confirmation_deadline = None
        match.winner_id = match.leader().id
        self._release_copies(match)
        if self.timeouts is not None:
            self.timeouts.clear(match.id)
        self._log(match, "timeout" if status == MatchStatus.TIMEOUT_RESOLVED else "status_change", {
            "status": status.value,
            "previousStatus": previous.value,
            "reason": reason,
            "finalScore": match.score_line,
            "winner": match.leader().name,
        })

    @staticmethod
    def _release_copies(match: Match) -> None:
        """Set the match's team copies to the status they leave the court with."""
        for team in (match.team1, match.team2):
            resting = team.id == match.winner_id and match.match_type == MatchType.CHAMPION_RETURN
            team.status = TeamStatus.COOLDOWN if resting else TeamStatus.WAITING

    def _sync_copies(self, match: Match) -> None:
        """Copy registry status onto the match's teams once they have left the court."""
        for team in (match.team1, match.team2):
            registered = self.queue.get_team(team.id)
            if registered is not None:
                team.status = registered.status

    def _after_resolution(self, match: Match, teams_released: bool) -> None:
        if self.on_resolved is not None:
            self.on_resolved(match, teams_released)

    def _winner(self, match: Match):
        return match.team1 if match.winner_id == match.team1.id else match.team2

    def _check_transition(self, match: Match, target: MatchStatus, forced: bool = False) -> None:
        if not can_transition(match.status, target, forced=forced):
            raise CourtsideError(
                ErrorCode.MATCH_NOT_ACTIVE,
                f"Cannot move match from {match.status.value} to {target.value}",
                {"matchId": match.id, "currentStatus": match.status.value},
            )

    @staticmethod
    def _validate_scores(score1: int, score2: int) -> None:
        if score1 < 0 or score2 < 0:
            raise CourtsideError(
                ErrorCode.VALIDATION_ERROR,
                "Invalid score values",
                {"score1": score1, "score2": score2},
            )

    def _log(self, match: Match, event_type: str, data: dict) -> None:
        if self._record is not None:
            self._record(match.id, event_type, data)

    def _emit(self, match: Match, event: MatchEvent, **extra) -> None:
        self.revision += 1
        match.revision = self.revision
        if self._publish:
            self._publish(MATCH_UPDATED, match_update(match, event, **extra))
