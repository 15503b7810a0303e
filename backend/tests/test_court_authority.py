"""Tests for the composed court authority."""

import asyncio

import pytest

from courtside.config import Settings
from courtside.errors import CourtsideError, ErrorCode
from courtside.models.events import COURT_STATUS, MATCH_UPDATED, NOTIFICATION, QUEUE_UPDATED, Room
from courtside.models.match import MatchStatus, MatchType
from courtside.models.team import TeamStatus
from courtside.services.court_authority import CourtAuthority

pytestmark = pytest.mark.anyio


def listen(authority, room=Room.PUBLIC.value):
    """Register a hub connection and return a function draining its frames."""
    connection = authority.hub.register()
    authority.hub.join(connection.id, room)

    def frames(event=None):
        out = []
        while not connection.outbox.empty():
            frame = connection.outbox.get_nowait()
            if event is None or frame["event"] == event:
                out.append(frame["data"])
        return out

    return frames


async def start_match(authority, target_score=None):
    a = authority.join_queue("Alpha", 2)
    b = authority.join_queue("Bravo", 2)
    return a, b, authority.start_next_match(target_score)


class TestQueueFlow:
    """Queue actions through the authority."""

    async def test_join_broadcasts_queue_and_notification(self, authority):
        frames = listen(authority)

        team = authority.join_queue("Alpha", 2)

        assert frames(QUEUE_UPDATED)[0]["teams"][0]["id"] == team.id
        assert authority.queue_snapshot().total_teams == 1

    async def test_closed_court_rejects_join(self, authority):
        authority.close_court()

        with pytest.raises(CourtsideError) as exc:
            authority.join_queue("Alpha", 2)

        assert exc.value.code == ErrorCode.COURT_CLOSED
        assert authority.queue_snapshot().total_teams == 0

    async def test_deltas_and_notification_order(self, authority):
        frames = listen(authority)

        authority.join_queue("Alpha", 2)

        sent = frames()
        assert sent[0]["event"] == "team_joined"
        assert sent[1]["title"] == "Team Joined"


class TestMatchFlow:
    """End-to-end match lifecycle on the authority."""

    async def test_completed_match_requeues_winner_first(self, authority):
        a, b, match = await start_match(authority)
        authority.join_queue("Charlie", 2)

        authority.update_score(match.id, 15, 21)
        authority.confirm_result(match.id, a.id, True)
        authority.confirm_result(match.id, b.id, True)

        names = [t.name for t in authority.queue_snapshot().teams]
        assert names == ["Charlie", "Bravo", "Alpha"]
        assert authority.queue.get_team(b.id).wins == 1
        assert authority.matches.active_match is None

    async def test_current_snapshot_keeps_last_match(self, authority):
        a, b, match = await start_match(authority)
        authority.update_score(match.id, 21, 3)
        authority.confirm_result(match.id, a.id, True)
        authority.confirm_result(match.id, b.id, True)

        snapshot = authority.current_match_snapshot()

        assert snapshot["match"]["id"] == match.id
        assert snapshot["match"]["status"] == "completed"
        assert snapshot["activeMatches"] == []
        assert snapshot["revision"] == match.revision

    async def test_timeout_resolves_match(self, clock):
        settings = Settings(archive_path=":memory:", confirmation_timeout_seconds=0.02)
        authority = CourtAuthority(settings, clock=clock)
        try:
            frames = listen(authority)
            a, b, match = await start_match(authority)
            authority.update_score(match.id, 21, 10)
            authority.confirm_result(match.id, a.id, True)

            await asyncio.sleep(0.1)

            assert match.status == MatchStatus.TIMEOUT_RESOLVED
            kinds = [d["event"] for d in frames(MATCH_UPDATED)]
            assert kinds[-1] == "match_timeout_resolved"
            assert authority.queue.get_team(a.id).status == TeamStatus.WAITING
        finally:
            authority.shutdown()

    async def test_completion_clears_timer(self, authority):
        a, b, match = await start_match(authority)
        authority.update_score(match.id, 21, 10)
        assert authority.timeouts.has_timeout(match.id)

        authority.confirm_result(match.id, a.id, True)
        authority.confirm_result(match.id, b.id, True)

        assert not authority.timeouts.has_timeout(match.id)

    async def test_dispute_notifies_admin_room(self, authority):
        admin_frames = listen(authority, Room.ADMIN.value)
        a, b, match = await start_match(authority)
        authority.update_score(match.id, 21, 10)

        authority.confirm_result(match.id, b.id, False)

        notes = admin_frames(NOTIFICATION)
        assert notes[-1]["title"] == "Match Disputed"
        assert authority.queue.get_team(a.id).wins == 0
        assert authority.queue.get_team(a.id).status == TeamStatus.WAITING

    async def test_force_resolve_after_dispute_credits_winner(self, authority):
        a, b, match = await start_match(authority)
        authority.update_score(match.id, 21, 10)
        authority.confirm_result(match.id, b.id, False)

        authority.force_resolve(match.id, "admin-1")

        assert authority.queue.get_team(a.id).wins == 1
        assert authority.archive.get_match(match.id)["resolvedBy"] == "admin-1"

    async def test_force_resolve_after_timeout_moves_win(self, authority):
        a, b, match = await start_match(authority)
        authority.update_score(match.id, 21, 15)
        authority.matches.handle_timeout(match.id)
        assert authority.queue.get_team(a.id).wins == 1

        authority.force_resolve(match.id, "admin-1", score1=10, score2=21)

        assert authority.queue.get_team(a.id).wins == 0
        assert authority.queue.get_team(b.id).wins == 1
        archived = authority.archive.get_match(match.id)
        assert archived["winnerId"] == b.id
        assert archived["score1"] == 10

    async def test_resolved_match_snapshot_shows_teams_off_court(self, authority):
        a, b, match = await start_match(authority)
        authority.update_score(match.id, 21, 10)
        authority.confirm_result(match.id, a.id, True)
        authority.confirm_result(match.id, b.id, True)

        snapshot = authority.current_match_snapshot()["match"]

        assert snapshot["team1"]["status"] == "waiting"
        assert snapshot["team2"]["status"] == "waiting"
        assert snapshot["team1"]["status"] == authority.queue.get_team(a.id).status.value

    async def test_match_history_is_archived(self, authority):
        a, b, match = await start_match(authority)
        authority.update_score(match.id, 5, 3)

        events = authority.match_events(match.id)

        assert [e["eventType"] for e in events] == ["status_change", "score_update"]

    async def test_unknown_match_lookup(self, authority):
        with pytest.raises(CourtsideError) as exc:
            authority.get_match("missing")

        assert exc.value.code == ErrorCode.MATCH_NOT_FOUND


class TestChampionReturn:
    """Champion-return mode rotation."""

    async def test_champion_rests_then_returns(self, authority, clock):
        authority.set_champion_return_mode(15)
        a, b, match = await start_match(authority)
        assert match.match_type == MatchType.CHAMPION_RETURN

        authority.update_score(match.id, 21, 19)
        authority.confirm_result(match.id, a.id, True)
        authority.confirm_result(match.id, b.id, True)

        assert authority.queue.get_team(a.id).status == TeamStatus.COOLDOWN
        assert [t.name for t in authority.queue_snapshot().teams] == ["Bravo"]

        clock.advance(minutes=16)
        authority.tick()

        assert [t.name for t in authority.queue_snapshot().teams] == ["Bravo", "Alpha"]
        assert authority.court.cooldown_end is None

    async def test_tick_pushes_court_status(self, authority):
        frames = listen(authority)

        authority.tick()

        assert frames(COURT_STATUS)[0]["isOpen"] is True
