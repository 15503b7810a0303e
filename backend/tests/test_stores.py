"""Tests for client replicas: catch-up, revision guard and derived views."""

import asyncio
from datetime import timedelta

import pytest

from courtside.client.court_tracker import CourtStatusTracker
from courtside.client.event_router import CONNECT, EventRouter
from courtside.client.snapshot import SnapshotResult
from courtside.client.stores import MatchStore, QueueStore
from courtside.errors import CourtsideError, ErrorCode
from courtside.models.court import CourtMode, CourtStatus, QueueSnapshot
from courtside.models.match import Match, MatchStatus
from courtside.models.team import Team, utcnow

pytestmark = pytest.mark.anyio


class ControlledFetch:
    """Snapshot fetch the test resolves by hand."""

    def __init__(self):
        self.pending: list[asyncio.Future] = []

    async def __call__(self) -> SnapshotResult:
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    def resolve(self, data=None, error=None, index=-1):
        self.pending[index].set_result(SnapshotResult(data=data, error=error))

    def fail(self, exc: Exception, index=-1):
        self.pending[index].set_exception(exc)


def queue_payload(names, revision, event=None):
    teams = [Team(id=f"id-{name}", name=name, members=2, position=i + 1) for i, name in enumerate(names)]
    payload = QueueSnapshot(teams=teams, capacity=10, revision=revision).to_dict()
    if event:
        payload["event"] = event
    return payload


def match_payload(status=MatchStatus.ACTIVE, revision=1, score=(0, 0), event="match_started"):
    match = Match(
        id="m1",
        team1=Team(id="t1", name="Alpha", members=2),
        team2=Team(id="t2", name="Bravo", members=2),
        score1=score[0],
        score2=score[1],
        status=status,
        revision=revision,
    )
    return {"match": match.to_dict(), "event": event, "revision": revision}


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestCatchUp:
    """Snapshot catch-up on connect."""

    async def test_deltas_during_catch_up_are_discarded(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = QueueStore(router, fetch)

        router.dispatch(CONNECT, {})
        await settle()
        router.dispatch("queue-updated", queue_payload(["Stale"], revision=4))
        assert store.teams == []
        assert store.is_loading

        fetch.resolve(queue_payload(["Alpha", "Bravo"], revision=5))
        await router.drain()

        assert [t.name for t in store.teams] == ["Alpha", "Bravo"]
        assert store.revision == 5
        assert not store.is_loading

        router.dispatch("queue-updated", queue_payload(["Alpha", "Bravo", "Charlie"], 6, "team_joined"))
        assert store.total_teams == 3
        assert store.last_event == "team_joined"

    async def test_only_latest_refresh_applies(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = QueueStore(router, fetch)

        router.dispatch(CONNECT, {})
        router.dispatch(CONNECT, {})
        await settle()
        fetch.resolve(queue_payload(["New"], 9), index=1)
        fetch.resolve(queue_payload(["Old"], 3), index=0)
        await router.drain()

        assert [t.name for t in store.teams] == ["New"]
        assert store.revision == 9

    async def test_failed_snapshot_sets_error_and_resumes_deltas(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = QueueStore(router, fetch)

        router.dispatch(CONNECT, {})
        await settle()
        fetch.resolve(error=CourtsideError(ErrorCode.NETWORK_ERROR, "Network error"))
        await router.drain()

        assert store.error.code == ErrorCode.NETWORK_ERROR
        assert not store.is_syncing

        router.dispatch("queue-updated", queue_payload(["Alpha"], 2))
        assert store.total_teams == 1

    async def test_raising_fetch_does_not_leave_store_syncing(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = QueueStore(router, fetch)

        router.dispatch(CONNECT, {})
        await settle()
        fetch.fail(RuntimeError("connection reset"))
        await router.drain()

        assert store.error.code == ErrorCode.NETWORK_ERROR
        assert "connection reset" in store.error.details["reason"]
        assert not store.is_syncing
        assert not store.is_loading

        router.dispatch("queue-updated", queue_payload(["Alpha"], 2))
        assert store.total_teams == 1

    async def test_refresh_reports_raising_fetch(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = QueueStore(router, fetch)

        task = asyncio.ensure_future(store.refresh())
        await settle()
        fetch.fail(OSError("unreachable"))

        assert await task is False
        assert store.error.code == ErrorCode.NETWORK_ERROR

    async def test_stale_delta_ignored(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = QueueStore(router, fetch)
        changes = []
        store.add_listener(lambda s: changes.append(s.revision))

        router.dispatch("queue-updated", queue_payload(["A", "B"], 7))
        router.dispatch("queue-updated", queue_payload(["A"], 6))
        router.dispatch("queue-updated", queue_payload(["A", "B"], 7))

        assert store.total_teams == 2
        assert changes == [7, 7]


class TestQueueStore:
    """Derived queue views and error routing."""

    async def test_helpers(self):
        router = EventRouter()
        store = QueueStore(router, ControlledFetch())

        router.dispatch("queue-updated", queue_payload(["Alpha", "Bravo"], 1))

        assert store.team_position("id-Bravo") == 2
        assert store.team_position("missing") is None
        assert store.team_by_name("alpha").id == "id-Alpha"
        assert store.has_teams
        assert not store.is_queue_full
        assert store.available_slots == 8

    async def test_error_for_queue_action(self):
        router = EventRouter()
        queue = QueueStore(router, ControlledFetch())
        match = MatchStore(router, ControlledFetch())

        router.dispatch("error", {"code": "QUEUE_FULL", "message": "Queue is full", "action": "join-queue"})

        assert queue.error.code == ErrorCode.QUEUE_FULL
        assert match.error is None


class TestMatchStore:
    """Match replica behaviour."""

    async def test_snapshot_then_deltas(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = MatchStore(router, fetch)

        refresh = asyncio.create_task(store.refresh())
        await settle()
        fetch.resolve({"match": match_payload(revision=3)["match"], "revision": 3})
        assert await refresh is True

        router.dispatch("match-updated", match_payload(MatchStatus.CONFIRMING, 4, (21, 15), "match_ended"))

        assert store.is_awaiting_confirmation
        assert store.has_reached_target_score
        assert store.winning_team.name == "Alpha"
        assert store.last_update["event"] == "match_ended"
        assert store.needs_confirmation_from("t2")
        assert store.confirmation_status() == {"team1": False, "team2": False, "both": False}

    async def test_illegal_transition_still_applied(self, caplog):
        router = EventRouter()
        store = MatchStore(router, ControlledFetch())
        router.dispatch("match-updated", match_payload(MatchStatus.ACTIVE, 1))

        router.dispatch("match-updated", match_payload(MatchStatus.TIMEOUT_RESOLVED, 2, event="match_timeout_resolved"))

        assert store.match.status == MatchStatus.TIMEOUT_RESOLVED
        assert "not a legal transition" in caplog.text

    async def test_empty_snapshot(self):
        router = EventRouter()
        fetch = ControlledFetch()
        store = MatchStore(router, fetch)

        refresh = asyncio.create_task(store.refresh())
        await settle()
        fetch.resolve({"match": None, "revision": 0, "activeMatches": []})
        await refresh

        assert store.match is None
        assert store.winning_team is None
        assert store.duration_minutes() is None

    async def test_confirmation_seconds_remaining(self):
        router = EventRouter()
        store = MatchStore(router, ControlledFetch())
        payload = match_payload(MatchStatus.CONFIRMING, 1, (21, 3))
        now = utcnow()
        payload["match"]["confirmationDeadline"] = (now + timedelta(seconds=45)).isoformat()

        router.dispatch("match-updated", payload)

        assert store.confirmation_seconds_remaining(now) == 45


class TestCourtStatusTracker:
    """Read-time cooldown computations."""

    async def test_cooldown_against_server_clock(self):
        router = EventRouter()
        tracker = CourtStatusTracker(router, ControlledFetch())
        server_now = utcnow() + timedelta(minutes=10)
        status = CourtStatus(
            mode=CourtMode.CHAMPION_RETURN,
            cooldown_end=server_now + timedelta(seconds=125),
            current_time=server_now,
            revision=2,
        )

        router.dispatch("court-status", status.to_dict())

        assert tracker.is_champion_return_mode
        assert tracker.is_in_cooldown()
        assert 120 <= tracker.cooldown_seconds_remaining() <= 125
        local = utcnow()
        assert tracker.formatted_cooldown(local + timedelta(seconds=65)) in ("1:00", "0:59")

    async def test_periodic_push_with_same_revision_applies(self):
        router = EventRouter()
        tracker = CourtStatusTracker(router, ControlledFetch())

        router.dispatch("court-status", CourtStatus(is_open=True, revision=3).to_dict())
        router.dispatch("court-status", CourtStatus(is_open=False, revision=3).to_dict())
        router.dispatch("court-status", CourtStatus(is_open=True, revision=2).to_dict())

        assert tracker.is_open is False
        assert tracker.cooldown_seconds_remaining() == 0
        assert tracker.formatted_cooldown() == "0:00"
        assert not tracker.is_in_cooldown()
