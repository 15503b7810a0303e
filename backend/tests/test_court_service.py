"""Tests for court status and the inbound rate limiter."""

from datetime import timedelta

import pytest

from courtside.errors import CourtsideError, ErrorCode
from courtside.models.court import CourtMode
from courtside.models.events import COURT_STATUS
from courtside.services.court_service import CourtService
from courtside.services.rate_limiter import RateLimiter


@pytest.fixture
def court(recorder, clock):
    return CourtService(publish=recorder, clock=clock)


class TestCourtService:
    """Tests for CourtService."""

    def test_defaults(self, court):
        status = court.snapshot()

        assert status.is_open is True
        assert status.mode == CourtMode.REGULAR
        assert status.timezone == "Asia/Bangkok"
        assert status.revision == 0

    def test_close_and_open_bump_revision(self, court):
        assert court.close() is True
        assert court.close() is False
        assert court.revision == 1

        with pytest.raises(CourtsideError) as exc:
            court.require_open()
        assert exc.value.code == ErrorCode.COURT_CLOSED

        court.open()
        assert court.revision == 2

    def test_champion_mode_sets_cooldown(self, court, clock):
        court.set_champion_return_mode(15)

        assert court.mode == CourtMode.CHAMPION_RETURN
        assert court.cooldown_end == clock.now + timedelta(minutes=15)

        court.set_regular_mode()
        assert court.mode == CourtMode.REGULAR
        assert court.cooldown_end is None

    def test_expire_cooldown(self, court, clock):
        court.set_champion_return_mode(1)

        assert court.expire_cooldown() is False
        clock.advance(minutes=2)
        assert court.expire_cooldown() is True
        assert court.cooldown_end is None

    def test_broadcast_repeats_revision(self, court, recorder, clock):
        court.close()
        court.broadcast(active_matches=1)
        clock.advance(seconds=30)
        court.broadcast(active_matches=1)

        pushes = recorder.named(COURT_STATUS)
        assert [p["revision"] for p in pushes] == [1, 1]
        assert pushes[0]["currentTime"] != pushes[1]["currentTime"]
        assert pushes[1]["activeMatches"] == 1
        assert pushes[1]["isOpen"] is False


class TestRateLimiter:
    """Tests for the sliding-window limiter."""

    def test_limit_and_window(self):
        now = [0.0]
        limiter = RateLimiter(max_events=2, window_seconds=10, clock=lambda: now[0])

        assert limiter.allow("c1")
        assert limiter.allow("c1")
        assert not limiter.allow("c1")
        assert limiter.allow("c2")

        now[0] = 10.0
        assert limiter.allow("c1")

    def test_reset(self):
        limiter = RateLimiter(max_events=1, window_seconds=10)

        assert limiter.allow("c1")
        limiter.reset("c1")
        assert limiter.allow("c1")
