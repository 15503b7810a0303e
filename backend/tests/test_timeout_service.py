"""Tests for confirmation-window timers."""

import asyncio

import pytest

from courtside.services.timeout_service import MatchTimeoutService

pytestmark = pytest.mark.anyio


class TestMatchTimeoutService:
    """Timer start, clear and expiry."""

    async def test_expiry_calls_back_once(self):
        expired = []
        service = MatchTimeoutService(on_expire=expired.append)

        service.start("m1", 0.01)
        await asyncio.sleep(0.05)

        assert expired == ["m1"]
        assert not service.has_timeout("m1")

    async def test_clear_prevents_expiry(self):
        expired = []
        service = MatchTimeoutService(on_expire=expired.append)

        service.start("m1", 0.02)
        assert service.clear("m1") is True
        await asyncio.sleep(0.05)

        assert expired == []
        assert service.clear("m1") is False

    async def test_restart_replaces_timer(self):
        expired = []
        service = MatchTimeoutService(on_expire=expired.append)

        service.start("m1", 0.01)
        service.start("m1", 10)
        await asyncio.sleep(0.05)

        assert expired == []
        assert 9 < service.remaining("m1") <= 10
        service.cleanup()
        assert service.active_timeouts() == []

    async def test_callback_error_is_contained(self):
        calls = []

        def boom(match_id):
            calls.append(match_id)
            raise RuntimeError("boom")

        service = MatchTimeoutService(on_expire=boom)
        service.start("m1", 0.01)
        service.start("m2", 0.01)
        await asyncio.sleep(0.05)

        assert sorted(calls) == ["m1", "m2"]

    async def test_default_duration(self):
        service = MatchTimeoutService(default_duration=30)

        assert service.start("m1") == 30
        assert service.remaining("unknown") is None
        service.cleanup()
