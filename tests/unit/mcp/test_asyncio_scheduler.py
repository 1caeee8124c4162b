"""Unit tests for AsyncioScheduler."""

import asyncio

import pytest

from toolmesh.mcp import AsyncioScheduler


class TestAsyncioScheduler:
    """Tests for delayed callbacks on the running loop."""

    @pytest.mark.asyncio
    async def test_callback_runs_after_delay(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        async def callback():
            fired.set()

        handle = scheduler.call_later(0.01, callback)
        await asyncio.wait_for(fired.wait(), timeout=1.0)

        assert fired.is_set()
        assert handle.cancelled is False

    @pytest.mark.asyncio
    async def test_cancelled_callback_never_runs(self):
        scheduler = AsyncioScheduler()
        calls = []

        async def callback():
            calls.append(1)

        handle = scheduler.call_later(0.01, callback)
        handle.cancel()
        await asyncio.sleep(0.05)

        assert calls == []
        assert handle.cancelled is True
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_pending_counts_live_timers(self):
        scheduler = AsyncioScheduler()

        async def callback():
            return None

        handles = [scheduler.call_later(10, callback), scheduler.call_later(10, callback)]
        assert scheduler.pending == 2

        for handle in handles:
            handle.cancel()
        await asyncio.sleep(0.01)
        assert scheduler.pending == 0
