"""Tests for the periodic simulation driver."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config import Settings
from app.services import DataCollector, SimulationRunner


def _collector_with(n: int) -> DataCollector:
    settings = Settings(_env_file=None, finnhub_api_key="")
    collector = DataCollector(settings, client_factory=MagicMock())
    for i in range(n):
        collector.add_tick(100.0 + (i % 7) - 3)
    return collector


class TestRunOnce:
    """Single passes."""

    @pytest.mark.asyncio
    async def test_skips_below_minimum(self):
        runner = SimulationRunner(_collector_with(19))

        assert await runner.run_once() is None
        assert runner.latest_result is None
        assert runner.pass_count == 0

    @pytest.mark.asyncio
    async def test_runs_at_minimum(self):
        runner = SimulationRunner(_collector_with(20))

        result = await runner.run_once()

        assert result is not None
        assert result.sample_count == 20
        assert runner.latest_result is result
        assert runner.pass_count == 1

    @pytest.mark.asyncio
    async def test_force_runs_on_small_buffer(self):
        runner = SimulationRunner(_collector_with(3))
        result = await runner.run_once(force=True)
        assert result.sample_count == 3

    @pytest.mark.asyncio
    async def test_force_on_empty_buffer(self):
        runner = SimulationRunner(_collector_with(0))
        assert await runner.run_once(force=True) is None

    @pytest.mark.asyncio
    async def test_busy_pass_is_skipped(self):
        runner = SimulationRunner(_collector_with(30))

        async with runner._lock:
            assert runner.is_busy
            assert await runner.run_once() is None

        assert not runner.is_busy
        assert await runner.run_once() is not None

    @pytest.mark.asyncio
    async def test_callbacks_receive_result(self):
        runner = SimulationRunner(_collector_with(25))
        sync_cb = MagicMock()
        async_cb = AsyncMock()
        runner.on_result(sync_cb)
        runner.on_result(async_cb)

        result = await runner.run_once()

        sync_cb.assert_called_once_with(result)
        async_cb.assert_awaited_once_with(result)

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self):
        runner = SimulationRunner(_collector_with(25))
        runner.on_result(MagicMock(side_effect=RuntimeError("boom")))
        after = MagicMock()
        runner.on_result(after)

        assert await runner.run_once() is not None
        after.assert_called_once()

    @pytest.mark.asyncio
    async def test_off_result(self):
        runner = SimulationRunner(_collector_with(25))
        callback = MagicMock()
        runner.on_result(callback)
        runner.off_result(callback)

        await runner.run_once()
        callback.assert_not_called()


class TestTimer:
    """Periodic driver."""

    def test_interval_coerced(self):
        runner = SimulationRunner(_collector_with(0), interval=0)
        assert runner.interval == 1
        assert runner.set_interval(7.9) == 7

    @pytest.mark.asyncio
    async def test_periodic_passes(self):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)
            await asyncio.sleep(0)

        runner = SimulationRunner(_collector_with(30), interval=3, sleep=fake_sleep)
        await runner.start()
        for _ in range(50):
            if runner.pass_count >= 2:
                break
            await asyncio.sleep(0)
        await runner.stop()

        assert runner.pass_count >= 2
        assert all(d == 3 for d in delays)
        assert not runner.is_running
