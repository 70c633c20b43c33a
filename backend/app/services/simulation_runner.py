"""Periodic simulation driver.

Every ``interval`` seconds, replays a snapshot of the collector's buffer
through the TradeSimulator and publishes the rebuilt event log. At most one
pass runs at a time; a request that arrives while a pass is in flight is
skipped rather than queued.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable

from app.config import coerce_interval
from app.services.data_collector import DataCollector
from core.models.config import DEFAULT_STRATEGY, StrategyConfig
from core.simulator import SimulationResult, TradeSimulator

logger = logging.getLogger(__name__)

# Type alias for result callback (sync or async)
ResultCallback = Callable[[SimulationResult], Any]


class SimulationRunner:
    """Drive simulation passes on a timer or on demand."""

    def __init__(
        self,
        collector: DataCollector,
        interval: int = 5,
        config: StrategyConfig = DEFAULT_STRATEGY,
        simulator: TradeSimulator | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        """
        Args:
            collector: Source of buffer snapshots
            interval: Seconds between periodic passes (coerced to >= 1)
            config: Strategy configuration
            simulator: Optional simulator instance (for testing)
            sleep: Timer function (for testing)
        """
        self._collector = collector
        self._interval = coerce_interval(interval)
        self._min_samples = config.min_simulation_samples
        self._simulator = simulator or TradeSimulator(config)
        self._sleep = sleep

        self._lock = asyncio.Lock()
        self._running = False
        self._task: asyncio.Task | None = None
        self._latest: SimulationResult | None = None
        self._pass_count = 0
        self._result_callbacks: list[ResultCallback] = []

    def on_result(self, callback: ResultCallback) -> None:
        """Register callback for completed passes.

        Note: Duplicate callbacks are ignored.
        """
        if callback not in self._result_callbacks:
            self._result_callbacks.append(callback)

    def off_result(self, callback: ResultCallback) -> None:
        """Unregister a result callback."""
        if callback in self._result_callbacks:
            self._result_callbacks.remove(callback)

    @property
    def interval(self) -> int:
        return self._interval

    def set_interval(self, seconds) -> int:
        """Change the pass interval; takes effect on the next wait."""
        self._interval = coerce_interval(seconds)
        return self._interval

    @property
    def latest_result(self) -> SimulationResult | None:
        return self._latest

    @property
    def pass_count(self) -> int:
        return self._pass_count

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic driver."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Simulation runner started (every {self._interval}s)")

    async def stop(self) -> None:
        """Stop the periodic driver."""
        self._running = False
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def run_once(self, force: bool = False) -> SimulationResult | None:
        """
        Run one simulation pass over the current buffer.

        Args:
            force: Run on any non-empty buffer instead of waiting for the
                minimum sample count (on-demand passes)

        Returns:
            The new result, or None if skipped (busy or not enough samples)
        """
        if self._lock.locked():
            logger.debug("Simulation pass already in flight, skipping")
            return None

        async with self._lock:
            ticks = self._collector.snapshot()
            required = 1 if force else self._min_samples
            if len(ticks) < required:
                logger.debug(f"Skipping simulation: {len(ticks)}/{required} samples")
                return None

            result = self._simulator.run(ticks)
            self._latest = result
            self._pass_count += 1

        # Notify OUTSIDE lock (callbacks may broadcast over the network)
        for callback in list(self._result_callbacks):
            try:
                outcome = callback(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Simulation result callback error: {e}")

        return result

    async def _run(self) -> None:
        """Timer loop: wait, then run a pass."""
        while self._running:
            try:
                await self._sleep(self._interval)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"Simulation pass error: {e}")
