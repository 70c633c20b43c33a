"""Trade simulator: replay a tick snapshot through the strategy.

Pure business logic with no I/O. The live system calls it on a copy of the
sample buffer; the replay CLI calls it on a manually supplied sequence.

Processing order for each index i:
1. Indicator snapshot for prices[:i + 1] / volumes[:i + 1]
2. Entry rule -> reason labels
3. Position state machine -> optional BUY / SELL event

Every run starts from a flat position and an empty log, so running twice on
the same ticks gives the same result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from core.indicators import IndicatorCalculator
from core.models.config import DEFAULT_STRATEGY, StrategyConfig
from core.models.tick import Tick
from core.models.trade import Position, TradeEvent
from core.pnl import cumulative_profit
from core.position_tracker import PositionTracker
from core.signal_aggregator import SignalAggregator

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Outcome of one simulation pass."""

    events: list[TradeEvent] = field(default_factory=list)
    position: Position = field(default_factory=Position)
    sample_count: int = 0

    @property
    def cumulative_profit(self) -> list[float]:
        return cumulative_profit(self.events)

    @property
    def total_profit(self) -> float:
        series = self.cumulative_profit
        return series[-1] if series else 0.0

    @property
    def buy_count(self) -> int:
        return sum(1 for e in self.events if e.is_buy)

    @property
    def sell_count(self) -> int:
        return sum(1 for e in self.events if e.is_sell)


class TradeSimulator:
    """Run the entry/exit rule over a sequence of ticks."""

    def __init__(self, config: StrategyConfig = DEFAULT_STRATEGY):
        self.config = config
        self._calculator = IndicatorCalculator(config)
        self._aggregator = SignalAggregator(config)

    def run(self, ticks: Sequence[Tick]) -> SimulationResult:
        """
        Replay ticks and rebuild the event log from scratch.

        Args:
            ticks: Immutable snapshot of samples in stream order

        Returns:
            SimulationResult with the event log and final position
        """
        prices = [t.price for t in ticks]
        volumes = [t.volume for t in ticks]
        return self.run_prices(
            prices,
            volumes,
            sequence_indices=[t.sequence_index for t in ticks],
        )

    def run_prices(
        self,
        prices: Sequence[float],
        volumes: Sequence[float],
        sequence_indices: Sequence[int] | None = None,
    ) -> SimulationResult:
        """Replay raw price/volume sequences.

        ``volumes`` shorter than ``prices`` leaves VWAP absent past its end.
        """
        snapshots = self._calculator.calculate_all(prices, volumes)
        tracker = PositionTracker(self.config)
        events: list[TradeEvent] = []

        for i, (price, snapshot) in enumerate(zip(prices, snapshots)):
            decision = self._aggregator.evaluate(snapshot, price)
            event = tracker.process(
                i,
                price,
                decision,
                sequence_index=sequence_indices[i] if sequence_indices else None,
            )
            if event is not None:
                events.append(event)

        result = SimulationResult(
            events=events,
            position=tracker.position,
            sample_count=len(prices),
        )
        logger.debug(
            f"Simulated {result.sample_count} samples: "
            f"{result.buy_count} buys, {result.sell_count} sells, "
            f"total {result.total_profit:+.3f}%"
        )
        return result
