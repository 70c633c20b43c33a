"""Position state machine for the simulated long-only strategy.

Rules:
- FLAT + BUY signal at index i -> HOLDING, entry at price[i]
- HOLDING at index i > entry_index -> FLAT when any of:
    net profit >= take profit
    net profit <= stop loss
    i - entry_index >= max hold time
- BUY signals are ignored while HOLDING (one open position at most)
- A position still open at the end of the data stays open and unlogged
"""

import logging

from core.models.config import DEFAULT_STRATEGY, StrategyConfig
from core.models.trade import ExitReason, Position, TradeEvent, TradeKind
from core.pnl import net_profit_pct
from core.signal_aggregator import SignalDecision

logger = logging.getLogger(__name__)


class PositionTracker:
    """Own the single Position of a simulation run and emit trade events."""

    def __init__(self, config: StrategyConfig = DEFAULT_STRATEGY):
        self.config = config
        self.position = Position()

    def process(
        self,
        index: int,
        price: float,
        decision: SignalDecision,
        sequence_index: int | None = None,
    ) -> TradeEvent | None:
        """
        Advance the state machine by one sample.

        Args:
            index: Position of the sample in the replayed data
            price: Sample price
            decision: Entry rule result at this index
            sequence_index: Stream sequence number of the sample, if any

        Returns:
            The BUY or SELL event emitted at this index, or None
        """
        if not self.position.is_holding:
            if decision.is_buy:
                self.position.open(price, index)
                logger.debug(f"BUY at index {index} price={price} ({decision.label})")
                return TradeEvent(
                    time_index=index,
                    kind=TradeKind.BUY,
                    price=price,
                    reason=decision.label,
                    sequence_index=sequence_index,
                )
            return None

        if index <= self.position.entry_index:
            return None

        net = net_profit_pct(
            self.position.entry_price,
            price,
            commission_rate=self.config.commission_rate,
            tax_rate=self.config.tax_rate,
        )
        exit_reason = self.check_exit(net, index)
        if exit_reason is None:
            return None

        self.position.close()
        logger.debug(
            f"SELL at index {index} price={price} net={net:.3f}% ({exit_reason.value})"
        )
        return TradeEvent(
            time_index=index,
            kind=TradeKind.SELL,
            price=price,
            profit_pct=net,
            exit_reason=exit_reason,
            sequence_index=sequence_index,
        )

    def check_exit(self, net: float, index: int) -> ExitReason | None:
        """Exit trigger for an open position, or None to keep holding."""
        c = self.config
        if net >= c.take_profit_pct:
            return ExitReason.TAKE_PROFIT
        if net <= c.stop_loss_pct:
            return ExitReason.STOP_LOSS
        if index - self.position.entry_index >= c.max_hold_time:
            return ExitReason.MAX_HOLD
        return None

    def reset(self) -> None:
        """Return to FLAT without emitting anything."""
        self.position = Position()
