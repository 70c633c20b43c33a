"""Entry rule: combine indicator values into reason labels.

Stateless. A BUY needs every reason at the same index; any absent
indicator simply suppresses its reason.
"""

from dataclasses import dataclass

from core.models.config import DEFAULT_STRATEGY, StrategyConfig
from core.models.snapshot import IndicatorSnapshot

REASON_VWAP = "VWAP breakout"
REASON_GOLDEN_CROSS = "golden cross"
REASON_MACD = "MACD bullish crossover"

REQUIRED_REASONS = 4


def rsi_reason(config: StrategyConfig) -> str:
    """Label for the oversold condition, e.g. ``RSI<30``."""
    return f"RSI<{config.rsi_buy_threshold:g}"


@dataclass(slots=True)
class SignalDecision:
    """Reasons triggered at one index and whether they add up to a BUY."""

    reasons: list[str]
    is_buy: bool

    @property
    def label(self) -> str:
        return ", ".join(self.reasons)


class SignalAggregator:
    """Evaluate the four-indicator entry rule."""

    def __init__(self, config: StrategyConfig = DEFAULT_STRATEGY):
        self.config = config

    def collect_reasons(self, snapshot: IndicatorSnapshot, price: float) -> list[str]:
        """Ordered labels of every condition that holds at this index."""
        c = self.config
        reasons = []

        if snapshot.rsi is not None and snapshot.rsi < c.rsi_buy_threshold:
            reasons.append(rsi_reason(c))

        if c.vwap_condition and snapshot.vwap is not None and price > snapshot.vwap:
            reasons.append(REASON_VWAP)

        if (
            snapshot.sma_short is not None
            and snapshot.sma_long is not None
            and snapshot.sma_short > snapshot.sma_long
        ):
            reasons.append(REASON_GOLDEN_CROSS)

        if (
            snapshot.macd is not None
            and snapshot.macd_signal is not None
            and snapshot.macd > snapshot.macd_signal
        ):
            reasons.append(REASON_MACD)

        return reasons

    def evaluate(self, snapshot: IndicatorSnapshot, price: float) -> SignalDecision:
        """Collect reasons and decide BUY eligibility."""
        reasons = self.collect_reasons(snapshot, price)
        return SignalDecision(reasons=reasons, is_buy=len(reasons) == REQUIRED_REASONS)
