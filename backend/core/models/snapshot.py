"""Indicator snapshot (hot path).

Built once per simulated index, so it is a slotted dataclass rather than a
Pydantic model.
"""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class IndicatorSnapshot:
    """Indicator values at one buffer index. ``None`` means not enough history."""

    rsi: float | None = None
    sma_short: float | None = None
    sma_long: float | None = None
    vwap: float | None = None
    macd: float | None = None
    macd_signal: float | None = None

    def as_dict(self) -> dict[str, float | None]:
        return {
            "rsi": self.rsi,
            "sma_short": self.sma_short,
            "sma_long": self.sma_long,
            "vwap": self.vwap,
            "macd": self.macd,
            "macd_signal": self.macd_signal,
        }
