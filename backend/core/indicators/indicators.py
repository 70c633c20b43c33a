"""Technical indicators for the entry rule.

This module provides two views of the same math:
1. Prefix functions (sma, rsi, ema, macd, vwap) - the reference definitions,
   evaluated on the latest point of whatever prefix they receive.
2. IndicatorCalculator.calculate_all - a single O(n) NumPy pass producing a
   snapshot for every index of a buffer. Its output matches the prefix
   functions applied to data[:i + 1] for each i.

All functions return None (absent) instead of raising when there is not
enough history.
"""

from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from core.models.config import DEFAULT_STRATEGY, StrategyConfig
from core.models.snapshot import IndicatorSnapshot


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


# =============================================================================
# Prefix (reference) implementations
# =============================================================================

def sma(data: Sequence[float], period: int) -> float | None:
    """
    Simple Moving Average of the last ``period`` values.

    Args:
        data: Price prefix
        period: Window length

    Returns:
        Arithmetic mean, or None if fewer than ``period`` values
    """
    if period <= 0 or len(data) < period:
        return None

    window = _as_array(data[-period:])
    return float(window.sum() / period)


def rsi(data: Sequence[float], period: int = 14) -> float | None:
    """
    Relative Strength Index over the last ``period`` price deltas.

    The first delta of a series is defined as 0, so at least
    ``period + 1`` prices are needed. Average gain and loss are the
    window sums divided by ``period``. A window without losses saturates
    at 100.

    Args:
        data: Price prefix
        period: Number of deltas in the window

    Returns:
        RSI in [0, 100], or None if not enough history
    """
    if len(data) < period + 1:
        return None

    deltas = np.diff(_as_array(data[-(period + 1):]))
    avg_gain = float(np.clip(deltas, 0.0, None).sum()) / period
    avg_loss = float(np.clip(-deltas, 0.0, None).sum()) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def ema(series: Sequence[float], n: int) -> list[float]:
    """
    Exponential Moving Average seeded with the first value.

    ema[0] = series[0]
    ema[i] = series[i] * k + ema[i - 1] * (1 - k),  k = 2 / (n + 1)

    Args:
        series: Input values
        n: EMA period

    Returns:
        List of EMA values, same length as the input
    """
    if len(series) == 0:
        return []

    k = 2.0 / (n + 1)
    result = [float(series[0])]
    for i in range(1, len(series)):
        result.append(float(series[i]) * k + result[-1] * (1 - k))
    return result


def macd(
    data: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[float | None, float | None]:
    """
    MACD line and signal line at the last point of ``data``.

    The signal EMA restarts on the MACD slice beginning at index
    ``slow - 1``, so it is only seeded once the slow EMA has ``slow``
    points of support.

    Args:
        data: Price prefix
        fast: Fast EMA period
        slow: Slow EMA period
        signal: Signal EMA period

    Returns:
        (macd, signal), or (None, None) if fewer than ``slow`` values
    """
    if len(data) < slow:
        return None, None

    fast_ema = ema(data, fast)
    slow_ema = ema(data, slow)
    macd_line = [f - s for f, s in zip(fast_ema, slow_ema)]
    signal_line = ema(macd_line[slow - 1:], signal)
    return macd_line[-1], signal_line[-1]


def vwap(prices: Sequence[float], volumes: Sequence[float]) -> float | None:
    """
    Volume Weighted Average Price over the whole prefix.

    Note: This is a cumulative VWAP since the start of the supplied data.
    It does not reset at session boundaries.

    Args:
        prices: Price prefix
        volumes: Volume prefix (same length as prices)

    Returns:
        VWAP, or None if fewer than 2 points or lengths differ
    """
    if len(prices) < 2 or len(volumes) != len(prices):
        return None

    p = _as_array(prices)
    v = _as_array(volumes)
    return float((p * v).sum()) / float(v.sum())


# =============================================================================
# Series implementations (one value per index)
# =============================================================================

def sma_series(data: Sequence[float], period: int) -> list[float | None]:
    """SMA at every index; None until ``period`` values are available."""
    n = len(data)
    result: list[float | None] = [None] * n
    if period <= 0 or n < period:
        return result

    windows = sliding_window_view(_as_array(data), period)
    means = windows.sum(axis=1) / period
    for offset, value in enumerate(means):
        result[period - 1 + offset] = float(value)
    return result


def rsi_series(data: Sequence[float], period: int = 14) -> list[float | None]:
    """RSI at every index; None until ``period + 1`` values are available."""
    n = len(data)
    result: list[float | None] = [None] * n
    if n < period + 1:
        return result

    deltas = np.diff(_as_array(data))
    windows = sliding_window_view(deltas, period)
    gains = np.clip(windows, 0.0, None).sum(axis=1) / period
    losses = np.clip(-windows, 0.0, None).sum(axis=1) / period

    for offset, (avg_gain, avg_loss) in enumerate(zip(gains, losses)):
        if avg_loss == 0:
            value = 100.0
        else:
            value = 100.0 - 100.0 / (1.0 + float(avg_gain) / float(avg_loss))
        result[period + offset] = value
    return result


def macd_series(
    data: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[list[float | None], list[float | None]]:
    """MACD and signal at every index.

    EMA is prefix-stable (ema[i] depends on data[:i + 1] only), so a single
    pass over the full series yields the same values the prefix function
    computes for each prefix.
    """
    n = len(data)
    macd_values: list[float | None] = [None] * n
    signal_values: list[float | None] = [None] * n
    if n < slow:
        return macd_values, signal_values

    fast_ema = ema(data, fast)
    slow_ema = ema(data, slow)
    macd_line = [f - s for f, s in zip(fast_ema, slow_ema)]
    signal_line = ema(macd_line[slow - 1:], signal)

    for i in range(slow - 1, n):
        macd_values[i] = macd_line[i]
        signal_values[i] = signal_line[i - (slow - 1)]
    return macd_values, signal_values


def vwap_series(
    prices: Sequence[float],
    volumes: Sequence[float],
) -> list[float | None]:
    """Cumulative VWAP at every index.

    Index i is defined when i >= 1 and volumes cover prices[:i + 1].
    """
    n = len(prices)
    result: list[float | None] = [None] * n
    covered = min(n, len(volumes))
    if covered < 2:
        return result

    p = _as_array(prices[:covered])
    v = _as_array(volumes[:covered])
    cum_pv = np.cumsum(p * v)
    cum_v = np.cumsum(v)

    for i in range(1, covered):
        result[i] = float(cum_pv[i]) / float(cum_v[i])
    return result


# =============================================================================
# IndicatorCalculator class
# =============================================================================

class IndicatorCalculator:
    """Calculator for all indicators used by the entry rule."""

    def __init__(self, config: StrategyConfig = DEFAULT_STRATEGY):
        self.config = config

    @property
    def min_history(self) -> int:
        """Samples needed before every indicator can be present."""
        c = self.config
        return max(c.rsi_period + 1, c.sma_short_period, c.sma_long_period, c.macd_slow, 2)

    def calculate_latest(
        self,
        prices: Sequence[float],
        volumes: Sequence[float],
    ) -> IndicatorSnapshot:
        """
        Calculate indicators for the last point of the given prefix.

        Args:
            prices: Price prefix
            volumes: Volume prefix

        Returns:
            IndicatorSnapshot with absent values where history is short
        """
        c = self.config
        macd_value, signal_value = macd(prices, c.macd_fast, c.macd_slow, c.macd_signal)

        return IndicatorSnapshot(
            rsi=rsi(prices, c.rsi_period),
            sma_short=sma(prices, c.sma_short_period),
            sma_long=sma(prices, c.sma_long_period),
            vwap=vwap(prices, volumes),
            macd=macd_value,
            macd_signal=signal_value,
        )

    def calculate_all(
        self,
        prices: Sequence[float],
        volumes: Sequence[float],
    ) -> list[IndicatorSnapshot]:
        """
        Calculate indicators at every index in one pass.

        Args:
            prices: Full price sequence
            volumes: Full volume sequence

        Returns:
            One IndicatorSnapshot per price, equal to
            ``calculate_latest(prices[:i + 1], volumes[:i + 1])``
        """
        if len(prices) == 0:
            return []

        c = self.config
        rsi_values = rsi_series(prices, c.rsi_period)
        sma_short_values = sma_series(prices, c.sma_short_period)
        sma_long_values = sma_series(prices, c.sma_long_period)
        vwap_values = vwap_series(prices, volumes)
        macd_values, signal_values = macd_series(
            prices, c.macd_fast, c.macd_slow, c.macd_signal
        )

        return [
            IndicatorSnapshot(
                rsi=rsi_values[i],
                sma_short=sma_short_values[i],
                sma_long=sma_long_values[i],
                vwap=vwap_values[i],
                macd=macd_values[i],
                macd_signal=signal_values[i],
            )
            for i in range(len(prices))
        ]
