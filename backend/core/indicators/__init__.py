"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    sma,
    rsi,
    ema,
    macd,
    vwap,
    sma_series,
    rsi_series,
    macd_series,
    vwap_series,
    IndicatorCalculator,
)

__all__ = [
    "sma",
    "rsi",
    "ema",
    "macd",
    "vwap",
    "sma_series",
    "rsi_series",
    "macd_series",
    "vwap_series",
    "IndicatorCalculator",
]
