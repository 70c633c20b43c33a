"""Strategy configuration model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrategyConfig(BaseModel):
    """Strategy parameters passed into the engine at construction.

    The defaults are the fixed constants of the strategy. They are kept on an
    immutable value (instead of module globals) so independent simulations
    can each carry their own copy.
    """

    model_config = ConfigDict(frozen=True)

    # Indicator periods
    rsi_period: int = 14
    sma_short_period: int = 5
    sma_long_period: int = 20
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9

    # Entry rule
    rsi_buy_threshold: float = 30.0
    vwap_condition: bool = True

    # Exit rule (net profit, in percent)
    take_profit_pct: float = 0.7
    stop_loss_pct: float = -0.5
    max_hold_time: int = 90  # samples

    # Costs
    tax_rate: float = 0.22  # applied to positive post-commission gross only
    commission_rate: float = 0.0023  # per leg

    # Sample window
    buffer_size: int = 100
    min_simulation_samples: int = 20


DEFAULT_STRATEGY = StrategyConfig()
