"""Net profit after round-trip commission and capital gains tax."""

from typing import Iterable

from core.models.config import DEFAULT_STRATEGY
from core.models.trade import TradeEvent, TradeKind


def net_profit_pct(
    entry: float,
    exit: float,
    commission_rate: float = DEFAULT_STRATEGY.commission_rate,
    tax_rate: float = DEFAULT_STRATEGY.tax_rate,
) -> float:
    """
    Net return of a long round trip, in percent.

    Commission for both legs is subtracted first; tax is then applied only
    when what remains is positive. The order matters and is part of the
    contract.

    Example: entry=100, exit=100.7
        gross = 0.007 - 0.0046 = 0.0024 -> * 0.78 = 0.001872 -> 0.1872%

    Args:
        entry: Entry price (> 0)
        exit: Exit price
        commission_rate: Commission per leg
        tax_rate: Tax on positive post-commission gross

    Returns:
        Net profit in percent
    """
    gross = (exit - entry) / entry
    gross -= commission_rate * 2
    if gross > 0:
        gross *= 1 - tax_rate
    return gross * 100


def cumulative_profit(events: Iterable[TradeEvent]) -> list[float]:
    """Running sum of SELL profits in log order."""
    series: list[float] = []
    total = 0.0
    for event in events:
        if event.kind != TradeKind.SELL or event.profit_pct is None:
            continue
        total += event.profit_pct
        series.append(total)
    return series
