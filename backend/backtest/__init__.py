"""Offline replay of the trade strategy over a supplied sequence.

Independent of app/; only depends on core/ for business logic.

Usage:
    python -m backtest --prices 100,101,99.5 --volumes 10,12,8
    python -m backtest --csv ticks.csv --output result.json
"""

from backtest.loader import ReplayInput, load_csv, parse_sequence
from backtest.report import ReportFormatter

__all__ = ["ReplayInput", "ReportFormatter", "load_csv", "parse_sequence"]
